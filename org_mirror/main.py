#!/usr/bin/env python3
"""
Mirror every repository of a GitHub organization into a backup organization
"""

import argparse
import sys
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from dotenv import load_dotenv
from loguru import logger
from rich_argparse import ArgumentDefaultsRichHelpFormatter
from tqdm import tqdm

from .base import (
    AccessError,
    ConfigurationError,
    OutcomeStatus,
    ReconciliationOutcome,
    RepositoryClient,
)
from .config import MirrorConfig, get_env_default
from .git_runner import CommandRunner, redact, robust_rmtree
from .github_manager import GitHubClient
from .reconciler import BackupReconciler

WORKSPACE_PREFIX = "gh-backup-"


LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def mask_credentials(record):
    """Patcher applied to every record so a token in a URL never reaches a sink"""
    record["message"] = redact(record["message"])


def setup_logging(
    level: str = "INFO", log_file: str = "org-mirror.log", log_dir: str = "logs"
):
    """
    Route loguru output to a colorized console and a rotating file.

    Args:
        level: Minimum level for both sinks (see LOG_LEVELS)
        log_file: File name inside log_dir
        log_dir: Directory for the log file, created when missing
    """
    level = level.upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            f"Unknown log level {level!r}; expected one of {', '.join(LOG_LEVELS)}"
        )

    log_file_path = Path(log_dir) / log_file
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(patcher=mask_credentials)
    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=level, colorize=True)
    logger.add(
        log_file_path,
        format=FILE_FORMAT,
        level=level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    logger.debug(f"[CONFIG] Logging at {level} to {log_file_path}")
    return logger


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunSummary:
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    failures: List[Tuple[str, str]] = field(default_factory=list)

    def record(self, outcome: ReconciliationOutcome) -> None:
        if outcome.status is OutcomeStatus.SUCCESS:
            self.succeeded += 1
        elif outcome.status is OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.failures.append((outcome.repository_name, outcome.reason or ""))

    def finish(self) -> None:
        self.finished_at = utc_now()

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped + self.failed

    @property
    def exit_code(self) -> int:
        return 1 if self.failed > 0 else 0


class ScratchWorkspace:
    """Ephemeral directory holding one mirror clone per repository"""

    def __init__(self, parent: Optional[str] = None, prefix: str = WORKSPACE_PREFIX):
        self.parent = parent
        self.prefix = prefix
        self.path: Optional[Path] = None

    def __enter__(self) -> "ScratchWorkspace":
        if self.parent:
            Path(self.parent).mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.parent))
        logger.debug(f"[CONFIG] Working directory: {self.path}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.path is not None:
            if robust_rmtree(self.path):
                logger.debug(f"[CLEANUP] Removed working directory: {self.path}")
            self.path = None

    def path_for(self, name: str) -> Path:
        if self.path is None:
            raise RuntimeError("Workspace is not open")
        return self.path / name


class MirrorOrchestrator:
    def __init__(
        self,
        config: MirrorConfig,
        source_client: RepositoryClient,
        backup_client: RepositoryClient,
        runner: Optional[CommandRunner] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.source_client = source_client
        self.backup_client = backup_client
        self.runner = runner or CommandRunner()
        self.sleep = sleep

    def skip_reason(self, repo) -> Optional[str]:
        if repo.name == self.config.protected_repo:
            return "protected"
        if repo.is_archived:
            return "archived"
        return None

    def run(self) -> RunSummary:
        """
        Mirror every source repository into the backup organization.

        Raises:
            AccessError: the source organization cannot be listed
        """
        summary = RunSummary()
        config = self.config

        logger.info(f"[START] Started at: {summary.started_at.isoformat()}")
        logger.info(f"[CONFIG] Source org: {config.source_org}")
        logger.info(f"[CONFIG] Backup org: {config.backup_org}")
        logger.info(
            f"[CONFIG] Protected repo: {config.protected_repo} (will not be touched)"
        )

        repos = self.source_client.list_repositories(config.source_org)
        logger.info(f"[DISCOVER] Found {len(repos)} repositories to back up")

        with ScratchWorkspace(config.work_dir) as workspace:
            reconciler = BackupReconciler(
                config, self.backup_client, self.runner, workspace, sleep=self.sleep
            )
            with tqdm(repos, desc="Mirroring", unit="repo") as pbar:
                for repo in pbar:
                    pbar.set_description(f"[BACKUP] {repo.name}")
                    reason = self.skip_reason(repo)
                    if reason:
                        logger.info(f"[SKIP] {repo.name} ({reason}) - skipping")
                        outcome = ReconciliationOutcome.skipped(repo.name, reason)
                    else:
                        logger.info(f"[BACKUP] Processing {repo.name}")
                        outcome = reconciler.reconcile(repo)
                    summary.record(outcome)
                    pbar.set_postfix(
                        {"OK": summary.succeeded, "SKIP": summary.skipped, "FAIL": summary.failed}
                    )

        summary.finish()
        self.log_summary(summary)
        return summary

    @staticmethod
    def log_summary(summary: RunSummary) -> None:
        logger.info("=" * 60)
        logger.info("[SUMMARY] BACKUP SUMMARY")
        logger.info("=" * 60)
        logger.info(f"[SUCCESS] Successfully backed up: {summary.succeeded}")
        logger.info(f"[SKIP] Skipped: {summary.skipped}")
        logger.info(f"[FAIL] Failed: {summary.failed}")
        for name, reason in summary.failures:
            logger.error(f"  - {name}: {reason}")
        finished = summary.finished_at or utc_now()
        logger.info(f"[COMPLETE] Completed at: {finished.isoformat()}")
        logger.info("=" * 60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="org-mirror",
        description="[bold blue]GitHub Organization Backup[/bold blue] - Mirror every repository of a source organization into a backup organization",
        epilog="""
[bold green]Environment:[/bold green]
  [cyan]SOURCE_ORG[/cyan], [cyan]BACKUP_ORG[/cyan], [cyan]SOURCE_TOKEN[/cyan], [cyan]BACKUP_TOKEN[/cyan] (required)
  [cyan]BACKUP_SCRIPT_REPO[/cyan] protected repository name (default: github-org-backup)

[bold green]Examples:[/bold green]
  [dim]# Mirror with settings from .env[/dim]
  [yellow]%(prog)s[/yellow]

  [dim]# Verbose run with a custom scratch location[/dim]
  [yellow]%(prog)s[/yellow] [cyan]--verbose[/cyan] [cyan]--work-dir[/cyan] [magenta]/var/tmp/org-mirror[/magenta]
        """,
        formatter_class=ArgumentDefaultsRichHelpFormatter,
    )

    parser.add_argument(
        "--work-dir",
        type=str,
        default=get_env_default("WORK_DIR", None),
        metavar="DIR",
        help="Parent directory for the scratch workspace (env: WORK_DIR, default: system temp)",
    )
    parser.add_argument(
        "--settle-delay",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Pause after deleting a backup before recreating it (env: SETTLE_DELAY, default: 2)",
    )

    log_group = parser.add_argument_group("Logging Options")
    log_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    log_group.add_argument(
        "--log-file",
        default=get_env_default("LOG_FILE", "org-mirror.log"),
        metavar="FILE",
        help="Log file name (env: LOG_FILE)",
    )
    log_group.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=get_env_default("LOG_LEVEL", "INFO").upper(),
        help="Minimum level written to console and file; --verbose forces DEBUG (env: LOG_LEVEL)",
    )
    log_group.add_argument(
        "--log-dir",
        default=get_env_default("LOG_DIR", "logs"),
        metavar="DIR",
        help="Directory for the log file (env: LOG_DIR)",
    )
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the mirror and return the process exit status"""
    load_dotenv()

    args = build_parser().parse_args(argv)
    try:
        setup_logging(
            level="DEBUG" if args.verbose else args.log_level,
            log_file=args.log_file,
            log_dir=args.log_dir,
        )
    except ConfigurationError as e:
        logger.error(f"[ERROR] {e}")
        return 1

    try:
        config = MirrorConfig.from_env()
    except ConfigurationError as e:
        logger.error(f"[ERROR] {e}")
        return 1

    if args.work_dir:
        config.work_dir = args.work_dir
    if args.settle_delay is not None:
        if args.settle_delay < 0:
            logger.error("[ERROR] --settle-delay must not be negative")
            return 1
        config.settle_delay = args.settle_delay

    orchestrator = MirrorOrchestrator(
        config,
        source_client=GitHubClient(config.source_token, base_url=config.api_url),
        backup_client=GitHubClient(config.backup_token, base_url=config.api_url),
    )

    try:
        summary = orchestrator.run()
    except AccessError as e:
        logger.error(f"[ERROR] Failed to access source organization: {e}")
        return 1
    except Exception as e:
        logger.exception(f"[ERROR] Fatal error: {e}")
        return 1

    if summary.failed > 0:
        logger.error(
            f"[WARN] {summary.failed} repositories failed to back up - check logs for details"
        )
    else:
        logger.info("[COMPLETE] All repositories backed up successfully!")
    return summary.exit_code


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
