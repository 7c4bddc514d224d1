"""
Per-repository backup reconciliation

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from .base import (
    DeleteResult,
    ReconciliationOutcome,
    RemoteError,
    RepositoryClient,
    RepositoryDescriptor,
    RepositorySpec,
)
from .config import MirrorConfig
from .git_runner import (
    CommandRunner,
    authenticated_url,
    mirror_clone_command,
    mirror_push_command,
    repository_url,
    robust_rmtree,
)

BACKUP_PREFIX = "[BACKUP] "
NO_DESCRIPTION = "No description"


def backup_description(description: Optional[str]) -> str:
    return BACKUP_PREFIX + (description or NO_DESCRIPTION)


class BackupReconciler:
    """
    Bring one backup repository in line with its source.

    Steps: delete the existing backup, create a fresh one (or reuse it when
    deletion is forbidden), mirror-clone the source, mirror-push to the
    backup. Every call returns a ReconciliationOutcome; no exception escapes.
    """

    def __init__(
        self,
        config: MirrorConfig,
        backup_client: RepositoryClient,
        runner: CommandRunner,
        workspace,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.backup_client = backup_client
        self.runner = runner
        self.workspace = workspace
        self.sleep = sleep

    def reconcile(self, repo: RepositoryDescriptor) -> ReconciliationOutcome:
        if repo.name == self.config.protected_repo:
            logger.info(f"[SKIP] {repo.name} is protected (contains backup tooling)")
            return ReconciliationOutcome.skipped(repo.name, "protected")

        try:
            return self._reconcile(repo)
        except Exception as e:
            logger.error(
                f"[ERROR] Exception while backing up {repo.name}: {type(e).__name__}: {e}"
            )
            return ReconciliationOutcome.failed(repo.name, str(e) or type(e).__name__)

    def _reconcile(self, repo: RepositoryDescriptor) -> ReconciliationOutcome:
        org = self.config.backup_org
        name = repo.name

        # DeleteExisting
        try:
            deleted = self.backup_client.delete_repository(org, name)
        except RemoteError as e:
            logger.error(f"[ERROR] Failed to delete existing backup {org}/{name}: {e}")
            return ReconciliationOutcome.failed(name, f"delete error: {e}")

        if deleted is DeleteResult.FORBIDDEN:
            logger.warning(
                f"[DELETE] Cannot delete {org}/{name} (permission denied) - "
                "will force push into the existing repository"
            )
            backup = self._reuse_existing(name)
            created = False
        else:
            if deleted is DeleteResult.DELETED:
                logger.info(f"[DELETE] Deleted old backup {org}/{name}")
                # Deletion is eventually consistent on the host
                self.sleep(self.config.settle_delay)
            else:
                logger.info(f"[DELETE] No existing backup of {name} to delete")
            backup = self._create_fresh(repo)
            created = True

        if isinstance(backup, ReconciliationOutcome):
            return backup

        clone_path = self.workspace.path_for(name)
        try:
            return self._mirror(repo, backup, clone_path, created)
        finally:
            robust_rmtree(clone_path)

    def _create_fresh(self, repo: RepositoryDescriptor):
        org = self.config.backup_org
        spec = RepositorySpec(
            name=repo.name,
            description=backup_description(repo.description),
            private=repo.is_private,
        )
        logger.info(f"[CREATE] Creating backup repository {org}/{repo.name}...")
        try:
            backup = self.backup_client.create_repository(org, spec)
        except RemoteError as e:
            logger.error(f"[ERROR] Failed to create {org}/{repo.name}: {e}")
            return ReconciliationOutcome.failed(repo.name, f"create error: {e}")

        logger.info(f"[CREATE] Created {backup.html_url or f'{org}/{repo.name}'}")
        return backup

    def _reuse_existing(self, name: str):
        org = self.config.backup_org
        try:
            backup = self.backup_client.get_repository(org, name)
        except RemoteError as e:
            logger.error(f"[ERROR] Failed to look up existing backup {org}/{name}: {e}")
            return ReconciliationOutcome.failed(name, f"reuse error: {e}")

        if backup is None:
            logger.error(f"[ERROR] Existing backup {org}/{name} disappeared")
            return ReconciliationOutcome.failed(name, "reuse error: backup not found")

        logger.info(f"[REUSE] Using existing backup repo {backup.html_url or f'{org}/{name}'}")
        return backup

    def _mirror(
        self,
        repo: RepositoryDescriptor,
        backup: RepositoryDescriptor,
        clone_path: Path,
        created: bool,
    ) -> ReconciliationOutcome:
        config = self.config

        source_url = repo.clone_url or repository_url(
            config.git_host, config.source_org, repo.name
        )
        backup_url = backup.clone_url or repository_url(
            config.git_host, config.backup_org, repo.name
        )

        logger.info(f"[CLONE] Cloning {config.source_org}/{repo.name}...")
        clone_cmd = mirror_clone_command(
            authenticated_url(source_url, config.source_token), clone_path
        )
        if not self.runner.run(clone_cmd, clone_path.parent):
            return ReconciliationOutcome.failed(repo.name, "clone failed")

        logger.info(f"[PUSH] Pushing mirror to {config.backup_org}/{repo.name}...")
        push_cmd = mirror_push_command(
            authenticated_url(backup_url, config.backup_token)
        )
        if not self.runner.run(push_cmd, clone_path):
            if created:
                self._compensate(repo.name)
            return ReconciliationOutcome.failed(repo.name, "push failed")

        logger.info(f"[SUCCESS] Successfully backed up {repo.name}")
        return ReconciliationOutcome.success(repo.name)

    def _compensate(self, name: str):
        """Remove the empty or partial backup left behind by a failed push"""
        org = self.config.backup_org
        logger.warning(f"[CLEANUP] Removing incomplete backup {org}/{name}")
        try:
            result = self.backup_client.delete_repository(org, name)
        except Exception as e:
            logger.error(f"[CLEANUP] Failed to remove incomplete backup {org}/{name}: {e}")
            return

        if result is not DeleteResult.DELETED:
            logger.warning(
                f"[CLEANUP] Incomplete backup {org}/{name} not removed ({result.value})"
            )
