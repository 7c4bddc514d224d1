"""
External git command execution for mirror clone and push

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

import os
import re
import shutil
import stat
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from loguru import logger

STDERR_LIMIT = 500

_CREDENTIALS = re.compile(r"(\w+://)[^/@\s]+@")


def redact(text: str) -> str:
    """Mask credentials embedded in URLs"""
    return _CREDENTIALS.sub(r"\1***@", text)


def repository_url(host: str, org: str, name: str) -> str:
    return f"https://{host}/{org}/{name}.git"


def authenticated_url(clone_url: str, token: str) -> str:
    """
    Embed a token in an HTTPS remote URL.

    Any userinfo already present in the URL is replaced.
    """
    parts = urlsplit(clone_url)
    host = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit(parts._replace(netloc=f"{token}@{host}"))


def mirror_clone_command(url: str, target: Union[str, Path]) -> List[str]:
    return ["git", "clone", "--mirror", url, str(target)]


def mirror_push_command(url: str) -> List[str]:
    return ["git", "push", "--mirror", url]


def make_writable(path: Path):
    """Restore owner write permission below path so entries can be unlinked"""
    for entry in [path, *path.rglob("*")]:
        if not entry.is_symlink():
            entry.chmod(entry.stat().st_mode | stat.S_IWUSR | stat.S_IXUSR)


def robust_rmtree(path: Union[str, Path], max_retries: int = 3) -> bool:
    """
    Remove a clone or workspace directory, retrying transient failures.

    Pack files and directories that lost their write bit are made writable
    before the next attempt. A missing path counts as removed.

    Returns:
        True if the path no longer exists, False after max_retries attempts
    """
    path = Path(path)
    for attempt in range(1, max_retries + 1):
        if not path.exists():
            return True
        try:
            shutil.rmtree(path)
            return True
        except PermissionError as e:
            error = e
            try:
                make_writable(path)
            except OSError as chmod_error:
                logger.debug(f"[CLEANUP] Could not reset permissions under {path}: {chmod_error}")
        except OSError as e:
            error = e

        if attempt < max_retries:
            logger.debug(f"[CLEANUP] Attempt {attempt}/{max_retries} for {path}: {error}")
            time.sleep(0.5 * attempt)

    logger.warning(f"[CLEANUP] Gave up removing {path} after {max_retries} attempts: {error}")
    return False


class CommandRunner:
    def __init__(self, timeout: Optional[float] = None):
        """
        Run external commands, reporting failure as a return value
        Args:
            timeout: Seconds before a command is abandoned (default: no limit)
        """
        self.timeout = timeout

    def run(
        self, command: List[str], working_directory: Optional[Union[str, Path]] = None
    ) -> bool:
        display = redact(" ".join(command))
        logger.debug(f"[EXEC] {display}")

        # Never block on an interactive credential prompt
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")

        try:
            # Use DEVNULL for stdout to avoid memory buffering of git progress output
            result = subprocess.run(
                command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                cwd=str(working_directory) if working_directory else None,
                env=env,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"[ERROR] Command timed out after {self.timeout}s: {display}")
            return False
        except OSError as e:
            logger.error(f"[ERROR] Command could not be started: {display}: {e}")
            return False

        if result.returncode != 0:
            stderr_truncated = redact(result.stderr or "").strip()[:STDERR_LIMIT]
            logger.error(
                f"[ERROR] Command failed with exit code {result.returncode}: "
                f"{display}: {stderr_truncated}"
            )
            return False

        return True
