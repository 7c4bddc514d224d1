"""
Run configuration read from the environment

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
from dataclasses import dataclass
from typing import Mapping, Optional

from .base import ConfigurationError

DEFAULT_PROTECTED_REPO = "github-org-backup"
DEFAULT_SETTLE_DELAY = 2.0
DEFAULT_GIT_HOST = "github.com"

REQUIRED_VARIABLES = ("SOURCE_ORG", "BACKUP_ORG", "SOURCE_TOKEN", "BACKUP_TOKEN")


def get_env_default(env_var: str, fallback=None):
    """Get value from environment or .env file"""
    return os.getenv(env_var, fallback)


@dataclass
class MirrorConfig:
    source_org: str
    backup_org: str
    source_token: str
    backup_token: str
    protected_repo: str = DEFAULT_PROTECTED_REPO
    settle_delay: float = DEFAULT_SETTLE_DELAY
    work_dir: Optional[str] = None
    git_host: str = DEFAULT_GIT_HOST
    api_url: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MirrorConfig":
        """
        Build the configuration from environment variables.

        Priority for optional values: explicit environment variable, then the
        built-in default. All missing required variables are reported together.

        Raises:
            ConfigurationError: a required variable is missing or a value is invalid
        """
        environ = os.environ if environ is None else environ

        missing = [name for name in REQUIRED_VARIABLES if not environ.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        settle_raw = environ.get("SETTLE_DELAY") or str(DEFAULT_SETTLE_DELAY)
        try:
            settle_delay = float(settle_raw)
        except ValueError:
            raise ConfigurationError(
                f"SETTLE_DELAY must be a number of seconds, got {settle_raw!r}"
            ) from None
        if settle_delay < 0:
            raise ConfigurationError("SETTLE_DELAY must not be negative")

        return cls(
            source_org=environ["SOURCE_ORG"],
            backup_org=environ["BACKUP_ORG"],
            source_token=environ["SOURCE_TOKEN"],
            backup_token=environ["BACKUP_TOKEN"],
            protected_repo=environ.get("BACKUP_SCRIPT_REPO") or DEFAULT_PROTECTED_REPO,
            settle_delay=settle_delay,
            work_dir=environ.get("WORK_DIR") or None,
            git_host=environ.get("GITHUB_HOST") or DEFAULT_GIT_HOST,
            api_url=environ.get("GITHUB_API_URL") or None,
        )

    def __repr__(self) -> str:
        # Tokens stay out of reprs so they never reach a log line
        return (
            f"MirrorConfig(source_org={self.source_org!r}, "
            f"backup_org={self.backup_org!r}, "
            f"protected_repo={self.protected_repo!r}, "
            f"settle_delay={self.settle_delay!r}, work_dir={self.work_dir!r}, "
            f"git_host={self.git_host!r}, api_url={self.api_url!r})"
        )
