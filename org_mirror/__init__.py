"""
org-mirror - GitHub organization backup tool

Mirrors every repository of a source GitHub organization into a backup
organization using full mirror clones and force pushes.

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

__version__ = "1.0.0"
__author__ = "Derek"
__license__ = "Apache-2.0"
__description__ = "Mirror every repository of a GitHub organization into a backup organization"

from .base import (
    AccessError,
    ConfigurationError,
    DeleteResult,
    ReconciliationOutcome,
    RepositoryClient,
    RepositoryDescriptor,
)
from .config import MirrorConfig
from .git_runner import CommandRunner
from .github_manager import GitHubClient
from .main import MirrorOrchestrator, RunSummary, main
from .reconciler import BackupReconciler

__all__ = [
    "AccessError",
    "ConfigurationError",
    "DeleteResult",
    "ReconciliationOutcome",
    "RepositoryClient",
    "RepositoryDescriptor",
    "MirrorConfig",
    "CommandRunner",
    "GitHubClient",
    "BackupReconciler",
    "MirrorOrchestrator",
    "RunSummary",
    "main",
]
