"""
Base classes for organization mirroring

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

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class OrgMirrorError(Exception):
    """Base class for all org-mirror errors"""


class ConfigurationError(OrgMirrorError):
    """Required configuration is missing or invalid"""


class AccessError(OrgMirrorError):
    """An organization cannot be enumerated with the given credential"""


class RemoteError(OrgMirrorError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ConflictError(RemoteError):
    """A repository with the requested name already exists"""


@dataclass(frozen=True)
class RepositoryDescriptor:
    name: str
    description: Optional[str] = None
    is_private: bool = False
    is_archived: bool = False
    clone_url: Optional[str] = None
    html_url: Optional[str] = None


@dataclass(frozen=True)
class RepositorySpec:
    name: str
    description: str
    private: bool
    has_issues: bool = False
    has_wiki: bool = False
    has_projects: bool = False


class DeleteResult(Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


class OutcomeStatus(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconciliationOutcome:
    repository_name: str
    status: OutcomeStatus
    reason: Optional[str] = None

    @classmethod
    def success(cls, name: str) -> "ReconciliationOutcome":
        return cls(name, OutcomeStatus.SUCCESS)

    @classmethod
    def skipped(cls, name: str, reason: str) -> "ReconciliationOutcome":
        return cls(name, OutcomeStatus.SKIPPED, reason)

    @classmethod
    def failed(cls, name: str, reason: str) -> "ReconciliationOutcome":
        return cls(name, OutcomeStatus.FAILED, reason)


class RepositoryClient(ABC):
    """Hosting API operations for a single identity (one token)"""

    def __init__(self, token: str):
        self.token = token

    @abstractmethod
    def list_repositories(self, org: str) -> List[RepositoryDescriptor]:
        pass

    @abstractmethod
    def get_repository(self, org: str, name: str) -> Optional[RepositoryDescriptor]:
        pass

    @abstractmethod
    def create_repository(self, org: str, spec: RepositorySpec) -> RepositoryDescriptor:
        pass

    @abstractmethod
    def delete_repository(self, org: str, name: str) -> DeleteResult:
        pass
