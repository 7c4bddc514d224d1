"""
GitHub repository client

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

from typing import List, Optional

from github import Auth, Github, GithubException, RateLimitExceededException
from loguru import logger

from .base import (
    AccessError,
    ConflictError,
    DeleteResult,
    RemoteError,
    RepositoryClient,
    RepositoryDescriptor,
    RepositorySpec,
)

PAGE_SIZE = 100


def describe_error(error: GithubException) -> str:
    """Short human readable form of a GitHub API error"""
    data = error.data if isinstance(error.data, dict) else {}
    message = data.get("message") or str(error)
    details = [
        item.get("message") or item.get("code")
        for item in data.get("errors", [])
        if isinstance(item, dict)
    ]
    details = [d for d in details if d]
    if details:
        message = f"{message} ({'; '.join(details)})"
    return f"{error.status}: {message}"


class GitHubClient(RepositoryClient):
    def __init__(self, token: str, base_url: Optional[str] = None):
        super().__init__(token)
        kwargs = {"auth": Auth.Token(token), "per_page": PAGE_SIZE}
        if base_url:
            kwargs["base_url"] = base_url
        self.client = Github(**kwargs)

    @staticmethod
    def to_descriptor(repo) -> RepositoryDescriptor:
        return RepositoryDescriptor(
            name=repo.name,
            description=repo.description,
            is_private=bool(repo.private),
            is_archived=bool(repo.archived),
            clone_url=repo.clone_url,
            html_url=repo.html_url,
        )

    def list_repositories(self, org: str) -> List[RepositoryDescriptor]:
        # Pages are fetched lazily, so iteration must stay inside the try
        try:
            organization = self.client.get_organization(org)
            repos = [
                self.to_descriptor(repo)
                for repo in organization.get_repos(type="all")
            ]
        except GithubException as e:
            raise AccessError(
                f"Cannot list repositories of {org}: {describe_error(e)}"
            ) from e

        logger.debug(f"[LIST] {len(repos)} repositories in {org}")
        return repos

    def get_repository(self, org: str, name: str) -> Optional[RepositoryDescriptor]:
        try:
            return self.to_descriptor(self.client.get_repo(f"{org}/{name}"))
        except GithubException as e:
            if e.status == 404:
                return None
            raise RemoteError(
                f"Failed to get {org}/{name}: {describe_error(e)}", e.status
            ) from e

    def create_repository(self, org: str, spec: RepositorySpec) -> RepositoryDescriptor:
        try:
            organization = self.client.get_organization(org)
            repo = organization.create_repo(
                spec.name,
                description=spec.description,
                private=spec.private,
                has_issues=spec.has_issues,
                has_wiki=spec.has_wiki,
                has_projects=spec.has_projects,
            )
        except GithubException as e:
            message = describe_error(e)
            if e.status == 422 and "already exists" in message:
                raise ConflictError(
                    f"Repository {org}/{spec.name} already exists", e.status
                ) from e
            raise RemoteError(
                f"Failed to create {org}/{spec.name}: {message}", e.status
            ) from e

        return self.to_descriptor(repo)

    def delete_repository(self, org: str, name: str) -> DeleteResult:
        try:
            self.client.get_repo(f"{org}/{name}").delete()
        except GithubException as e:
            if e.status == 404:
                return DeleteResult.NOT_FOUND
            # Throttling also answers 403
            if e.status == 403 and not isinstance(e, RateLimitExceededException):
                return DeleteResult.FORBIDDEN
            raise RemoteError(
                f"Failed to delete {org}/{name}: {describe_error(e)}", e.status
            ) from e

        return DeleteResult.DELETED
