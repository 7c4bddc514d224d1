"""
Shared fixtures and in-memory fakes

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

from pathlib import Path

import pytest
from loguru import logger

from org_mirror.base import (
    DeleteResult,
    RepositoryClient,
    RepositoryDescriptor,
)
from org_mirror.config import MirrorConfig


class FakeRepositoryClient(RepositoryClient):
    """Records every call; behaviour is scripted per repository name"""

    def __init__(self, repos=None, delete_results=None, existing=None):
        super().__init__("fake-token")
        self.repos = list(repos or [])
        self.delete_results = dict(delete_results or {})
        self.existing = dict(existing or {})
        self.create_errors = {}
        self.list_error = None
        self.calls = []
        self.created_specs = []

    def list_repositories(self, org):
        self.calls.append(("list", org, None))
        if self.list_error:
            raise self.list_error
        return list(self.repos)

    def get_repository(self, org, name):
        self.calls.append(("get", org, name))
        result = self.existing.get(name)
        if isinstance(result, Exception):
            raise result
        return result

    def create_repository(self, org, spec):
        self.calls.append(("create", org, spec.name))
        self.created_specs.append(spec)
        error = self.create_errors.get(spec.name)
        if error:
            raise error
        return RepositoryDescriptor(
            name=spec.name,
            description=spec.description,
            is_private=spec.private,
            clone_url=f"https://github.com/{org}/{spec.name}.git",
            html_url=f"https://github.com/{org}/{spec.name}",
        )

    def delete_repository(self, org, name):
        self.calls.append(("delete", org, name))
        result = self.delete_results.get(name, DeleteResult.NOT_FOUND)
        if isinstance(result, list):
            result = result.pop(0) if len(result) > 1 else result[0]
        if isinstance(result, Exception):
            raise result
        return result

    def calls_for(self, name):
        return [op for op, _, repo in self.calls if repo == name]


class FakeRunner:
    """Command runner stand-in; clone creates the target directory"""

    def __init__(self, fail_clone=(), fail_push=()):
        self.fail_clone = set(fail_clone)
        self.fail_push = set(fail_push)
        self.commands = []

    def run(self, command, working_directory=None):
        self.commands.append((list(command), working_directory))
        verb = command[1]
        if verb == "clone":
            target = Path(command[-1])
            if target.name in self.fail_clone:
                return False
            target.mkdir(parents=True, exist_ok=True)
            return True
        if verb == "push":
            return Path(working_directory).name not in self.fail_push
        return True

    def verbs_for(self, name):
        verbs = []
        for command, cwd in self.commands:
            target = command[-1] if command[1] == "clone" else cwd
            if Path(target).name == name:
                verbs.append(command[1])
        return verbs


def make_repo(name, **kwargs):
    kwargs.setdefault("clone_url", f"https://github.com/source-org/{name}.git")
    return RepositoryDescriptor(name=name, **kwargs)


@pytest.fixture(autouse=True)
def silence_loguru():
    """Drop handlers added by tests so later tests never write to stale streams"""
    yield
    logger.remove()


@pytest.fixture
def config(tmp_path):
    return MirrorConfig(
        source_org="source-org",
        backup_org="backup-org",
        source_token="src-token",
        backup_token="bak-token",
        protected_repo="github-org-backup",
        settle_delay=2.0,
        work_dir=str(tmp_path / "work"),
    )


@pytest.fixture
def fake_client_class():
    return FakeRepositoryClient


@pytest.fixture
def fake_runner_class():
    return FakeRunner


@pytest.fixture
def repo_factory():
    return make_repo


@pytest.fixture
def sleeps():
    """Collects requested sleep durations instead of sleeping"""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append
