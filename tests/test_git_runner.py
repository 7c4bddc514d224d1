"""
Tests for git_runner module

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

import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

from org_mirror import git_runner
from org_mirror.git_runner import (
    CommandRunner,
    authenticated_url,
    mirror_clone_command,
    mirror_push_command,
    redact,
    repository_url,
    robust_rmtree,
)


class TestUrls:
    """Tests for URL helpers"""

    def test_authenticated_url(self):
        """Test token is embedded as URL userinfo"""
        url = authenticated_url("https://github.com/org/repo.git", "ghp_abc")
        assert url == "https://ghp_abc@github.com/org/repo.git"

    def test_authenticated_url_replaces_userinfo(self):
        """Test existing credentials are replaced, not stacked"""
        url = authenticated_url("https://old@github.com/org/repo.git", "new")
        assert url == "https://new@github.com/org/repo.git"

    def test_authenticated_url_keeps_port(self):
        """Test a custom port survives"""
        url = authenticated_url("https://ghe.local:8443/org/repo.git", "t")
        assert url == "https://t@ghe.local:8443/org/repo.git"

    def test_repository_url(self):
        """Test canonical URL construction"""
        assert (
            repository_url("github.com", "org", "repo")
            == "https://github.com/org/repo.git"
        )

    def test_redact(self):
        """Test credentials are masked in free text"""
        text = "fatal: unable to access 'https://ghp_secret@github.com/org/repo.git/'"
        redacted = redact(text)
        assert "ghp_secret" not in redacted
        assert "https://***@github.com/org/repo.git" in redacted

    def test_redact_leaves_plain_urls(self):
        """Test URLs without credentials are unchanged"""
        assert redact("https://github.com/org/repo.git") == "https://github.com/org/repo.git"


class TestMirrorCommands:
    """Tests for git mirror command builders"""

    def test_clone_command(self):
        """Test mirror clone transfers all refs into the target"""
        assert mirror_clone_command("https://x/y.git", Path("/tmp/y")) == [
            "git",
            "clone",
            "--mirror",
            "https://x/y.git",
            "/tmp/y",
        ]

    def test_push_command(self):
        """Test mirror push targets the destination URL"""
        assert mirror_push_command("https://x/y.git") == [
            "git",
            "push",
            "--mirror",
            "https://x/y.git",
        ]


class TestCommandRunner:
    """Tests for CommandRunner"""

    def test_success_returns_true(self):
        """Test zero exit status returns True"""
        assert CommandRunner().run([sys.executable, "-c", "pass"]) is True

    def test_failure_returns_false(self):
        """Test non-zero exit status returns False without raising"""
        command = [sys.executable, "-c", "import sys; sys.stderr.write('nope'); sys.exit(3)"]
        assert CommandRunner().run(command) is False

    def test_missing_executable_returns_false(self):
        """Test a command that cannot start returns False"""
        assert CommandRunner().run(["definitely-not-a-real-binary-xyz"]) is False

    def test_timeout_returns_false(self):
        """Test a command exceeding the timeout returns False"""
        runner = CommandRunner(timeout=0.5)
        assert runner.run([sys.executable, "-c", "import time; time.sleep(5)"]) is False

    def test_undecodable_stderr_on_success(self):
        """Test non UTF-8 stderr output does not turn a success into an error"""
        script = "import sys; sys.stderr.buffer.write(b'remote: \\xff\\xfe caf\\xe9\\n')"
        assert CommandRunner().run([sys.executable, "-c", script]) is True

    def test_undecodable_stderr_on_failure(self):
        """Test non UTF-8 stderr is still logged when the command fails"""
        script = (
            "import sys; sys.stderr.buffer.write(b'fatal: \\xff\\xfe'); sys.exit(128)"
        )
        assert CommandRunner().run([sys.executable, "-c", script]) is False

    def test_working_directory(self):
        """Test the command runs in the given working directory"""
        with tempfile.TemporaryDirectory() as tmpdir:
            command = [sys.executable, "-c", "open('marker.txt', 'w').close()"]
            assert CommandRunner().run(command, tmpdir) is True
            assert (Path(tmpdir) / "marker.txt").exists()


class TestMirrorIntegration:
    """Integration tests mirroring a local git repository"""

    @pytest.fixture
    def local_git_repo(self):
        """Create a local git repository with a branch and a tag"""
        with tempfile.TemporaryDirectory() as tmpdir:
            repo_path = Path(tmpdir) / "source"
            repo_path.mkdir()

            def git(*args):
                subprocess.run(
                    ["git", *args], cwd=repo_path, capture_output=True, check=True
                )

            git("init")
            git("config", "user.email", "test@test.com")
            git("config", "user.name", "Test User")
            (repo_path / "README.md").write_text("# Test Repository\n")
            git("add", "README.md")
            git("commit", "-m", "Initial commit")
            git("tag", "v1.0")
            git("branch", "feature")

            yield repo_path

    def test_clone_and_push_mirror(self, local_git_repo):
        """Test mirror clone then mirror push reproduces every ref"""
        runner = CommandRunner()
        with tempfile.TemporaryDirectory() as workdir:
            clone_path = Path(workdir) / "clone"
            target = Path(workdir) / "target.git"
            subprocess.run(
                ["git", "init", "--bare", str(target)], capture_output=True, check=True
            )

            assert runner.run(mirror_clone_command(str(local_git_repo), clone_path), workdir)
            assert runner.run(mirror_push_command(str(target)), clone_path)

            refs = subprocess.run(
                ["git", "for-each-ref", "--format=%(refname)"],
                cwd=target,
                capture_output=True,
                text=True,
                check=True,
            ).stdout.split()
            assert "refs/tags/v1.0" in refs
            assert "refs/heads/feature" in refs

    def test_clone_missing_source_fails(self):
        """Test cloning a non-existent source returns False"""
        with tempfile.TemporaryDirectory() as workdir:
            command = mirror_clone_command(
                str(Path(workdir) / "missing"), Path(workdir) / "clone"
            )
            assert CommandRunner().run(command, workdir) is False


class TestRobustRmtree:
    """Tests for robust_rmtree"""

    def test_removes_tree(self):
        """Test a populated tree is removed"""
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "tree"
            (target / "a" / "b").mkdir(parents=True)
            (target / "a" / "b" / "file").write_text("x")

            assert robust_rmtree(target) is True
            assert not target.exists()

    def test_missing_path(self):
        """Test a missing path counts as removed"""
        assert robust_rmtree(Path("/nonexistent/org-mirror-path")) is True

    def test_read_only_tree(self, tmp_path):
        """Test write-protected pack files and directories are removed"""
        target = tmp_path / "repo.git"
        pack_dir = target / "objects" / "pack"
        pack_dir.mkdir(parents=True)
        pack = pack_dir / "pack-1.pack"
        pack.write_text("x")
        pack.chmod(0o444)
        pack_dir.chmod(0o555)

        assert robust_rmtree(target) is True
        assert not target.exists()

    def test_retries_transient_failure(self, tmp_path, monkeypatch):
        """Test a failure followed by success still removes the tree"""
        target = tmp_path / "tree"
        target.mkdir()
        real_rmtree = git_runner.shutil.rmtree
        attempts = []

        def flaky(path):
            attempts.append(path)
            if len(attempts) == 1:
                raise OSError("Directory not empty")
            real_rmtree(path)

        monkeypatch.setattr(git_runner.shutil, "rmtree", flaky)
        monkeypatch.setattr(git_runner.time, "sleep", lambda seconds: None)

        assert robust_rmtree(target) is True
        assert len(attempts) == 2

    def test_gives_up_after_max_retries(self, tmp_path, monkeypatch):
        """Test persistent failures return False after max_retries attempts"""
        target = tmp_path / "tree"
        target.mkdir()
        attempts = []

        def broken(path):
            attempts.append(path)
            raise OSError("Device or resource busy")

        monkeypatch.setattr(git_runner.shutil, "rmtree", broken)
        monkeypatch.setattr(git_runner.time, "sleep", lambda seconds: None)

        assert robust_rmtree(target, max_retries=2) is False
        assert len(attempts) == 2
        assert target.exists()
