"""
Tests for Go environment detection (goreinstall/environment.py).
"""

import json
import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from goreinstall.environment import GoEnv, find_binaries, get_go_env, resolve_binary_path
from goreinstall.errors import GoEnvError, NoGoBinOrPath


def completed(stdout="", returncode=0, stderr=""):
    result = MagicMock()
    result.stdout = stdout
    result.stderr = stderr
    result.returncode = returncode
    return result


class TestGoEnv:
    """Tests for the GoEnv dataclass."""

    def test_compiler_version(self):
        assert GoEnv(goversion="go1.22.1").compiler_version == "1.22.1"

    def test_binary_dir_prefers_gobin(self):
        env = GoEnv(gobin="/opt/gobin", gopath="/home/me/go")
        assert env.binary_dir == "/opt/gobin"

    def test_binary_dir_from_first_gopath_entry(self):
        env = GoEnv(gopath=os.pathsep.join(["/home/me/go", "/srv/go"]))
        assert env.binary_dir == os.path.join("/home/me/go", "bin")

    def test_no_gobin_or_gopath(self):
        with pytest.raises(NoGoBinOrPath):
            GoEnv().binary_dir

    def test_from_dict_handles_nulls(self):
        env = GoEnv.from_dict({"GOBIN": None, "GOPATH": "/go", "GOVERSION": "go1.21.0"})
        assert env.gobin == ""
        assert env.gopath == "/go"

    def test_immutable(self):
        env = GoEnv()
        with pytest.raises(AttributeError):
            env.gobin = "/x"


class TestGetGoEnv:
    """Tests for running go env -json."""

    @patch("goreinstall.environment.subprocess.run")
    def test_success(self, mock_run):
        mock_run.return_value = completed(json.dumps({
            "GOBIN": "",
            "GOPATH": "/home/me/go",
            "GOVERSION": "go1.22.1",
            "GOOS": "linux",
        }))

        env = get_go_env()

        assert env == GoEnv(gobin="", gopath="/home/me/go", goversion="go1.22.1")
        assert mock_run.call_args[0][0] == ["go", "env", "-json"]

    @patch("goreinstall.environment.subprocess.run")
    def test_custom_go_command(self, mock_run):
        mock_run.return_value = completed(json.dumps({"GOVERSION": "go1.21.0"}))

        get_go_env("/usr/lib/go-1.21/bin/go")

        assert mock_run.call_args[0][0][0] == "/usr/lib/go-1.21/bin/go"

    @patch("goreinstall.environment.subprocess.run")
    def test_go_missing(self, mock_run):
        mock_run.side_effect = FileNotFoundError("go")
        with pytest.raises(GoEnvError):
            get_go_env()

    @patch("goreinstall.environment.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired("go", 30)
        with pytest.raises(GoEnvError):
            get_go_env()

    @patch("goreinstall.environment.subprocess.run")
    def test_non_zero_exit(self, mock_run):
        mock_run.return_value = completed(returncode=1, stderr="go: unknown flag")
        with pytest.raises(GoEnvError, match="unknown flag"):
            get_go_env()

    @patch("goreinstall.environment.subprocess.run")
    def test_invalid_json(self, mock_run):
        mock_run.return_value = completed("GOPATH=/go")
        with pytest.raises(GoEnvError, match="JSON"):
            get_go_env()


class TestFindBinaries:
    """Tests for binary discovery."""

    def test_lists_files_sorted(self, tmp_path):
        """Test files are listed and directories ignored."""
        (tmp_path / "staticcheck").write_bytes(b"")
        (tmp_path / "gopls").write_bytes(b"")
        (tmp_path / "subdir").mkdir()

        paths = find_binaries(GoEnv(gobin=str(tmp_path)))

        assert paths == [str(tmp_path / "gopls"), str(tmp_path / "staticcheck")]

    def test_gopath_bin(self, tmp_path):
        (tmp_path / "bin").mkdir()
        (tmp_path / "bin" / "dlv").write_bytes(b"")

        assert find_binaries(GoEnv(gopath=str(tmp_path))) == [str(tmp_path / "bin" / "dlv")]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(GoEnvError):
            find_binaries(GoEnv(gobin=str(tmp_path / "missing")))


class TestResolveBinaryPath:
    """Tests for resolving names given on the command line."""

    def test_bare_name(self):
        assert resolve_binary_path("gopls", GoEnv(gobin="/gobin")) == os.path.join("/gobin", "gopls")

    def test_path_kept(self):
        assert resolve_binary_path("./bin/gopls", GoEnv(gobin="/gobin")) == "./bin/gopls"

    def test_existing_file_kept(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "gopls").write_bytes(b"")
        assert resolve_binary_path("gopls", GoEnv(gobin="/gobin")) == "gopls"

    def test_no_binary_dir(self):
        assert resolve_binary_path("gopls", GoEnv()) == "gopls"
