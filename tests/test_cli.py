import subprocess
from pathlib import Path

import psutil
import pytest

from shellrc import context, doctor
from shellrc.cli import main
from shellrc.profile import START_MARKER


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USER", "alice")
    monkeypatch.setenv("SHELLRC_CONFIG", str(home / "shellrc.yml"))
    monkeypatch.delenv("VIRTUAL_ENV", raising=False)
    monkeypatch.delenv("debian_chroot", raising=False)
    monkeypatch.setattr(context, "CHROOT_FILE", home / "no_chroot")
    monkeypatch.setattr(context, "get_host", lambda: "box")
    monkeypatch.setattr(context, "is_root", lambda: False)
    monkeypatch.chdir(home)
    return home


@pytest.fixture
def no_tools(monkeypatch: pytest.MonkeyPatch) -> None:
    def run(args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(context.subprocess, "run", run)


class TestPromptCommand:
    def test_renders_plain_prompt(
        self, home: Path, no_tools: None, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        monkeypatch.setenv("VIRTUAL_ENV", "/opt/venvs/myenv")
        assert main(["prompt", "--shell", "plain", "--exit-status", "1"]) == 0
        out = capsys.readouterr().out
        assert "(venv:myenv) " in out
        assert "alice@box" in out
        assert "(k8s:" not in out
        assert out.endswith("$\033[0m ")
        assert "\033[01;31m$" in out

    def test_broken_config_falls_back_to_defaults(
        self, home: Path, no_tools: None, capsys
    ) -> None:
        (home / "shellrc.yml").write_text("prompt: [unclosed\n")
        assert main(["prompt", "--shell", "bash"]) == 0
        captured = capsys.readouterr()
        assert "alice@box" in captured.out
        assert "\001" in captured.out
        assert captured.err == ""

    def test_detects_shell_when_not_given(
        self, home: Path, no_tools: None, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        monkeypatch.setattr("shellrc.cli.detect_shell", lambda: "zsh")
        main(["prompt"])
        assert "%{" in capsys.readouterr().out

    def test_undecodable_config_falls_back(
        self, home: Path, no_tools: None, capsys
    ) -> None:
        (home / "shellrc.yml").write_bytes(b"# caf\xe9\nprompt: {}\n")
        assert main(["prompt", "--shell", "bash", "--exit-status", "2"]) == 0
        captured = capsys.readouterr()
        assert "alice@box" in captured.out
        assert captured.err == ""


class TestInitCommand:
    def test_init_bash(self, home: Path) -> None:
        assert main(["init", "--shell", "bash"]) == 0
        assert START_MARKER in (home / ".bashrc").read_text()
        assert (home / ".shellrc_profile").exists()

    def test_init_rejects_invalid_config(self, home: Path) -> None:
        (home / "shellrc.yml").write_text("prompt:\n  kube_source: helm\n")
        assert main(["init", "--shell", "bash"]) == 1
        assert not (home / ".bashrc").exists()

    def test_init_with_undecodable_bashrc(self, home: Path) -> None:
        (home / ".bashrc").write_bytes(b"# caf\xe9\nalias ll='ls -l'\n")
        assert main(["init", "--shell", "bash"]) == 0
        content = (home / ".bashrc").read_bytes()
        assert content.startswith(b"# caf\xe9\nalias ll='ls -l'\n")
        assert START_MARKER.encode() in content


class TestConfigCommand:
    def test_init_then_show(self, home: Path, capsys) -> None:
        assert main(["config", "--init"]) == 0
        assert (home / "shellrc.yml").exists()
        capsys.readouterr()
        assert main(["config"]) == 0
        assert "kube_source: kubectl" in capsys.readouterr().out

    def test_explicit_config_path(self, home: Path, tmp_path: Path, capsys) -> None:
        path = tmp_path / "other.yml"
        path.write_text("prompt:\n  kube_source: kubeconfig\n")
        assert main(["--config", str(path), "config"]) == 0
        assert "kube_source: kubeconfig" in capsys.readouterr().out


class TestDoctor:
    def test_reports_missing_tools(
        self, home: Path, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        monkeypatch.setattr(doctor.shutil, "which", lambda name: None)
        monkeypatch.setattr(doctor, "detect_shell", lambda: "bash")
        assert main(["doctor"]) == 0
        err = capsys.readouterr().err
        assert "git not found" in err
        assert "kubectl not found" in err
        assert "prompt hook not enabled" in err

    def test_undecodable_bashrc(
        self, home: Path, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        monkeypatch.setattr(doctor.shutil, "which", lambda name: None)
        monkeypatch.setattr(doctor, "detect_shell", lambda: "bash")
        (home / ".bashrc").write_bytes(b"# caf\xe9\n")
        assert main(["doctor"]) == 0
        assert "prompt hook not enabled" in capsys.readouterr().err

    def test_invalid_config_fails(
        self, home: Path, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        monkeypatch.setattr(doctor.shutil, "which", lambda name: None)
        monkeypatch.setattr(doctor, "detect_shell", lambda: None)
        (home / "shellrc.yml").write_text("prompt:\n  query_timeout: soon\n")
        assert main(["doctor"]) == 1
        assert "query_timeout" in capsys.readouterr().err

    def test_tool_version(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(doctor.shutil, "which", lambda name: f"/usr/bin/{name}")

        def run(args, **kwargs):
            return subprocess.CompletedProcess(args, 0, stdout="git version 2.43.0\n", stderr="")

        monkeypatch.setattr(context.subprocess, "run", run)
        info = doctor.get_tool_info("git", ["--version"])
        assert info.version == "git version 2.43.0"


class TestDetectShell:
    def test_login_shell_name(self, monkeypatch: pytest.MonkeyPatch) -> None:
        class FakeProcess:
            def __init__(self, pid: int) -> None:
                self.pid = pid

            def name(self) -> str:
                return "-bash"

        monkeypatch.setattr(doctor.psutil, "Process", FakeProcess)
        assert doctor.detect_shell(123) == "bash"

    def test_unsupported_shell(self, monkeypatch: pytest.MonkeyPatch) -> None:
        class FakeProcess:
            def __init__(self, pid: int) -> None:
                pass

            def name(self) -> str:
                return "fish"

        monkeypatch.setattr(doctor.psutil, "Process", FakeProcess)
        assert doctor.detect_shell(123) is None

    def test_vanished_parent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def gone(pid: int):
            raise psutil.NoSuchProcess(pid)

        monkeypatch.setattr(doctor.psutil, "Process", gone)
        assert doctor.detect_shell(123) is None
