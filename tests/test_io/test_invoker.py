"""Tests for bfmeta.io.invoker — subprocess.Popen and shutil.which are mocked."""

import os
import subprocess
import time
from pathlib import Path

import pytest

from bfmeta.core.exceptions import (
    EmptyOutputError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from bfmeta.io.config import IMAGE_INFO_CLASS, ToolConfig
from bfmeta.io.invoker import BioFormatsTool, ReportMode


class _FakeProcess:
    """Stand-in for a Popen object with canned output."""

    def __init__(self, recorder, command, kwargs):
        self.recorder = recorder
        self.args = command
        self.kwargs = kwargs
        self.pid = 99999
        self.returncode = None

    def communicate(self, timeout=None):
        self.recorder.timeouts.append(timeout)
        if self.recorder.hang and len(self.recorder.timeouts) == 1:
            raise subprocess.TimeoutExpired(self.args, timeout)
        self.returncode = self.recorder.returncode
        return self.recorder.stdout, self.recorder.stderr


class _Recorder:
    """Stand-in for subprocess.Popen that records each launch."""

    def __init__(self, returncode=0, stdout="report", stderr="", exc=None, hang=False):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.exc = exc
        self.hang = hang
        self.calls = []
        self.timeouts = []
        self.killed = []

    def __call__(self, command, **kwargs):
        self.calls.append((command, kwargs))
        if self.exc is not None:
            raise self.exc
        return _FakeProcess(self, command, kwargs)


@pytest.fixture
def fake_popen(monkeypatch):
    def install(**kwargs):
        recorder = _Recorder(**kwargs)
        monkeypatch.setattr("bfmeta.io.invoker.subprocess.Popen", recorder)
        monkeypatch.setattr("bfmeta.io.invoker._kill_tree", recorder.killed.append)
        return recorder
    return install


class TestCommand:
    def test_showinf_xml(self):
        tool = BioFormatsTool(ToolConfig(showinf="showinf"))
        cmd = tool.command(ReportMode.XML, Path("/d/a.czi"))
        assert cmd[0] == "showinf"
        assert cmd[-1] == "/d/a.czi"
        assert "-omexml-only" in cmd
        assert "-nopix" in cmd

    def test_showinf_text(self):
        cmd = BioFormatsTool(ToolConfig()).command(ReportMode.TEXT, Path("a.czi"))
        assert "-omexml-only" not in cmd
        assert "-nopix" in cmd

    def test_jar(self):
        tool = BioFormatsTool(ToolConfig(jar=Path("/opt/bf.jar"), java="java"))
        cmd = tool.command(ReportMode.XML, Path("a.czi"))
        assert cmd[:5] == ["java", "-Dfile.encoding=UTF-8", "-cp", "/opt/bf.jar", IMAGE_INFO_CLASS]
        assert cmd[-1] == "a.czi"


class TestCheck:
    def test_showinf_on_path(self, monkeypatch):
        monkeypatch.setattr("bfmeta.io.invoker.shutil.which", lambda name: f"/usr/bin/{name}")
        BioFormatsTool(ToolConfig()).check()

    def test_showinf_missing(self, monkeypatch):
        monkeypatch.setattr("bfmeta.io.invoker.shutil.which", lambda name: None)
        with pytest.raises(ToolNotFoundError) as exc_info:
            BioFormatsTool(ToolConfig()).check()
        assert exc_info.value.tool == "showinf"

    def test_jar_missing(self, tmp_path, monkeypatch):
        monkeypatch.setattr("bfmeta.io.invoker.shutil.which", lambda name: f"/usr/bin/{name}")
        with pytest.raises(ToolNotFoundError):
            BioFormatsTool(ToolConfig(jar=tmp_path / "absent.jar")).check()

    def test_java_missing(self, tmp_path, monkeypatch):
        jar = tmp_path / "bf.jar"
        jar.write_bytes(b"")
        monkeypatch.setattr("bfmeta.io.invoker.shutil.which", lambda name: None)
        with pytest.raises(ToolNotFoundError) as exc_info:
            BioFormatsTool(ToolConfig(jar=jar)).check()
        assert exc_info.value.tool == "java"

    def test_jar_present(self, tmp_path, monkeypatch):
        jar = tmp_path / "bf.jar"
        jar.write_bytes(b"")
        monkeypatch.setattr("bfmeta.io.invoker.shutil.which", lambda name: f"/usr/bin/{name}")
        BioFormatsTool(ToolConfig(jar=jar)).check()


class TestInvoke:
    def test_returns_stdout(self, fake_popen):
        recorder = fake_popen(stdout="Series count = 1\n")
        out = BioFormatsTool(ToolConfig(timeout=10)).invoke(ReportMode.TEXT, Path("a.czi"))
        assert out == "Series count = 1\n"
        [(_, kwargs)] = recorder.calls
        assert recorder.timeouts == [10]
        assert kwargs["stdout"] == subprocess.PIPE
        assert kwargs["stderr"] == subprocess.PIPE
        assert kwargs["start_new_session"] == (os.name == "posix")

    def test_no_timeout(self, fake_popen):
        recorder = fake_popen()
        BioFormatsTool(ToolConfig(timeout=0)).invoke(ReportMode.XML, Path("a.czi"))
        assert recorder.timeouts == [None]

    def test_nonzero_exit(self, fake_popen):
        fake_popen(returncode=3, stdout="", stderr="line one\nUnknown file format\n")
        with pytest.raises(ToolExecutionError) as exc_info:
            BioFormatsTool(ToolConfig()).invoke(ReportMode.XML, Path("a.czi"))
        assert exc_info.value.returncode == 3
        assert "Unknown file format" in str(exc_info.value)

    @pytest.mark.parametrize("stdout", ["", "  \n"])
    def test_empty_output(self, fake_popen, stdout):
        fake_popen(stdout=stdout)
        with pytest.raises(EmptyOutputError):
            BioFormatsTool(ToolConfig()).invoke(ReportMode.XML, Path("a.czi"))

    def test_timeout_kills_process_tree(self, fake_popen):
        recorder = fake_popen(stdout="", stderr="partial", hang=True)
        with pytest.raises(ToolTimeoutError) as exc_info:
            BioFormatsTool(ToolConfig(timeout=5)).invoke(ReportMode.XML, Path("a.czi"))
        assert exc_info.value.timeout == 5
        assert exc_info.value.stderr == "partial"
        assert isinstance(exc_info.value, ToolExecutionError)
        assert len(recorder.killed) == 1
        assert recorder.timeouts == [5, None]

    def test_executable_missing(self, fake_popen):
        fake_popen(exc=FileNotFoundError("showinf"))
        with pytest.raises(ToolNotFoundError):
            BioFormatsTool(ToolConfig()).invoke(ReportMode.XML, Path("a.czi"))

    def test_stderr_with_success_is_not_an_error(self, fake_popen):
        fake_popen(stdout="<?xml?>", stderr="SLF4J warning")
        assert BioFormatsTool(ToolConfig()).invoke(ReportMode.XML, Path("a.czi")) == "<?xml?>"


@pytest.mark.skipif(os.name != "posix", reason="needs a POSIX shell")
class TestWrapperScript:
    """Run a real shell wrapper standing in for ``showinf``."""

    def test_timeout_kills_children(self, tmp_path: Path):
        marker = tmp_path / "alive"
        script = tmp_path / "showinf"
        script.write_text(f"#!/bin/sh\nsh -c 'sleep 2; touch \"{marker}\"' &\nwait\n")
        script.chmod(0o755)
        tool = BioFormatsTool(ToolConfig(showinf=str(script), timeout=0.5))
        with pytest.raises(ToolTimeoutError):
            tool.invoke(ReportMode.XML, Path("a.czi"))
        time.sleep(3)
        assert not marker.exists()

    def test_wrapper_output_returned(self, tmp_path: Path):
        script = tmp_path / "showinf"
        script.write_text("#!/bin/sh\necho \"Series count = 1\"\n")
        script.chmod(0o755)
        tool = BioFormatsTool(ToolConfig(showinf=str(script), timeout=10))
        assert tool.invoke(ReportMode.TEXT, Path("a.czi")).strip() == "Series count = 1"
