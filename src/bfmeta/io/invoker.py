"""BioFormatsTool — runs ``showinf`` / ImageInfo as a subprocess."""

from __future__ import annotations

import enum
import logging
import os
import shutil
import signal
import subprocess
from pathlib import Path

from bfmeta.core.exceptions import (
    EmptyOutputError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from bfmeta.io.config import IMAGE_INFO_CLASS, ToolConfig

logger = logging.getLogger(__name__)

# The tool runs in its own process group so a timeout can kill java too.
_POSIX = os.name == "posix"

# No pixel data, no OME-XML validation, no upgrade check.
_METADATA_ONLY_ARGS = ("-nopix", "-novalid", "-no-upgrade")


class ReportMode(enum.Enum):
    """Which report the tool should produce."""

    TEXT = "text"
    XML = "xml"

    @property
    def args(self) -> tuple[str, ...]:
        if self is ReportMode.XML:
            return (*_METADATA_ONLY_ARGS, "-omexml-only")
        return _METADATA_ONLY_ARGS


class BioFormatsTool:
    """Invokes the Bio-Formats command line tool in metadata-only modes.

    Args:
        config: Tool location and timeout. Read from the environment if
            not provided.
    """

    def __init__(self, config: ToolConfig | None = None) -> None:
        self.config = config or ToolConfig.from_env()

    def check(self) -> None:
        """Verify the tool can be launched, before any file is processed.

        Raises:
            ToolNotFoundError: If the executable (or jar) is unavailable.
        """
        cfg = self.config
        if cfg.jar is not None:
            if not cfg.jar.is_file():
                raise ToolNotFoundError(str(cfg.jar))
            if shutil.which(cfg.java) is None:
                raise ToolNotFoundError(cfg.java)
        elif shutil.which(cfg.showinf) is None:
            raise ToolNotFoundError(cfg.showinf)

    def command(self, mode: ReportMode, path: Path) -> list[str]:
        """Build the argument list for one invocation."""
        cfg = self.config
        if cfg.jar is not None:
            base = [
                cfg.java, "-Dfile.encoding=UTF-8",
                "-cp", str(cfg.jar), IMAGE_INFO_CLASS,
            ]
        else:
            base = [cfg.showinf]
        return [*base, *mode.args, str(path)]

    def invoke(self, mode: ReportMode, path: Path) -> str:
        """Run the tool on one file and return its stdout.

        Args:
            mode: Free-text report or OME-XML only.
            path: Image container to read.

        Returns:
            The raw report text.

        Raises:
            ToolNotFoundError: If the executable cannot be started.
            ToolExecutionError: On a non-zero exit code.
            ToolTimeoutError: If the configured timeout elapses.
            EmptyOutputError: If the tool printed nothing.
        """
        path = Path(path)
        command = self.command(mode, path)
        logger.debug("Running %s", " ".join(command))

        try:
            proc = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=_POSIX,
            )
        except FileNotFoundError:
            raise ToolNotFoundError(command[0]) from None

        try:
            stdout, stderr = proc.communicate(timeout=self.config.timeout_seconds)
        except subprocess.TimeoutExpired:
            _kill_tree(proc)
            _, stderr = proc.communicate()
            raise ToolTimeoutError(path, self.config.timeout, stderr or "") from None

        if proc.returncode != 0:
            raise ToolExecutionError(path, proc.returncode, stderr or "")
        if not stdout or not stdout.strip():
            raise EmptyOutputError(path)

        if stderr:
            logger.debug("Bio-Formats stderr for %s: %s", path.name, stderr.strip())
        return stdout


def _kill_tree(proc: subprocess.Popen) -> None:
    """Kill the tool and everything it started (``showinf`` launches java)."""
    if _POSIX:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()
