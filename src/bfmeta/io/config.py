"""Configuration for locating and running the Bio-Formats tool."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_SHOWINF = "showinf"
DEFAULT_JAVA = "java"
DEFAULT_TIMEOUT = 300.0

IMAGE_INFO_CLASS = "loci.formats.tools.ImageInfo"

# Checked in order; JAR_PATH is what the bundled launcher scripts set.
_JAR_ENV_VARS = ("BFMETA_JAR", "JAR_PATH")


@dataclass(frozen=True)
class ToolConfig:
    """Where the Bio-Formats tool lives and how long it may run.

    When ``jar`` is set, the tool is launched as
    ``java -cp <jar> loci.formats.tools.ImageInfo``; otherwise ``showinf``
    is run directly.

    Attributes:
        showinf: Name or path of the ``showinf`` executable.
        jar: Path to ``bioformats_package.jar``, or None.
        java: Name or path of the java executable.
        timeout: Seconds before an invocation is abandoned; 0 disables.
    """

    showinf: str = DEFAULT_SHOWINF
    jar: Path | None = None
    java: str = DEFAULT_JAVA
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        """Validate the timeout at construction time."""
        if self.timeout < 0:
            raise ValueError(f"timeout must be >= 0, got {self.timeout}")
        if self.jar is not None and not isinstance(self.jar, Path):
            object.__setattr__(self, "jar", Path(self.jar))

    @property
    def timeout_seconds(self) -> float | None:
        """Timeout suitable for ``Popen.communicate`` (None when disabled)."""
        return self.timeout or None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ToolConfig:
        """Build a config from ``BFMETA_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ValueError: If ``BFMETA_TIMEOUT`` is not a number.
        """
        env = os.environ if environ is None else environ

        jar: Path | None = None
        for name in _JAR_ENV_VARS:
            if env.get(name):
                jar = Path(env[name])
                break

        timeout_str = env.get("BFMETA_TIMEOUT")
        try:
            timeout = float(timeout_str) if timeout_str else DEFAULT_TIMEOUT
        except ValueError:
            raise ValueError(f"BFMETA_TIMEOUT is not a number: {timeout_str!r}") from None

        return cls(
            showinf=env.get("BFMETA_SHOWINF") or DEFAULT_SHOWINF,
            jar=jar,
            java=env.get("BFMETA_JAVA") or DEFAULT_JAVA,
            timeout=timeout,
        )
