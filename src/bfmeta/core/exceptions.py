"""Exception classes for bfmeta."""

from __future__ import annotations

from pathlib import Path


class BfmetaError(Exception):
    """Base exception for all metadata extraction errors."""


class ToolError(BfmetaError):
    """Base class for failures of the external Bio-Formats tool."""


class ToolNotFoundError(ToolError):
    """Raised when the Bio-Formats executable or jar cannot be located."""

    def __init__(self, tool: str | None = None) -> None:
        msg = f"Bio-Formats tool not found: {tool}" if tool else "Bio-Formats tool not found"
        super().__init__(msg)
        self.tool = tool


class ToolExecutionError(ToolError):
    """Raised when the tool exits with a non-zero return code."""

    def __init__(
        self, path: Path | str, returncode: int | None, stderr: str = "",
    ) -> None:
        msg = f"Bio-Formats failed on {path} (exit code {returncode})"
        detail = stderr.strip()
        if detail:
            msg = f"{msg}: {detail.splitlines()[-1]}"
        super().__init__(msg)
        self.path = Path(path)
        self.returncode = returncode
        self.stderr = stderr


class ToolTimeoutError(ToolExecutionError):
    """Raised when the tool does not finish within the configured timeout."""

    def __init__(self, path: Path | str, timeout: float, stderr: str = "") -> None:
        ToolError.__init__(self, f"Bio-Formats timed out after {timeout:g}s on {path}")
        self.path = Path(path)
        self.returncode = None
        self.stderr = stderr
        self.timeout = timeout


class EmptyOutputError(ToolError):
    """Raised when the tool succeeds but writes nothing to stdout."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Bio-Formats produced no output for {path}")
        self.path = Path(path)


class ReportParseError(BfmetaError):
    """Base class for reports that cannot be parsed."""


class NoXmlContentError(ReportParseError):
    """Raised when a report contains no ``<?xml`` marker."""

    def __init__(self, source: str | None = None) -> None:
        msg = f"No XML content in report for {source}" if source else "No XML content in report"
        super().__init__(msg)
        self.source = source


class XmlParseError(ReportParseError):
    """Raised when the XML portion of a report is not well-formed."""


class AnnotationParseError(BfmetaError):
    """Raised when a sample annotation file cannot be read."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Invalid sample info file {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class ChannelCountMismatchError(BfmetaError):
    """Raised when sample annotations describe a different channel layout."""

    def __init__(self, image_channels: int, annotated_channels: int) -> None:
        super().__init__(
            f"Image has {image_channels} channel(s) but sample info "
            f"describes {annotated_channels}"
        )
        self.image_channels = image_channels
        self.annotated_channels = annotated_channels


# Errors that abort a whole batch run.
FATAL_ERRORS: tuple[type[BfmetaError], ...] = (ToolNotFoundError, AnnotationParseError)

# Errors local to one image; the batch logs them and moves on.
PER_FILE_ERRORS: tuple[type[BfmetaError], ...] = (
    ToolExecutionError,
    EmptyOutputError,
    ReportParseError,
    ChannelCountMismatchError,
)
