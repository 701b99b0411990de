"""bfmeta IO — Bio-Formats invocation, report parsing, YAML documents."""

from __future__ import annotations

from pathlib import Path

from bfmeta.io.annotations import (
    AnnotationState,
    ConfirmGate,
    ConfirmResult,
    SampleAnnotationStore,
    default_annotation_set,
    gate_result,
)
from bfmeta.io.assembler import assemble, output_path_for
from bfmeta.io.config import ToolConfig
from bfmeta.io.engine import BatchPlan, ExtractionEngine, ExtractionResult, FileOutcome
from bfmeta.io.grouping import format_groups, group_series
from bfmeta.io.invoker import BioFormatsTool, ReportMode
from bfmeta.io.text_report import parse_text_report
from bfmeta.io.xml_report import parse_xml_report

__all__ = [
    "AnnotationState",
    "BatchPlan",
    "BioFormatsTool",
    "ConfirmGate",
    "ConfirmResult",
    "ExtractionEngine",
    "ExtractionResult",
    "FileOutcome",
    "ReportMode",
    "SampleAnnotationStore",
    "ToolConfig",
    "assemble",
    "default_annotation_set",
    "extract",
    "format_groups",
    "gate_result",
    "group_series",
    "output_path_for",
    "parse_text_report",
    "parse_xml_report",
]


def extract(
    path: Path,
    extension: str | None = None,
    config: ToolConfig | None = None,
) -> ExtractionResult:
    """Extract metadata documents without prompting. Convenience wrapper.

    Args:
        path: Image file or directory.
        extension: File extension filter; required for directories.
        config: Tool configuration. Read from the environment if not provided.

    Returns:
        ExtractionResult with one outcome per image.
    """
    return ExtractionEngine(BioFormatsTool(config)).run(Path(path), extension)
