"""bfmeta core — data models and exceptions."""

from bfmeta.core.exceptions import (
    AnnotationParseError,
    BfmetaError,
    ChannelCountMismatchError,
    EmptyOutputError,
    NoXmlContentError,
    ReportParseError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    XmlParseError,
)
from bfmeta.core.models import (
    ChannelRecord,
    GroupingResult,
    ImageAcquisition,
    InstrumentInfo,
    ObjectiveInfo,
    OutputDocument,
    PhysicalPixelSize,
    PixelDims,
    SampleAnnotation,
    SampleAnnotationSet,
    SeriesGroup,
    SeriesRecord,
)

__all__ = [
    "ChannelRecord",
    "GroupingResult",
    "ImageAcquisition",
    "InstrumentInfo",
    "ObjectiveInfo",
    "OutputDocument",
    "PhysicalPixelSize",
    "PixelDims",
    "SampleAnnotation",
    "SampleAnnotationSet",
    "SeriesGroup",
    "SeriesRecord",
    "BfmetaError",
    "ToolError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "ToolTimeoutError",
    "EmptyOutputError",
    "ReportParseError",
    "NoXmlContentError",
    "XmlParseError",
    "AnnotationParseError",
    "ChannelCountMismatchError",
]
