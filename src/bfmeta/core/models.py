"""Data models for extracted acquisition metadata and sample annotations."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class SeriesRecord:
    """Dimensional metadata of one series in a container file.

    Equality covers the dimensions only, so records from different series
    compare equal when their shapes match. ``index`` is the series number in
    the report, or None for records not read from one.
    """

    timepoints: int = 0
    channels: int = 0
    z_stacks: int = 0
    width: int = 0
    height: int = 0
    is_thumbnail: bool = field(default=False, compare=False)
    index: int | None = field(default=None, compare=False)


@dataclass(frozen=True)
class SeriesGroup:
    """A run of adjacent series sharing the same dimensions."""

    start_index: int
    end_index: int
    record: SeriesRecord

    @property
    def count(self) -> int:
        return self.end_index - self.start_index + 1


@dataclass(frozen=True)
class GroupingResult:
    """Output of series grouping.

    ``no_series`` is True when there was nothing to group, which callers
    report differently from a computed (possibly empty) group list.
    """

    groups: tuple[SeriesGroup, ...] = ()
    no_series: bool = False

    def __iter__(self):
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)


@dataclass(frozen=True)
class ChannelRecord:
    """One channel of the primary series of an image."""

    id: str
    name: str = ""
    emission_wavelength: float | None = None
    excitation_wavelength: float | None = None
    samples_per_pixel: int = 1


@dataclass(frozen=True)
class PixelDims:
    """Pixel dimensions of an image."""

    size_x: int = 0
    size_y: int = 0
    size_z: int = 0
    size_c: int = 0
    size_t: int = 0


@dataclass(frozen=True)
class PhysicalPixelSize:
    """Physical pixel size in the units reported by the tool (usually µm)."""

    x: float | None = None
    y: float | None = None
    z: float | None = None


@dataclass(frozen=True)
class ObjectiveInfo:
    """An objective lens described in the instrument metadata."""

    id: str
    model: str | None = None
    nominal_magnification: float | None = None
    lens_na: float | None = None
    immersion: str | None = None


@dataclass(frozen=True)
class InstrumentInfo:
    """Microscope and objectives, when the source format records them."""

    id: str
    microscope: str | None = None
    objectives: tuple[ObjectiveInfo, ...] = ()


@dataclass(frozen=True)
class ImageAcquisition:
    """Acquisition metadata of one image container."""

    acquisition_date: str = ""
    pixel_dims: PixelDims = field(default_factory=PixelDims)
    physical_pixel_size: PhysicalPixelSize = field(default_factory=PhysicalPixelSize)
    channels: tuple[ChannelRecord, ...] = ()
    name: str = ""
    instrument: InstrumentInfo | None = None

    @property
    def channels_consistent(self) -> bool:
        """Whether the channel list agrees with SizeC (vacuously true if empty)."""
        return not self.channels or len(self.channels) == self.pixel_dims.size_c


@dataclass(frozen=True)
class SampleAnnotation:
    """User-supplied annotation for one channel."""

    fluorophore: str
    sample_name: str


@dataclass(frozen=True)
class SampleAnnotationSet:
    """Annotations shared by every image in a batch.

    ``channels`` maps ``"Channel N"`` labels (1-based) to annotations and is
    read-only once constructed.
    """

    channels: Mapping[str, SampleAnnotation]
    external_reference_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "channels", MappingProxyType(dict(self.channels)))


@dataclass(frozen=True)
class OutputDocument:
    """One image's acquisition metadata merged with the batch's annotations."""

    acquisition: ImageAcquisition
    sample: SampleAnnotationSet | None = None


def channel_label(index: int) -> str:
    """Return the ``"Channel N"`` label for a 0-based channel index."""
    return f"Channel {index + 1}"
