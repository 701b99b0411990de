"""Parse the free-text ``showinf -nopix`` report into SeriesRecords.

The report lists core metadata per series::

    Series count = 2
    Series #0 :
        Width = 512
        Height = 512
        SizeZ = 5
        SizeT = 1
        SizeC = 2
        Thumbnail series = false
    Series #1 :
        ...
    Reading global metadata
    ...

Fields are extracted inside each ``Series #i :`` block, so a field missing
from one series can never shift values between series. Reports without
block markers fall back to ordered per-field lists.
"""

from __future__ import annotations

import logging
import re

from bfmeta.core.models import ChannelRecord, ImageAcquisition, PixelDims, SeriesRecord

logger = logging.getLogger(__name__)

_SERIES_COUNT_RE = re.compile(r"^\s*Series count\s*=\s*(\d+)", re.MULTILINE)
_SERIES_MARKER_RE = re.compile(r"^\s*Series #(\d+)\s*:", re.MULTILINE)
# Core metadata ends where global / original metadata begins; vendor keys
# there may reuse names such as "Width".
_CORE_END_RE = re.compile(r"^\s*Reading (?:global )?metadata", re.MULTILINE)

# SeriesRecord attribute -> pattern with one capture group.
_INT_FIELDS: dict[str, re.Pattern[str]] = {
    "timepoints": re.compile(r"^\s*SizeT\s*=\s*(\d+)", re.MULTILINE),
    "channels": re.compile(r"^\s*SizeC\s*=\s*(\d+)", re.MULTILINE),
    "z_stacks": re.compile(r"^\s*SizeZ\s*=\s*(\d+)", re.MULTILINE),
    "width": re.compile(r"^\s*Width\s*=\s*(\d+)", re.MULTILINE),
    "height": re.compile(r"^\s*Height\s*=\s*(\d+)", re.MULTILINE),
}
_THUMBNAIL_RE = re.compile(r"^\s*Thumbnail series\s*=\s*(true|false)", re.MULTILINE | re.IGNORECASE)


def series_count(text: str) -> int:
    """Return the ``Series count`` of a report, or 0 if absent."""
    m = _SERIES_COUNT_RE.search(text)
    return int(m.group(1)) if m else 0


def split_series_blocks(text: str) -> dict[int, str]:
    """Split the core-metadata section of a report into per-series chunks.

    Returns:
        Mapping of series index to the text of its block, in report order.
    """
    end = _CORE_END_RE.search(text)
    core = text[: end.start()] if end else text

    markers = list(_SERIES_MARKER_RE.finditer(core))
    blocks: dict[int, str] = {}
    for i, m in enumerate(markers):
        stop = markers[i + 1].start() if i + 1 < len(markers) else len(core)
        index = int(m.group(1))
        if index in blocks:
            logger.warning("Duplicate block for series #%d ignored", index)
            continue
        blocks[index] = core[m.end():stop]
    return blocks


def _record_from_block(block: str, index: int) -> SeriesRecord:
    values: dict[str, int] = {}
    for name, pattern in _INT_FIELDS.items():
        m = pattern.search(block)
        values[name] = int(m.group(1)) if m else 0
    m = _THUMBNAIL_RE.search(block)
    is_thumbnail = bool(m) and m.group(1).lower() == "true"
    return SeriesRecord(**values, is_thumbnail=is_thumbnail, index=index)


def _records_from_field_lists(text: str, count: int) -> list[SeriesRecord]:
    """Zip ordered per-field occurrence lists, defaulting missing entries."""
    lists = {
        name: [int(v) for v in pattern.findall(text)]
        for name, pattern in _INT_FIELDS.items()
    }
    thumbs = [v.lower() == "true" for v in _THUMBNAIL_RE.findall(text)]

    records = []
    for i in range(count):
        values = {
            name: found[i] if i < len(found) else 0
            for name, found in lists.items()
        }
        is_thumbnail = thumbs[i] if i < len(thumbs) else False
        records.append(SeriesRecord(**values, is_thumbnail=is_thumbnail, index=i))
    return records


def parse_all_series(text: str) -> list[SeriesRecord]:
    """Parse every series of a report, thumbnails included.

    Args:
        text: Raw ``showinf`` output.

    Returns:
        One SeriesRecord per series in index order; empty when the report
        has no (or a zero) series count.
    """
    count = series_count(text)
    if count == 0:
        return []

    blocks = split_series_blocks(text)
    if not blocks:
        end = _CORE_END_RE.search(text)
        core = text[: end.start()] if end else text
        return _records_from_field_lists(core, count)

    extra = sorted(i for i in blocks if i >= count)
    if extra:
        logger.warning(
            "Report declares %d series but has blocks for series %s; ignoring them",
            count, extra,
        )

    records = []
    for i in range(count):
        block = blocks.get(i)
        if block is None:
            logger.warning("No block for series #%d; using default values", i)
            records.append(SeriesRecord(index=i))
        else:
            records.append(_record_from_block(block, i))
    return records


def parse_text_report(text: str, include_thumbnails: bool = False) -> list[SeriesRecord]:
    """Parse a text report into SeriesRecords.

    Args:
        text: Raw ``showinf`` output.
        include_thumbnails: Keep thumbnail series instead of dropping them.

    Returns:
        SeriesRecords in series order.
    """
    records = parse_all_series(text)
    if include_thumbnails:
        return records
    return [r for r in records if not r.is_thumbnail]


def acquisition_from_series(records: list[SeriesRecord], name: str = "") -> ImageAcquisition | None:
    """Describe a container by its first series, for text-mode extraction.

    The text report has no per-channel details, so channels are listed by
    position only.

    Returns:
        None when there are no series.
    """
    if not records:
        return None
    primary = records[0]
    return ImageAcquisition(
        pixel_dims=PixelDims(
            size_x=primary.width,
            size_y=primary.height,
            size_z=primary.z_stacks,
            size_c=primary.channels,
            size_t=primary.timepoints,
        ),
        channels=tuple(
            ChannelRecord(id=f"Channel:{primary.index or 0}:{c}")
            for c in range(primary.channels)
        ),
        name=name,
    )
