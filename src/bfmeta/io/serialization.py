"""YAML serialization for output documents and sample annotation files."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from bfmeta.core.exceptions import AnnotationParseError
from bfmeta.core.models import (
    ChannelRecord,
    ImageAcquisition,
    InstrumentInfo,
    ObjectiveInfo,
    OutputDocument,
    PhysicalPixelSize,
    PixelDims,
    SampleAnnotation,
    SampleAnnotationSet,
    channel_label,
)

ACQUISITION_KEY = "Acquisition metadata"
SAMPLE_KEY = "Sample info"

_CHANNEL_LABEL_RE = re.compile(r"^Channel (\d+)$")


def _dump(data: dict[str, Any], path: Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


# -- Sample annotations -------------------------------------------------------


def annotations_to_dict(sample: SampleAnnotationSet) -> dict[str, Any]:
    """Convert an annotation set to its YAML mapping."""
    return {
        "ELNID": sample.external_reference_id,
        "Channels": {
            label: {
                "Fluorophore": ann.fluorophore,
                "Sample name": ann.sample_name,
            }
            for label, ann in sample.channels.items()
        },
    }


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def annotations_from_dict(data: Any, source: Path | str = "<memory>") -> SampleAnnotationSet:
    """Build an annotation set from a parsed YAML mapping.

    Channels are ordered by their number regardless of file order.

    Raises:
        AnnotationParseError: If the mapping does not have the expected shape.
    """
    if not isinstance(data, dict):
        raise AnnotationParseError(source, f"expected a mapping, got {type(data).__name__}")
    if "ELNID" not in data:
        raise AnnotationParseError(source, "missing required key 'ELNID'")
    channels_data = data.get("Channels")
    if not isinstance(channels_data, dict):
        raise AnnotationParseError(source, "'Channels' must be a mapping of channel labels")

    numbered: list[tuple[int, str, SampleAnnotation]] = []
    for label, entry in channels_data.items():
        m = _CHANNEL_LABEL_RE.match(str(label))
        if not m:
            raise AnnotationParseError(source, f"invalid channel label {label!r}")
        if not isinstance(entry, dict):
            raise AnnotationParseError(source, f"{label} must be a mapping")
        if "Fluorophore" not in entry:
            raise AnnotationParseError(source, f"{label} is missing 'Fluorophore'")
        numbered.append((
            int(m.group(1)),
            str(label),
            SampleAnnotation(
                fluorophore=_text(entry["Fluorophore"]),
                sample_name=_text(entry.get("Sample name")),
            ),
        ))
    numbered.sort(key=lambda item: item[0])

    expected = list(range(1, len(numbered) + 1))
    if [n for n, _, _ in numbered] != expected:
        raise AnnotationParseError(source, "channel labels must run from 'Channel 1' without gaps")

    return SampleAnnotationSet(
        channels={label: ann for _, label, ann in numbered},
        external_reference_id=_text(data["ELNID"]),
    )


def annotations_to_yaml(sample: SampleAnnotationSet, path: Path) -> None:
    """Write an annotation set as a standalone sample info file."""
    _dump(annotations_to_dict(sample), path)


def annotations_from_yaml(path: Path) -> SampleAnnotationSet:
    """Read a sample info file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        AnnotationParseError: If the file is not valid YAML or has the
            wrong structure.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise AnnotationParseError(path, f"not valid YAML ({exc})") from exc
    return annotations_from_dict(data, path)


# -- Output documents ----------------------------------------------------------


def _instrument_to_dict(instrument: InstrumentInfo) -> dict[str, Any]:
    data: dict[str, Any] = {"ID": instrument.id}
    if instrument.microscope is not None:
        data["Microscope"] = instrument.microscope
    data["Objectives"] = [
        {
            "ID": o.id,
            "Model": o.model,
            "Nominal magnification": o.nominal_magnification,
            "Lens NA": o.lens_na,
            "Immersion": o.immersion,
        }
        for o in instrument.objectives
    ]
    return data


def _instrument_from_dict(data: dict[str, Any]) -> InstrumentInfo:
    return InstrumentInfo(
        id=_text(data.get("ID")),
        microscope=data.get("Microscope"),
        objectives=tuple(
            ObjectiveInfo(
                id=_text(o.get("ID")),
                model=o.get("Model"),
                nominal_magnification=o.get("Nominal magnification"),
                lens_na=o.get("Lens NA"),
                immersion=o.get("Immersion"),
            )
            for o in data.get("Objectives", [])
        ),
    )


def acquisition_to_dict(acquisition: ImageAcquisition) -> dict[str, Any]:
    """Convert acquisition metadata to its YAML mapping."""
    dims = acquisition.pixel_dims
    size = acquisition.physical_pixel_size
    data: dict[str, Any] = {
        "Name": acquisition.name,
        "DateAndTime": acquisition.acquisition_date,
        "Image dimensions": {
            "SizeC": dims.size_c,
            "SizeT": dims.size_t,
            "SizeX": dims.size_x,
            "SizeY": dims.size_y,
            "SizeZ": dims.size_z,
        },
        "Pixel size": {
            "PhysicalSizeX": size.x,
            "PhysicalSizeY": size.y,
            "PhysicalSizeZ": size.z,
        },
        "Channels": {
            channel_label(i): {
                "ID": ch.id,
                "Name": ch.name,
                "Emission wavelength": ch.emission_wavelength,
                "Excitation wavelength": ch.excitation_wavelength,
                "Samples per pixel": ch.samples_per_pixel,
            }
            for i, ch in enumerate(acquisition.channels)
        },
    }
    if acquisition.instrument is not None:
        data["Instrument"] = _instrument_to_dict(acquisition.instrument)
    return data


def acquisition_from_dict(data: dict[str, Any]) -> ImageAcquisition:
    """Rebuild acquisition metadata from its YAML mapping."""
    dims = data.get("Image dimensions", {})
    size = data.get("Pixel size", {})
    channels = data.get("Channels", {})
    numbered = []
    for label, value in channels.items():
        m = _CHANNEL_LABEL_RE.match(str(label))
        if m is None:
            raise ValueError(f"Invalid channel label {label!r} in acquisition metadata")
        numbered.append((int(m.group(1)), value))
    ordered = [value for _, value in sorted(numbered, key=lambda item: item[0])]
    instrument = data.get("Instrument")
    return ImageAcquisition(
        acquisition_date=_text(data.get("DateAndTime")),
        pixel_dims=PixelDims(
            size_x=dims.get("SizeX", 0),
            size_y=dims.get("SizeY", 0),
            size_z=dims.get("SizeZ", 0),
            size_c=dims.get("SizeC", 0),
            size_t=dims.get("SizeT", 0),
        ),
        physical_pixel_size=PhysicalPixelSize(
            x=size.get("PhysicalSizeX"),
            y=size.get("PhysicalSizeY"),
            z=size.get("PhysicalSizeZ"),
        ),
        channels=tuple(
            ChannelRecord(
                id=_text(ch.get("ID")),
                name=_text(ch.get("Name")),
                emission_wavelength=ch.get("Emission wavelength"),
                excitation_wavelength=ch.get("Excitation wavelength"),
                samples_per_pixel=ch.get("Samples per pixel", 1),
            )
            for ch in ordered
        ),
        name=_text(data.get("Name")),
        instrument=_instrument_from_dict(instrument) if instrument is not None else None,
    )


def document_to_dict(document: OutputDocument) -> dict[str, Any]:
    """Convert an output document to its YAML mapping."""
    data: dict[str, Any] = {ACQUISITION_KEY: acquisition_to_dict(document.acquisition)}
    if document.sample is not None:
        data[SAMPLE_KEY] = annotations_to_dict(document.sample)
    return data


def document_to_yaml(document: OutputDocument, path: Path) -> None:
    """Serialize an output document to a YAML file."""
    _dump(document_to_dict(document), path)


def document_from_yaml(path: Path) -> OutputDocument:
    """Deserialize an output document from a YAML file.

    Raises:
        FileNotFoundError: If the YAML file doesn't exist.
        ValueError: If the YAML is not an output document or a channel
            label is not of the form ``Channel <n>``.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict) or ACQUISITION_KEY not in data:
        raise ValueError(f"Invalid metadata YAML: missing '{ACQUISITION_KEY}' in {path}")

    sample_data = data.get(SAMPLE_KEY)
    return OutputDocument(
        acquisition=acquisition_from_dict(data[ACQUISITION_KEY]),
        sample=annotations_from_dict(sample_data, path) if sample_data is not None else None,
    )
