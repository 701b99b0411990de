"""Parse ``showinf -omexml-only`` output into ImageAcquisition records.

Parsing happens in two phases. The XML is first read into a generic
:class:`XmlNode` tree, so vendor-specific elements never cause a rejection.
An :class:`OmeVisitor` then walks the tree depth-first and decodes the
elements it recognizes into raw records whose numeric fields are still
strings. Numbers are only converted in :func:`to_acquisition`, where a value
that cannot be parsed becomes ``None`` instead of failing the image.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import fromstring as safe_fromstring

from bfmeta.core.exceptions import NoXmlContentError, XmlParseError
from bfmeta.core.models import (
    ChannelRecord,
    ImageAcquisition,
    InstrumentInfo,
    ObjectiveInfo,
    PhysicalPixelSize,
    PixelDims,
)

logger = logging.getLogger(__name__)

_XML_MARKER = "<?xml"
_ROOT_TAG_RE = re.compile(r"<([A-Za-z_][\w.:-]*)")
_TAG_END_RE = re.compile(r"""(?:[^>"']|"[^"]*"|'[^']*')*?(/?)>""")
_NUMBER_RE = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)")
_THUMBNAIL_NAME_RE = re.compile(r"\b(?:thumbnail|macro image|label image)\b", re.IGNORECASE)


@dataclass
class XmlNode:
    """A schema-agnostic XML element."""

    name: str
    attributes: dict[str, str] = field(default_factory=dict)
    text: str = ""
    children: list[XmlNode] = field(default_factory=list)

    def child(self, name: str) -> XmlNode | None:
        """Return the first direct child called ``name``."""
        for c in self.children:
            if c.name == name:
                return c
        return None


# -- Phase 1: generic tree ---------------------------------------------------


def extract_xml(text: str, source: str | None = None) -> str:
    """Cut the XML document out of a report surrounded by log noise.

    Everything before the first ``<?xml`` marker is discarded, as is
    anything after the root element's closing tag (or after the root's
    start tag when it is self-closing).

    Raises:
        NoXmlContentError: If the report has no ``<?xml`` marker.
    """
    start = text.find(_XML_MARKER)
    if start < 0:
        raise NoXmlContentError(source)
    xml_text = text[start:]

    prolog_end = xml_text.find("?>")
    body_start = prolog_end + 2 if prolog_end >= 0 else 0
    m = _ROOT_TAG_RE.search(xml_text, body_start)
    if m is not None:
        closing = f"</{m.group(1)}>"
        end = xml_text.rfind(closing)
        if end >= 0:
            return xml_text[: end + len(closing)]
        # Self-closing root: the document ends with its start tag.
        tag_end = _TAG_END_RE.match(xml_text, m.end())
        if tag_end is not None and tag_end.group(1) == "/":
            return xml_text[: tag_end.end()]
    return xml_text.rstrip()


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _to_node(element: ET.Element) -> XmlNode:
    return XmlNode(
        name=_local_name(element.tag),
        attributes={_local_name(k): v for k, v in element.attrib.items()},
        text=(element.text or "").strip(),
        children=[_to_node(c) for c in element],
    )


def parse_tree(xml_text: str) -> XmlNode:
    """Parse an XML document into a generic node tree.

    Namespaces are dropped from element and attribute names. Entity
    declarations and external references are refused.

    Raises:
        XmlParseError: If the document is not well-formed or uses a
            forbidden construct.
    """
    try:
        root = safe_fromstring(xml_text)
    except ET.ParseError as exc:
        raise XmlParseError(f"Malformed OME-XML: {exc}") from exc
    except DefusedXmlException as exc:
        raise XmlParseError(f"Unsafe OME-XML rejected: {exc}") from exc
    return _to_node(root)


# -- Phase 2: typed projection ------------------------------------------------


@dataclass
class RawChannel:
    id: str
    name: str = ""
    emission_wavelength: str | None = None
    excitation_wavelength: str | None = None
    samples_per_pixel: str | None = None


@dataclass
class RawPixels:
    size_x: str | None = None
    size_y: str | None = None
    size_z: str | None = None
    size_c: str | None = None
    size_t: str | None = None
    physical_size_x: str | None = None
    physical_size_y: str | None = None
    physical_size_z: str | None = None
    channels: list[RawChannel] = field(default_factory=list)


@dataclass
class RawImage:
    id: str
    name: str = ""
    acquisition_date: str = ""
    instrument_ref: str | None = None
    pixels: RawPixels | None = None


@dataclass
class RawObjective:
    id: str
    model: str | None = None
    nominal_magnification: str | None = None
    lens_na: str | None = None
    immersion: str | None = None


@dataclass
class RawInstrument:
    id: str
    microscope: str | None = None
    objectives: list[RawObjective] = field(default_factory=list)


class OmeVisitor:
    """Depth-first walk over an OME tree, decoding known elements.

    Elements are dispatched to ``visit_<ElementName>`` methods; elements
    without a method are only walked into.
    """

    def __init__(self) -> None:
        self.images: list[RawImage] = []
        self.instruments: list[RawInstrument] = []
        self._image: RawImage | None = None
        self._pixels: RawPixels | None = None
        self._instrument: RawInstrument | None = None

    def visit(self, node: XmlNode) -> None:
        method = getattr(self, f"visit_{node.name}", None)
        if method is None:
            self.generic_visit(node)
        else:
            method(node)

    def generic_visit(self, node: XmlNode) -> None:
        for child in node.children:
            self.visit(child)

    def visit_Instrument(self, node: XmlNode) -> None:
        instrument = RawInstrument(id=node.attributes.get("ID", ""))
        self.instruments.append(instrument)
        self._instrument = instrument
        try:
            self.generic_visit(node)
        finally:
            self._instrument = None

    def visit_Microscope(self, node: XmlNode) -> None:
        if self._instrument is not None:
            parts = [node.attributes.get("Manufacturer"), node.attributes.get("Model")]
            self._instrument.microscope = " ".join(p for p in parts if p) or None

    def visit_Objective(self, node: XmlNode) -> None:
        if self._instrument is None:
            return
        a = node.attributes
        self._instrument.objectives.append(
            RawObjective(
                id=a.get("ID", ""),
                model=a.get("Model"),
                nominal_magnification=a.get("NominalMagnification"),
                lens_na=a.get("LensNA"),
                immersion=a.get("Immersion"),
            )
        )

    def visit_Image(self, node: XmlNode) -> None:
        image = RawImage(id=node.attributes.get("ID", ""), name=node.attributes.get("Name", ""))
        self.images.append(image)
        self._image = image
        try:
            self.generic_visit(node)
        finally:
            self._image = None

    def visit_AcquisitionDate(self, node: XmlNode) -> None:
        if self._image is not None:
            self._image.acquisition_date = node.text

    def visit_InstrumentRef(self, node: XmlNode) -> None:
        if self._image is not None:
            self._image.instrument_ref = node.attributes.get("ID")

    def visit_Pixels(self, node: XmlNode) -> None:
        a = node.attributes
        pixels = RawPixels(
            size_x=a.get("SizeX"),
            size_y=a.get("SizeY"),
            size_z=a.get("SizeZ"),
            size_c=a.get("SizeC"),
            size_t=a.get("SizeT"),
            physical_size_x=a.get("PhysicalSizeX"),
            physical_size_y=a.get("PhysicalSizeY"),
            physical_size_z=a.get("PhysicalSizeZ"),
        )
        if self._image is not None:
            self._image.pixels = pixels
        self._pixels = pixels
        try:
            self.generic_visit(node)
        finally:
            self._pixels = None

    def visit_Channel(self, node: XmlNode) -> None:
        if self._pixels is None:
            return
        a = node.attributes
        self._pixels.channels.append(
            RawChannel(
                id=a.get("ID", ""),
                name=a.get("Name", ""),
                emission_wavelength=a.get("EmissionWavelength"),
                excitation_wavelength=a.get("ExcitationWavelength"),
                samples_per_pixel=a.get("SamplesPerPixel"),
            )
        )


# -- Assembly boundary ---------------------------------------------------------


def parse_number(value: str | None) -> float | None:
    """Parse a possibly unit-suffixed number such as ``"488 nm"``.

    Returns:
        The numeric value, or None when absent or unparseable.
    """
    if value is None:
        return None
    m = _NUMBER_RE.match(value)
    if not m:
        logger.debug("Could not parse number from %r", value)
        return None
    return float(m.group(1))


def _parse_int(value: str | None, default: int = 0) -> int:
    number = parse_number(value)
    return int(number) if number is not None else default


def _to_instrument(raw: RawInstrument) -> InstrumentInfo:
    return InstrumentInfo(
        id=raw.id,
        microscope=raw.microscope,
        objectives=tuple(
            ObjectiveInfo(
                id=o.id,
                model=o.model,
                nominal_magnification=parse_number(o.nominal_magnification),
                lens_na=parse_number(o.lens_na),
                immersion=o.immersion,
            )
            for o in raw.objectives
        ),
    )


def to_acquisition(
    raw: RawImage, instruments: list[RawInstrument] | None = None,
) -> ImageAcquisition:
    """Convert a decoded Image into an ImageAcquisition.

    The instrument is the one referenced by the image, or the only one in
    the document when the image carries no reference.
    """
    pixels = raw.pixels or RawPixels()
    instruments = instruments or []

    instrument = None
    if raw.instrument_ref is not None:
        instrument = next((i for i in instruments if i.id == raw.instrument_ref), None)
    elif len(instruments) == 1:
        instrument = instruments[0]

    acquisition = ImageAcquisition(
        acquisition_date=raw.acquisition_date,
        pixel_dims=PixelDims(
            size_x=_parse_int(pixels.size_x),
            size_y=_parse_int(pixels.size_y),
            size_z=_parse_int(pixels.size_z),
            size_c=_parse_int(pixels.size_c),
            size_t=_parse_int(pixels.size_t),
        ),
        physical_pixel_size=PhysicalPixelSize(
            x=parse_number(pixels.physical_size_x),
            y=parse_number(pixels.physical_size_y),
            z=parse_number(pixels.physical_size_z),
        ),
        channels=tuple(
            ChannelRecord(
                id=c.id,
                name=c.name,
                emission_wavelength=parse_number(c.emission_wavelength),
                excitation_wavelength=parse_number(c.excitation_wavelength),
                samples_per_pixel=_parse_int(c.samples_per_pixel, default=1),
            )
            for c in pixels.channels
        ),
        name=raw.name,
        instrument=_to_instrument(instrument) if instrument is not None else None,
    )
    if not acquisition.channels_consistent:
        logger.warning(
            "Image %s lists %d channel(s) but SizeC is %d",
            raw.id or raw.name, len(acquisition.channels), acquisition.pixel_dims.size_c,
        )
    return acquisition


def parse_xml_report(text: str, source: str | None = None) -> list[ImageAcquisition]:
    """Parse a raw OME-XML report into one ImageAcquisition per Image.

    Args:
        text: Raw tool output, possibly with log lines around the XML.
        source: File name used in error messages.

    Raises:
        NoXmlContentError: If the report has no XML.
        XmlParseError: If the XML is malformed.
    """
    tree = parse_tree(extract_xml(text, source))
    visitor = OmeVisitor()
    visitor.visit(tree)
    return [to_acquisition(img, visitor.instruments) for img in visitor.images]


def is_thumbnail_image(acquisition: ImageAcquisition) -> bool:
    """Whether an image is a preview (thumbnail, slide macro or label)."""
    return bool(_THUMBNAIL_NAME_RE.search(acquisition.name))


def select_primary_image(
    acquisitions: list[ImageAcquisition], include_thumbnails: bool = False,
) -> ImageAcquisition | None:
    """Pick the image that represents a container in its output document.

    Returns:
        The first image, skipping previews unless ``include_thumbnails``;
        None when no image qualifies.
    """
    for acquisition in acquisitions:
        if include_thumbnails or not is_thumbnail_image(acquisition):
            return acquisition
    return None
