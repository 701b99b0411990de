"""Shared test fixtures for bfmeta."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from bfmeta.core.exceptions import ToolExecutionError, ToolNotFoundError
from bfmeta.io.config import ToolConfig
from bfmeta.io.invoker import BioFormatsTool, ReportMode

TEXT_REPORT = """\
Checking file format [Zeiss CZI]
Initializing reader
ZeissCZIReader initializing sample.czi
Initialization took 0.215s

Reading core metadata
Filename = sample.czi
Used files = [sample.czi]
Series count = 2
Series #0 :
\tImage count = 10
\tRGB = false (1)
\tInterleaved = false
\tIndexed = false (true color)
\tWidth = 512
\tHeight = 256
\tSizeZ = 5
\tSizeT = 1
\tSizeC = 2
\tThumbnail size = 128 x 64
\tEndianness = intel (little)
\tDimension order = XYCZT (certain)
\tPixel type = uint16
\tValid bits per pixel = 16
\tMetadata complete = true
\tThumbnail series = false
\t-----
\tPlane #0 <=> Z 0, C 0, T 0
Series #1 :
\tImage count = 2
\tRGB = false (1)
\tWidth = 128
\tHeight = 64
\tSizeZ = 1
\tSizeT = 1
\tSizeC = 2
\tThumbnail size = 128 x 64
\tThumbnail series = true

Reading global metadata
Width = 9999
SizeZ = 42
"""

OME_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<OME xmlns="http://www.openmicroscopy.org/Schemas/OME/2016-06" Creator="OME Bio-Formats 6.12.0">
  <Instrument ID="Instrument:0">
    <Microscope Manufacturer="Zeiss" Model="LSM 980"/>
    <Objective ID="Objective:0" Model="Plan-Apochromat 63x/1.40 Oil" NominalMagnification="63.0" LensNA="1.4" Immersion="Oil"/>
  </Instrument>
  <Image ID="Image:0" Name="sample #1">
    <AcquisitionDate>2023-05-04T10:11:12</AcquisitionDate>
    <InstrumentRef ID="Instrument:0"/>
    <Pixels ID="Pixels:0" DimensionOrder="XYCZT" Type="uint16" SizeX="512" SizeY="256" SizeZ="5" SizeC="2" SizeT="1" PhysicalSizeX="0.1" PhysicalSizeXUnit="µm" PhysicalSizeY="0.1" PhysicalSizeZ="0.5">
      <Channel ID="Channel:0:0" Name="DAPI" EmissionWavelength="461.0" ExcitationWavelength="405.0" SamplesPerPixel="1"/>
      <Channel ID="Channel:0:1" Name="AF488" EmissionWavelength="520 nm" ExcitationWavelength="488.0" SamplesPerPixel="1"/>
      <TiffData FirstZ="0" FirstC="0" FirstT="0" PlaneCount="10"/>
    </Pixels>
  </Image>
  <StructuredAnnotations>
    <XMLAnnotation ID="Annotation:0" Namespace="openmicroscopy.org/OriginalMetadata">
      <Value><OriginalMetadata><Key>Objective</Key><Value>63x</Value></OriginalMetadata></Value>
    </XMLAnnotation>
  </StructuredAnnotations>
</OME>
"""

XML_REPORT = (
    "SLF4J: No SLF4J providers were found.\n"
    "[main] INFO loci.formats.ImageReader - ZeissCZIReader initializing sample.czi\n"
    + OME_XML
    + "[main] INFO loci.formats.tools.ImageInfo - done\n"
)


class FakeTool(BioFormatsTool):
    """BioFormatsTool that returns canned reports instead of running Java.

    ``reports`` maps file names to report text or to an exception to raise.
    """

    def __init__(self, reports: dict[str, str | Exception], available: bool = True) -> None:
        super().__init__(ToolConfig())
        self.reports = reports
        self.available = available
        self.calls: list[tuple[ReportMode, str]] = []

    def check(self) -> None:
        if not self.available:
            raise ToolNotFoundError(self.config.showinf)

    def invoke(self, mode: ReportMode, path: Path) -> str:
        path = Path(path)
        self.calls.append((mode, path.name))
        report = self.reports.get(path.name)
        if report is None:
            raise ToolExecutionError(path, 1, "Unknown file format")
        if isinstance(report, Exception):
            raise report
        return report


@pytest.fixture
def text_report() -> str:
    return TEXT_REPORT


@pytest.fixture
def xml_report() -> str:
    return XML_REPORT


@pytest.fixture
def fake_tool() -> Callable[..., FakeTool]:
    """Factory for FakeTool instances."""
    return FakeTool


@pytest.fixture
def image_dir(tmp_path: Path) -> Path:
    """A directory with two (empty) .czi files and an unrelated file."""
    d = tmp_path / "images"
    d.mkdir()
    for name in ("a.czi", "b.czi", "notes.txt"):
        (d / name).write_bytes(b"")
    return d
