"""ExtractionEngine — runs the tool, parses reports, writes YAML documents."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from bfmeta.core.exceptions import PER_FILE_ERRORS, BfmetaError, ReportParseError
from bfmeta.core.models import GroupingResult, ImageAcquisition, SampleAnnotationSet
from bfmeta.io.annotations import (
    SAMPLE_INFO_FILENAME,
    ConfirmGate,
    SampleAnnotationStore,
    gate_result,
)
from bfmeta.io.assembler import assemble, find_ims_sidecar, output_path_for
from bfmeta.io.grouping import format_groups, group_series
from bfmeta.io.invoker import BioFormatsTool, ReportMode
from bfmeta.io.serialization import document_to_yaml
from bfmeta.io.text_report import acquisition_from_series, parse_text_report
from bfmeta.io.xml_report import parse_xml_report, select_primary_image

logger = logging.getLogger(__name__)

# Asked once per batch; returns the user's answer, or None when nobody
# was asked.
Confirmer = Callable[[ConfirmGate], "bool | None"]


@dataclass(frozen=True)
class BatchPlan:
    """Images to process and the annotations shared by all of them."""

    images: list[Path]
    sample: SampleAnnotationSet | None = None
    sample_info_path: Path | None = None


@dataclass(frozen=True)
class FileOutcome:
    """What happened to one image."""

    path: Path
    output_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ExtractionResult:
    """Result of a single-file or directory run."""

    outcomes: list[FileOutcome] = field(default_factory=list)
    sample_info_path: Path | None = None
    elapsed_seconds: float = 0.0

    @property
    def written(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def skipped(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if not o.ok]


def find_images(directory: Path, extension: str) -> list[Path]:
    """List files in ``directory`` (not recursive) ending with ``extension``.

    The leading dot is optional and the match is case-insensitive.

    Raises:
        FileNotFoundError: If ``directory`` does not exist.
        ValueError: If ``directory`` is not a directory.
    """
    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(f"Source path does not exist: {directory}")
    if not directory.is_dir():
        raise ValueError(f"Source path is not a directory: {directory}")

    suffix = extension.lower()
    if not suffix.startswith("."):
        suffix = "." + suffix
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.name.lower().endswith(suffix)
    )


class ExtractionEngine:
    """Extracts metadata documents for single files and directories.

    Args:
        tool: The Bio-Formats invoker. Configured from the environment if
            not provided.
        mode: Report to request; XML carries channel and optics details.
        include_thumbnails: Keep thumbnail series / preview images.
    """

    def __init__(
        self,
        tool: BioFormatsTool | None = None,
        mode: ReportMode = ReportMode.XML,
        include_thumbnails: bool = False,
    ) -> None:
        self.tool = tool or BioFormatsTool()
        self.mode = mode
        self.include_thumbnails = include_thumbnails
        self._cache: dict[Path, ImageAcquisition] = {}

    def read_acquisition(self, path: Path) -> ImageAcquisition:
        """Run the tool on one file and return its primary image's metadata.

        Raises:
            ToolError: If the tool fails.
            ReportParseError: If the report cannot be parsed or holds no
                usable image.
        """
        path = Path(path)
        if path in self._cache:
            return self._cache.pop(path)

        report = self.tool.invoke(self.mode, path)
        if self.mode is ReportMode.XML:
            acquisition = select_primary_image(
                parse_xml_report(report, source=path.name), self.include_thumbnails,
            )
        else:
            acquisition = acquisition_from_series(
                parse_text_report(report, self.include_thumbnails), name=path.name,
            )
        if acquisition is None:
            raise ReportParseError(f"No image found in report for {path.name}")
        return acquisition

    def summarize_series(self, path: Path) -> GroupingResult:
        """Group the series of one file by their dimensions (text report)."""
        path = Path(path)
        report = self.tool.invoke(ReportMode.TEXT, path)
        result = group_series(parse_text_report(report, self.include_thumbnails))
        for line in format_groups(result):
            logger.info("%s: %s", path.name, line)
        return result

    def resolve_sample_info(
        self,
        directory: Path,
        images: list[Path],
        confirm: Confirmer | None = None,
    ) -> SampleAnnotationSet:
        """Prepare, confirm and load the directory's sample annotations.

        The channel count comes from the first image that can be read.

        Raises:
            BfmetaError: If no image of the batch can be read.
            AnnotationParseError: If a confirmed sample info file is invalid.
        """
        num_channels: int | None = None
        for image in images:
            try:
                acquisition = self.read_acquisition(image)
            except PER_FILE_ERRORS as exc:
                logger.warning("Cannot read %s for sample info: %s", image.name, exc)
                continue
            self._cache[image] = acquisition
            num_channels = len(acquisition.channels)
            break
        if num_channels is None:
            raise BfmetaError(f"Could not read metadata from any image in {directory}")

        store = SampleAnnotationStore(directory)
        gate = store.prepare(num_channels)
        answer = confirm(gate) if confirm is not None else None
        return store.resolve(gate_result(gate, answer))

    def process_file(self, path: Path, sample: SampleAnnotationSet | None = None) -> Path:
        """Extract, assemble and write the YAML document for one image.

        Returns:
            Path of the written document.
        """
        path = Path(path)
        sidecar = find_ims_sidecar(path)
        if sidecar is not None:
            logger.info("Imaris metadata sidecar for %s: %s", path.name, sidecar)
        elif path.suffix.lower() == ".ims":
            logger.info("No Imaris metadata sidecar for %s", path.name)

        document = assemble(self.read_acquisition(path), sample)
        out_path = output_path_for(path)
        document_to_yaml(document, out_path)
        logger.info("Metadata saved to %s", out_path)
        return out_path

    def prepare(
        self,
        path: Path,
        extension: str | None = None,
        confirm: Confirmer | None = None,
    ) -> BatchPlan:
        """Check the tool, list the images and resolve the sample info.

        This is the only step that may wait for the user.

        Raises:
            ToolNotFoundError: If the tool is unavailable.
            AnnotationParseError: If the sample info file is invalid.
            ValueError: If a directory is given without an extension, or no
                file matches it.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Source path does not exist: {path}")

        self.tool.check()

        if not path.is_dir():
            return BatchPlan(images=[path])

        if not extension:
            raise ValueError("A file extension is required when the path is a directory")
        images = find_images(path, extension)
        if not images:
            raise ValueError(f"No '{extension}' files found in: {path}")

        sample = self.resolve_sample_info(path, images, confirm)
        sample_info_path = path / SAMPLE_INFO_FILENAME
        return BatchPlan(
            images=images,
            sample=sample,
            sample_info_path=sample_info_path if sample_info_path.exists() else None,
        )

    def process(
        self,
        plan: BatchPlan,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ) -> ExtractionResult:
        """Write a document for every image of a prepared batch.

        Failures local to one image are logged and recorded; a missing tool
        still propagates.

        Args:
            plan: Output of :meth:`prepare`.
            progress_callback: Optional callback(current, total, file_name).
        """
        start = time.monotonic()
        total = len(plan.images)
        outcomes: list[FileOutcome] = []
        try:
            for i, image in enumerate(plan.images):
                if progress_callback:
                    progress_callback(i, total, image.name)
                try:
                    out_path = self.process_file(image, plan.sample)
                except (*PER_FILE_ERRORS, OSError) as exc:
                    logger.warning("Skipping %s: %s", image.name, exc)
                    outcomes.append(FileOutcome(path=image, error=str(exc)))
                    continue
                outcomes.append(FileOutcome(path=image, output_path=out_path))
        finally:
            self._cache.clear()

        if progress_callback:
            progress_callback(total, total, "")

        return ExtractionResult(
            outcomes=outcomes,
            sample_info_path=plan.sample_info_path,
            elapsed_seconds=round(time.monotonic() - start, 2),
        )

    def run(
        self,
        path: Path,
        extension: str | None = None,
        confirm: Confirmer | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ) -> ExtractionResult:
        """Process a single image or every matching image of a directory.

        Shared setup failures (tool availability, sample info) propagate;
        per-image failures are recorded in the result.

        Args:
            path: Image file or directory.
            extension: File extension filter; required for directories.
            confirm: Asks the user about the sample info file.
            progress_callback: Optional callback(current, total, file_name).
        """
        return self.process(self.prepare(path, extension, confirm), progress_callback)
