"""DocumentAssembler — merge acquisition metadata with sample annotations."""

from __future__ import annotations

import re
from pathlib import Path

from bfmeta.core.exceptions import ChannelCountMismatchError
from bfmeta.core.models import ImageAcquisition, OutputDocument, SampleAnnotationSet

OUTPUT_SUFFIX = "_sampleInfo.yaml"

_IMS_FIELD_SUFFIX_RE = re.compile(r"_F\d+$")


def assemble(
    acquisition: ImageAcquisition, sample: SampleAnnotationSet | None = None,
) -> OutputDocument:
    """Combine one image's metadata with the batch's annotations.

    Args:
        acquisition: Metadata of the image.
        sample: The batch's annotation set, or None in single-file mode.

    Raises:
        ChannelCountMismatchError: If the annotations were filled in for a
            different number of channels.
    """
    if sample is not None and len(acquisition.channels) != len(sample.channels):
        raise ChannelCountMismatchError(len(acquisition.channels), len(sample.channels))
    return OutputDocument(acquisition=acquisition, sample=sample)


def output_path_for(image_path: Path) -> Path:
    """Path of the YAML document written for an image.

    ``/data/cells.czi`` becomes ``/data/cells_sampleInfo.yaml``.
    """
    image_path = Path(image_path)
    return image_path.with_name(image_path.stem + OUTPUT_SUFFIX)


def find_ims_sidecar(image_path: Path) -> Path | None:
    """Locate the ``_metadata.txt`` file Imaris writes next to ``.ims`` files.

    A field suffix such as ``_F3`` is stripped first, so ``scan_F3.ims`` and
    ``scan.ims`` share ``scan_metadata.txt``.

    Returns:
        The sidecar path if the image is an ``.ims`` file and the sidecar
        exists, otherwise None.
    """
    image_path = Path(image_path)
    if image_path.suffix.lower() != ".ims":
        return None
    base = _IMS_FIELD_SUFFIX_RE.sub("", image_path.stem)
    sidecar = image_path.with_name(f"{base}_metadata.txt")
    return sidecar if sidecar.is_file() else None
