"""SampleAnnotationStore — the per-directory ``inputSampleInfo.yaml`` file.

Annotations (fluorophores, sample names, ELN id) cannot be read from the
images, so the user fills them in once per directory. The store writes a
template, waits for a confirm-or-decline decision, and returns the
annotation set shared by every image of the batch::

    store = SampleAnnotationStore(directory)
    gate = store.prepare(num_channels)
    answer = ...  # ask the user, e.g. click.confirm()
    sample = store.resolve(gate_result(gate, answer))

The store itself never prompts, so it can be driven from tests.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path

from bfmeta.core.models import SampleAnnotation, SampleAnnotationSet, channel_label
from bfmeta.io.serialization import annotations_from_yaml, annotations_to_yaml

logger = logging.getLogger(__name__)

SAMPLE_INFO_FILENAME = "inputSampleInfo.yaml"

PLACEHOLDER_FLUOROPHORE = "Please_fill_in_a_fluorophore"
PLACEHOLDER_SAMPLE_NAME = "Please_fill_in_a_sample_name"
PLACEHOLDER_ELN_ID = "Please_fill_in_ELN_ID"
UNUSED_FLUOROPHORE = "NA"

# Channels after the second get UNUSED_FLUOROPHORE in the template.
_FLUORESCENT_CHANNELS = 2


class AnnotationState(enum.Enum):
    NO_FILE = "no_file"
    FILE_CREATED_AWAITING_USER = "file_created_awaiting_user"
    LOADED = "loaded"
    DEFAULTED = "defaulted"


class ConfirmResult(enum.Enum):
    """Outcome of the confirmation gate.

    ``NO_PRIOR_FILE`` means no hand-edited file exists: the template was only
    just written and the caller chose not to wait for it to be filled in.
    """

    CONFIRMED = "confirmed"
    DECLINED = "declined"
    NO_PRIOR_FILE = "no-prior-file"


@dataclass(frozen=True)
class ConfirmGate:
    """What the user is asked to confirm.

    Attributes:
        path: The sample info file.
        created: True if the file was written just now with placeholders,
            False if it already existed.
    """

    path: Path
    created: bool


def gate_result(gate: ConfirmGate, confirmed: bool | None) -> ConfirmResult:
    """Map a user's answer (None when nobody was asked) to a ConfirmResult."""
    if confirmed is None:
        return ConfirmResult.NO_PRIOR_FILE if gate.created else ConfirmResult.CONFIRMED
    return ConfirmResult.CONFIRMED if confirmed else ConfirmResult.DECLINED


def default_annotation_set(num_channels: int) -> SampleAnnotationSet:
    """Build a placeholder annotation set for ``num_channels`` channels."""
    if num_channels < 0:
        raise ValueError(f"num_channels must be >= 0, got {num_channels}")
    return SampleAnnotationSet(
        channels={
            channel_label(i): SampleAnnotation(
                fluorophore=(
                    PLACEHOLDER_FLUOROPHORE if i < _FLUORESCENT_CHANNELS else UNUSED_FLUOROPHORE
                ),
                sample_name=PLACEHOLDER_SAMPLE_NAME,
            )
            for i in range(num_channels)
        },
        external_reference_id=PLACEHOLDER_ELN_ID,
    )


class SampleAnnotationStore:
    """Reconciles the sample info file of one directory.

    Args:
        directory: Directory holding the batch's images.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.path = self.directory / SAMPLE_INFO_FILENAME
        self.state = AnnotationState.NO_FILE
        self._gate: ConfirmGate | None = None
        self._num_channels = 0

    def prepare(self, num_channels: int) -> ConfirmGate:
        """Make sure a sample info file exists and return the gate to confirm.

        Args:
            num_channels: Channel count of the batch's first image, used for
                the placeholder template.
        """
        self._num_channels = num_channels
        if self.path.exists():
            logger.info("Sample info file %s already exists", self.path)
            created = False
        else:
            annotations_to_yaml(default_annotation_set(num_channels), self.path)
            logger.info("Created sample info template %s", self.path)
            created = True
        self.state = AnnotationState.FILE_CREATED_AWAITING_USER
        self._gate = ConfirmGate(path=self.path, created=created)
        return self._gate

    def resolve(self, result: ConfirmResult) -> SampleAnnotationSet:
        """Turn the gate's outcome into the batch's annotation set.

        Raises:
            RuntimeError: If called before :meth:`prepare`.
            AnnotationParseError: If a confirmed file is malformed.
        """
        gate = self._gate
        if gate is None or self.state is not AnnotationState.FILE_CREATED_AWAITING_USER:
            raise RuntimeError("prepare() must be called before resolve()")

        if result is ConfirmResult.CONFIRMED:
            sample = annotations_from_yaml(self.path)
            self.state = AnnotationState.LOADED
            logger.info("Loaded sample info from %s", self.path)
            return sample

        if result is ConfirmResult.NO_PRIOR_FILE:
            if not gate.created:
                raise ValueError(f"{self.path} existed before this run")
            self.state = AnnotationState.DEFAULTED
            return default_annotation_set(self._num_channels)

        self.path.unlink(missing_ok=True)
        if gate.created:
            logger.info("Discarded %s; using default sample info", self.path)
            self.state = AnnotationState.DEFAULTED
            return default_annotation_set(self._num_channels)

        logger.info("Regenerating %s with default values", self.path)
        annotations_to_yaml(default_annotation_set(self._num_channels), self.path)
        sample = annotations_from_yaml(self.path)
        self.state = AnnotationState.LOADED
        return sample
