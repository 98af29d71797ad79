"""Immutable run configuration, built once after argument parsing."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

from unmapped_pkg.exceptions import UsageError
from unmapped_pkg.flags import FilterMode
from unmapped_pkg.logger import get_logger
from unmapped_pkg.utils.formats import CodingType, SequenceFormat
from unmapped_pkg.utils.path_utils import build_output_paths, resolve_input_path
from unmapped_pkg.utils.settings import BaseSettings

__all__ = [
    'DEFAULT_BASE',
    'DEFAULT_THREADS',
    'RunMode',
    'OutputPaths',
    'RunConfig',
]

DEFAULT_BASE = Path("unmapped")
DEFAULT_THREADS = os.cpu_count() or 1

# Expected input formats, used only for warnings
_EXPECTED_FORMATS = {
    'alignment': SequenceFormat.BAM,
    'reference': SequenceFormat.FASTA,
    'reads1': SequenceFormat.FASTQ,
    'reads2': SequenceFormat.FASTQ,
}


class RunMode(Enum):
    """Where the alignment stream comes from."""
    DIRECT = "direct"      # pre-computed alignment file
    PIPELINE = "pipeline"  # reference + paired reads, aligned here


@dataclass(frozen=True)
class OutputPaths:
    """Final destinations of one run."""
    read1: Path
    read2: Path
    alignment: Optional[Path] = None

    def all(self):
        return [p for p in (self.read1, self.read2, self.alignment) if p is not None]


@dataclass(frozen=True)
class RunConfig(BaseSettings):
    """Everything a run needs; passed unchanged to every stage."""
    mode: RunMode
    alignment: Optional[Path] = None
    reference: Optional[Path] = None
    reads1: Optional[Path] = None
    reads2: Optional[Path] = None

    base: Path = DEFAULT_BASE
    filter_mode: FilterMode = FilterMode.STRICT
    keep_alignment: bool = False
    force: bool = False
    threads: int = field(default=DEFAULT_THREADS)
    coding_type: CodingType = CodingType.GZIP
    tmp_dir: Optional[Path] = None
    report: Optional[Path] = None

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, 'coding_type', CodingType.normalize(self.coding_type))
        object.__setattr__(self, 'filter_mode', FilterMode(self.filter_mode))
        object.__setattr__(self, 'mode', RunMode(self.mode))
        object.__setattr__(self, 'base', Path(self.base))

        if self.mode == RunMode.DIRECT:
            if self.alignment is None:
                raise ValueError("Direct mode requires an alignment file")
            if self.keep_alignment:
                raise ValueError("keep_alignment is only valid in pipeline mode")
        elif None in (self.reference, self.reads1, self.reads2):
            raise ValueError("Pipeline mode requires reference, reads1 and reads2")

        if self.coding_type == CodingType.NONE:
            raise ValueError("Output reads must be compressed (gzip or bzip2)")

        if self.threads < 1:
            raise ValueError(f"threads must be >= 1, got {self.threads}")

        if not self.base.name:
            raise ValueError(f"Output base must name a file, got '{self.base}'")

    @property
    def fastq_extension(self) -> str:
        return f".fastq{self.coding_type.to_extension()}"

    @property
    def outputs(self) -> OutputPaths:
        read1, read2, alignment = build_output_paths(
            self.base, self.fastq_extension, self.keep_alignment
        )
        return OutputPaths(read1=read1, read2=read2, alignment=alignment)

    @classmethod
    def from_inputs(
        cls,
        inputs: Sequence[Union[str, Path]],
        **options
    ) -> "RunConfig":
        """
        Resolve positional inputs into a configuration.

        One path selects direct mode (pre-computed alignment); three paths
        (reference, reads 1, reads 2) select pipeline mode. Every path must be
        an existing, readable file. Asking to keep the alignment in direct mode
        only logs a warning and is switched off.

        Raises:
            UsageError: Wrong number of inputs or invalid option values
            MissingInputError: An input path is missing or unreadable
        """
        logger = get_logger()

        if len(inputs) == 1:
            mode = RunMode.DIRECT
            labels = ('alignment',)
        elif len(inputs) == 3:
            mode = RunMode.PIPELINE
            labels = ('reference', 'reads1', 'reads2')
        else:
            raise UsageError(
                f"Expected 1 input (ALIGNMENT_FILE) or 3 inputs (REFERENCE READS1 READS2), got {len(inputs)}"
            )

        resolved = {}
        for label, path in zip(labels, inputs):
            resolved[label] = resolve_input_path(path, label=label)
            _warn_unexpected_format(resolved[label], label)

        if mode == RunMode.DIRECT and options.get('keep_alignment'):
            logger.warning(
                "--keep has no effect with a pre-computed alignment file; no new BAM is written"
            )
            options['keep_alignment'] = False

        # Drop unset options so dataclass defaults apply
        options = {k: v for k, v in options.items() if v is not None}
        cls._check_fields(options.keys())

        try:
            return cls(mode=mode, **resolved, **cls._normalize_values(options))
        except ValueError as e:
            raise UsageError(str(e)) from e


def _warn_unexpected_format(path: Path, label: str) -> None:
    expected = _EXPECTED_FORMATS[label]
    try:
        detected = SequenceFormat.detect(path)
    except ValueError:
        detected = None
    if detected != expected:
        get_logger().warning(
            f"{label} '{path.name}' does not look like {expected.value.upper()}; continuing anyway"
        )
