"""Unmapped read extraction pipeline.

Stages run strictly in order, each one blocking until its external tools
exit:

1. Input resolution      (``RunConfig.from_inputs``)
2. Alignment acquisition (``acquire_alignment``)
3. Flag-based filtering  (``filter_alignment``)
4. Format conversion     (``convert_to_fastq``)
5. Output finalization   (``finalize_outputs``)

``UnmappedExtractor`` runs the pre-flight checks, owns the working area and
tracks the run state.
"""

import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from unmapped_pkg.config import OutputPaths, RunConfig, RunMode
from unmapped_pkg.flags import filter_args
from unmapped_pkg.logger import get_logger
from unmapped_pkg.process import run_piped, run_tool
from unmapped_pkg.utils.file_handler import (
    compress_file,
    decompress_file,
    detect_compression_type,
    get_compression_command,
    require_tools,
)
from unmapped_pkg.utils.formats import CodingType
from unmapped_pkg.utils.path_utils import check_output_path
from unmapped_pkg.utils.read_stats import (
    check_alignment_header,
    check_fastq_pairing,
    count_alignment_records,
)
from unmapped_pkg.workspace import working_area

__all__ = [
    'ALIGNER',
    'ALIGNMENT_TOOLKIT',
    'CONVERTER',
    'READ_GROUP',
    'RunState',
    'RunResult',
    'AlignmentSource',
    'required_tools',
    'validate_outputs',
    'stage_input',
    'acquire_alignment',
    'filter_alignment',
    'convert_to_fastq',
    'finalize_outputs',
    'UnmappedExtractor',
]

ALIGNER = 'bwa'
ALIGNMENT_TOOLKIT = 'samtools'
CONVERTER = 'bedtools'

# Some downstream tools refuse alignments without a read group
READ_GROUP = r'@RG\tID:unmapped\tSM:unmapped'

# Working area file names
INDEX_PREFIX = 'reference'
CAPTURE_BAM = 'aligned.bam'
FILTERED_BAM = 'filtered.bam'
READ1_FASTQ = 'R1.fastq'
READ2_FASTQ = 'R2.fastq'


class RunState(Enum):
    """Progress of one run; ABORTED is reachable from every other state."""
    START = "start"
    INPUT_RESOLVED = "input_resolved"
    ALIGNED = "aligned"
    FILTERED = "filtered"
    CONVERTED = "converted"
    FINALIZED = "finalized"
    ABORTED = "aborted"


@dataclass
class RunResult:
    """What a run produced."""
    config: RunConfig
    outputs: OutputPaths
    state: RunState = RunState.START
    records_kept: Optional[int] = None
    read_pairs: Optional[int] = None
    elapsed_time: Optional[float] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class AlignmentSource:
    """Alignment stream to filter: a BAM file or a command writing SAM to stdout."""
    path: Optional[Path] = None
    command: Optional[List[str]] = None


def required_tools(config: RunConfig) -> List[str]:
    """External executables needed by this configuration."""
    tools = [ALIGNMENT_TOOLKIT, CONVERTER]
    if config.mode == RunMode.PIPELINE:
        tools.insert(0, ALIGNER)
    return tools


def validate_outputs(config: RunConfig) -> None:
    """Check every destination before any tool runs."""
    for path in config.outputs.all():
        check_output_path(path, force=config.force)


def _check_dependencies(config: RunConfig) -> None:
    require_tools(required_tools(config))

    # Resolve compressors now so a missing one fails before any work starts
    get_compression_command(config.coding_type, 'compress', config.threads)
    if config.mode == RunMode.PIPELINE:
        for path in (config.reference, config.reads1, config.reads2):
            coding_type = detect_compression_type(path)
            if coding_type != CodingType.NONE:
                get_compression_command(coding_type, 'decompress', config.threads)


def stage_input(path: Path, workdir: Path, label: str, threads: int = 1) -> Path:
    """Decompress a gzip/bzip2 input into the working area; return others unchanged."""
    coding_type = detect_compression_type(path)
    if coding_type == CodingType.NONE:
        return path

    # reads_1.fastq.gz -> <workdir>/reads1_reads_1.fastq
    target = workdir / f"{label}_{path.stem}"

    get_logger().debug(f"Decompressing {path.name} -> {target}")
    return decompress_file(path, target, coding_type, threads)


def acquire_alignment(config: RunConfig, workdir: Path) -> AlignmentSource:
    """
    Produce the alignment stream.

    Direct mode returns the supplied BAM. Pipeline mode stages the inputs,
    indexes the reference and returns the aligner command, or, when the
    alignment must be kept, runs the aligner into a captured BAM first.
    """
    logger = get_logger()

    if config.mode == RunMode.DIRECT:
        logger.debug(f"Using pre-computed alignment: {config.alignment}")
        return AlignmentSource(path=config.alignment)

    reference = stage_input(config.reference, workdir, "reference", config.threads)
    reads1 = stage_input(config.reads1, workdir, "reads1", config.threads)
    reads2 = stage_input(config.reads2, workdir, "reads2", config.threads)

    index_prefix = workdir / INDEX_PREFIX
    logger.info(f"Indexing reference {config.reference.name}")
    run_tool([ALIGNER, 'index', '-p', index_prefix, reference])

    command = [
        ALIGNER, 'mem',
        '-t', str(config.threads),
        '-R', READ_GROUP,
        str(index_prefix), str(reads1), str(reads2),
    ]

    if not config.keep_alignment:
        return AlignmentSource(command=command)

    capture = workdir / CAPTURE_BAM
    logger.info(f"Aligning reads ({config.threads} threads), capturing full alignment")
    run_piped(command, [ALIGNMENT_TOOLKIT, 'view', '-b', '-o', str(capture), '-'])
    return AlignmentSource(path=capture)


def filter_alignment(config: RunConfig, source: AlignmentSource, workdir: Path) -> Path:
    """Keep the records matching the configured flag predicate; return the filtered BAM."""
    logger = get_logger()
    filtered = workdir / FILTERED_BAM
    view = [ALIGNMENT_TOOLKIT, 'view', '-b'] + filter_args(config.filter_mode) + ['-o', str(filtered)]

    if source.path is not None:
        run_tool(view + [str(source.path)])
    else:
        logger.info(f"Aligning reads ({config.threads} threads) straight into the flag filter")
        run_piped(source.command, view + ['-'])

    return filtered


def convert_to_fastq(filtered: Path, workdir: Path) -> tuple:
    """
    Split the filtered alignment into read 1 / read 2 FASTQ files.

    Records whose mate is missing are dropped by the converter; its warnings
    about them are expected and discarded.
    """
    read1 = workdir / READ1_FASTQ
    read2 = workdir / READ2_FASTQ
    run_tool(
        [CONVERTER, 'bamtofastq', '-i', str(filtered), '-fq', str(read1), '-fq2', str(read2)],
        discard_stderr=True,
    )
    return read1, read2


def finalize_outputs(
    config: RunConfig,
    read1: Path,
    read2: Path,
    workdir: Path,
    capture: Optional[Path] = None
) -> int:
    """
    Compress both FASTQ files, check their pairing and move everything into place.

    Nothing reaches the destinations until all outputs are complete.

    Returns:
        Number of read pairs written
    """
    logger = get_logger()
    outputs = config.outputs

    compressed1 = compress_file(read1, workdir / f"{read1.name}{config.coding_type.to_extension()}",
                                config.coding_type, config.threads)
    compressed2 = compress_file(read2, workdir / f"{read2.name}{config.coding_type.to_extension()}",
                                config.coding_type, config.threads)

    read_pairs = check_fastq_pairing(compressed1, compressed2, config.coding_type)

    shutil.move(str(compressed1), str(outputs.read1))
    shutil.move(str(compressed2), str(outputs.read2))
    logger.info(f"Output saved: {outputs.read1}")
    logger.info(f"Output saved: {outputs.read2}")

    if outputs.alignment is not None and capture is not None:
        shutil.move(str(capture), str(outputs.alignment))
        logger.info(f"Output saved: {outputs.alignment}")

    return read_pairs


class UnmappedExtractor:
    """Runs one extraction from a resolved configuration."""

    def __init__(self, config: RunConfig) -> None:
        self.logger = get_logger()
        self.config = config
        self.result = RunResult(config=config, outputs=config.outputs)

    @property
    def state(self) -> RunState:
        return self.result.state

    def _advance(self, state: RunState) -> None:
        self.logger.debug(f"State: {self.result.state.name} -> {state.name}")
        self.result.state = state

    def _preflight(self) -> None:
        """Checks that must pass before any tool runs or any file is created."""
        validate_outputs(self.config)
        _check_dependencies(self.config)
        if self.config.mode == RunMode.DIRECT:
            n_refs = check_alignment_header(self.config.alignment)
            self.logger.debug(f"Alignment header lists {n_refs} reference sequence(s)")

    def run(self) -> RunResult:
        """Execute all stages; the working area is removed whatever happens."""
        config = self.config
        self.logger.start_timer("extraction")
        self.logger.info(
            f"Extracting {config.filter_mode.value} unmapped pairs ({config.mode.value} mode)"
        )
        self.logger.debug(str(config))

        try:
            self._preflight()
            self._advance(RunState.INPUT_RESOLVED)

            with working_area(config.tmp_dir) as workdir:
                self.logger.info("[1/4] Acquiring alignment")
                source = acquire_alignment(config, workdir)
                self._advance(RunState.ALIGNED)

                self.logger.info(f"[2/4] Filtering records ({config.filter_mode.value} predicate)")
                filtered = filter_alignment(config, source, workdir)
                self.result.records_kept = count_alignment_records(filtered)
                self.logger.info(f"Kept {self.result.records_kept:,} alignment record(s)")
                self._advance(RunState.FILTERED)

                self.logger.info("[3/4] Converting to paired FASTQ")
                read1, read2 = convert_to_fastq(filtered, workdir)
                self._advance(RunState.CONVERTED)

                self.logger.info("[4/4] Compressing and writing outputs")
                capture = source.path if config.keep_alignment else None
                self.result.read_pairs = finalize_outputs(config, read1, read2, workdir, capture)
                self._advance(RunState.FINALIZED)

        except BaseException as e:
            self._advance(RunState.ABORTED)
            self.result.error = str(e) or type(e).__name__
            raise
        finally:
            self.result.elapsed_time = self.logger.stop_timer("extraction")

        self.logger.info(
            f"✓ Wrote {self.result.read_pairs:,} read pair(s) in {self.result.elapsed_time:.2f}s"
        )
        return self.result
