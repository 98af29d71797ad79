"""
Unmapped Read Extraction Package
================================

Extracts paired-end sequencing reads that fail to align to a reference
genome and writes them back out as compressed paired FASTQ.

Two ways in:

- **Pipeline mode** (reference + two read files): the reference is indexed
  with ``bwa index``, the reads are aligned with ``bwa mem`` and the alignment
  stream is filtered on the fly.
- **Direct mode** (one BAM file): a pre-computed alignment is filtered as-is.

Filtering uses ``samtools view`` flag tests and conversion uses
``bedtools bamtofastq``. All three tools must be on ``PATH``.

Filter Policies
---------------
- **strict** (default): records flagged unmapped (0x4) *and* mate unmapped
  (0x8); pairs where neither read aligned.
- **semi**: records without the proper-pair flag (0x2); anything that is not
  a concordantly mapped pair.

Quick Start
-----------

>>> from unmapped_pkg import extract_unmapped
>>> result = extract_unmapped(
...     ["ref.fa", "sample_1.fq.gz", "sample_2.fq.gz"],
...     base="results/sample", semi=True, keep_alignment=True,
... )
>>> result.outputs.read1
PosixPath('results/sample_R1.fastq.gz')

Command line::

    unmapped-extract -b results/sample ref.fa sample_1.fq.gz sample_2.fq.gz
    unmapped-extract -s -b results/sample aligned.bam

Error Handling
--------------
- UnmappedError: Base exception for all errors
    - UsageError: wrong number of inputs or bad option values (exit 2)
    - MissingInputError: input file missing or unreadable
    - MissingDependencyError: external tool not on PATH
    - OutputConflictError: destination exists or is not writable
    - ExternalToolError: a delegated tool exited non-zero
        - CompressionError
    - AlignmentFormatError: BAM input cannot be read
    - PairingError: output read files differ in record count
"""

__version__ = "0.1.0"
__license__ = "EUPL-1.2 license"

from typing import Optional, Sequence, Union
from pathlib import Path

# Public API exports
from unmapped_pkg.config import RunConfig, RunMode, OutputPaths
from unmapped_pkg.flags import FilterMode, record_passes, filter_args
from unmapped_pkg.pipeline import UnmappedExtractor, RunResult, RunState
from unmapped_pkg.report import RunReport
from unmapped_pkg.logger import setup_logging, get_logger
from unmapped_pkg.exceptions import (
    UnmappedError,
    UsageError,
    MissingInputError,
    MissingDependencyError,
    OutputConflictError,
    ExternalToolError,
    CompressionError,
    AlignmentFormatError,
    PairingError,
)


# ============================================================================
# Functional API - Simplified wrapper functions
# ============================================================================

def extract_unmapped(
    inputs: Sequence[Union[str, Path]],
    semi: bool = False,
    report: Optional[Union[str, Path]] = None,
    **options
) -> RunResult:
    """
    Run one extraction.

    This is a simplified wrapper around RunConfig and UnmappedExtractor.
    ``options`` are RunConfig fields (base, keep_alignment, force, threads,
    coding_type, tmp_dir).
    """
    config = RunConfig.from_inputs(
        inputs,
        filter_mode=FilterMode.from_semi(semi),
        report=report,
        **options
    )
    extractor = UnmappedExtractor(config)
    try:
        return extractor.run()
    finally:
        if config.report is not None:
            RunReport(config.report).write(extractor.result)


__all__ = [
    # Configuration
    'RunConfig',
    'RunMode',
    'OutputPaths',

    # Filtering
    'FilterMode',
    'record_passes',
    'filter_args',

    # Pipeline
    'UnmappedExtractor',
    'RunResult',
    'RunState',
    'extract_unmapped',
    'RunReport',

    # Logging
    'setup_logging',
    'get_logger',

    # Exceptions
    'UnmappedError',
    'UsageError',
    'MissingInputError',
    'MissingDependencyError',
    'OutputConflictError',
    'ExternalToolError',
    'CompressionError',
    'AlignmentFormatError',
    'PairingError',

    # Version info
    '__version__',
    '__license__',
]
