"""Record-level checks on alignment inputs and FASTQ outputs."""

import bz2
import gzip
from pathlib import Path
from typing import IO, Union

import pysam  # type: ignore
from Bio.SeqIO.QualityIO import FastqGeneralIterator

from unmapped_pkg.exceptions import AlignmentFormatError, PairingError
from unmapped_pkg.utils.formats import CodingType

__all__ = [
    'open_file_with_coding_type',
    'count_fastq_records',
    'check_fastq_pairing',
    'check_alignment_header',
    'count_alignment_records',
]


def open_file_with_coding_type(
    filepath: Union[str, Path],
    coding_type: CodingType,
    mode: str = 'rt'
) -> IO:
    """Open a file with automatic decompression based on CodingType enum."""
    filepath = Path(filepath)

    if coding_type == CodingType.GZIP:
        return gzip.open(filepath, mode)
    elif coding_type == CodingType.BZIP2:
        return bz2.open(filepath, mode)
    else:
        return open(filepath, mode)


def count_fastq_records(filepath: Union[str, Path], coding_type: CodingType) -> int:
    """Count FASTQ records using Biopython's low-level parser."""
    with open_file_with_coding_type(filepath, coding_type) as handle:
        return sum(1 for _ in FastqGeneralIterator(handle))


def check_fastq_pairing(read1: Path, read2: Path, coding_type: CodingType) -> int:
    """
    Verify that both read files hold the same number of records.

    Returns:
        Number of read pairs

    Raises:
        PairingError: If the counts differ
    """
    count1 = count_fastq_records(read1, coding_type)
    count2 = count_fastq_records(read2, coding_type)
    if count1 != count2:
        raise PairingError(
            f"Read files are not paired: {read1.name} has {count1:,} records, "
            f"{read2.name} has {count2:,}"
        )
    return count1


def check_alignment_header(filepath: Union[str, Path]) -> int:
    """
    Open a BAM file and read its header.

    An empty header is valid (e.g. a BAM holding only unmapped reads).

    Returns:
        Number of reference sequences declared in the header
    """
    try:
        with pysam.AlignmentFile(str(filepath), "rb", check_sq=False, check_header=False) as bam_file:
            header = bam_file.header.to_dict()
    except (OSError, ValueError) as e:
        raise AlignmentFormatError(f"Cannot read alignment file {filepath}: {e}") from e

    return len(header.get('SQ', []))


def count_alignment_records(filepath: Union[str, Path]) -> int:
    """Count all records in a BAM file."""
    try:
        with pysam.AlignmentFile(str(filepath), "rb", check_sq=False, check_header=False) as bam_file:
            return bam_file.count(until_eof=True)
    except (OSError, ValueError) as e:
        raise AlignmentFormatError(f"Cannot read alignment file {filepath}: {e}") from e
