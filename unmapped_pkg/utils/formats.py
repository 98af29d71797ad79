"""Compression and sequence format enums, detected from file names."""

from enum import Enum
from pathlib import Path

__all__ = [
    'CodingType',
    'SequenceFormat',
]

COMPRESSION_EXTENSIONS = {'.gz', '.gzip', '.bz2', '.bzip2'}

# Spellings accepted for each coding; a leading dot is ignored
_CODING_ALIASES = {
    'gz': 'gzip',
    'gzip': 'gzip',
    'bz2': 'bzip2',
    'bzip2': 'bzip2',
    'none': 'none',
    '': 'none',
}

_FORMAT_ALIASES = {
    'fa': 'fasta',
    'fasta': 'fasta',
    'fna': 'fasta',
    'fq': 'fastq',
    'fastq': 'fastq',
    'bam': 'bam',
}


def _clean(value) -> str:
    return str(value).lower().strip().lstrip('.')


class CodingType(Enum):
    """Single-stream compression of an input or output file."""
    GZIP = "gzip"
    BZIP2 = "bzip2"
    NONE = "none"

    def to_extension(self) -> str:
        """'.gz', '.bz2' or '' for uncompressed."""
        return {'gzip': '.gz', 'bzip2': '.bz2'}.get(self.value, '')

    @classmethod
    def normalize(cls, value):
        """
        Map user input to a CodingType.

        Accepts a CodingType, None, an alias ('gz', '.bz2', 'gzip', 'none')
        or a file name whose last suffix is one. Unknown values map to NONE.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.NONE

        key = _clean(value)
        if key in _CODING_ALIASES:
            return cls(_CODING_ALIASES[key])

        suffix = Path(str(value)).suffix
        if suffix and suffix != str(value):
            return cls.normalize(suffix)
        return cls.NONE

    @classmethod
    def _missing_(cls, value):
        # CodingType("gz") and friends
        return cls.normalize(value)


class SequenceFormat(Enum):
    """Formats accepted as pipeline inputs."""
    FASTA = "fasta"
    FASTQ = "fastq"
    BAM = "bam"

    @classmethod
    def _missing_(cls, value):
        key = _clean(value)
        if key not in _FORMAT_ALIASES:
            key = _clean(Path(str(value)).suffix)
        if key in _FORMAT_ALIASES:
            return cls(_FORMAT_ALIASES[key])
        raise ValueError(f"'{value}' is not a valid {cls.__name__}")

    @classmethod
    def detect(cls, filepath: Path) -> "SequenceFormat":
        """
        Detect format from a file path, looking past a compression suffix.

        Examples:
            reads_1.fq.gz -> FASTQ
            sample.R1.fastq -> FASTQ
            aligned.bam -> BAM
        """
        suffixes = Path(filepath).suffixes
        if not suffixes:
            raise ValueError(f"Cannot determine format: no extension found in {Path(filepath).name}")

        if len(suffixes) > 1 and suffixes[-1].lower() in COMPRESSION_EXTENSIONS:
            return cls(suffixes[-2])
        return cls(suffixes[-1])
