"""SAM flag bits and the two unmapped-read selection policies.

Both policies are single bitwise tests on a record's own FLAG field, so each
alignment record is kept or dropped on its own without looking up its mate:

- STRICT keeps records flagged both unmapped (0x4) and mate unmapped (0x8),
  i.e. pairs where neither read aligned anywhere.
- SEMI keeps records without the proper-pair bit (0x2), i.e. everything that
  is not part of a clean, concordantly mapped pair. The self/mate unmapped
  bits are not tested.
"""

from enum import Enum
from typing import List

__all__ = [
    'FLAG_PAIRED',
    'FLAG_PROPER_PAIR',
    'FLAG_UNMAPPED',
    'FLAG_MATE_UNMAPPED',
    'FilterMode',
    'record_passes',
    'filter_args',
]

FLAG_PAIRED = 0x1
FLAG_PROPER_PAIR = 0x2
FLAG_UNMAPPED = 0x4
FLAG_MATE_UNMAPPED = 0x8

STRICT_REQUIRED = FLAG_UNMAPPED | FLAG_MATE_UNMAPPED  # 12
SEMI_EXCLUDED = FLAG_PROPER_PAIR                      # 2


class FilterMode(Enum):
    """Record selection policy."""
    STRICT = "strict"
    SEMI = "semi"

    @classmethod
    def from_semi(cls, semi: bool) -> "FilterMode":
        return cls.SEMI if semi else cls.STRICT

    @classmethod
    def _missing_(cls, value):
        value_lower = str(value).lower().strip()
        for member in cls:
            if member.value == value_lower:
                return member
        raise ValueError(f"'{value}' is not a valid {cls.__name__}")


def record_passes(flag: int, mode: FilterMode) -> bool:
    """Return True if an alignment record with this FLAG is kept under mode."""
    if mode == FilterMode.STRICT:
        return flag & STRICT_REQUIRED == STRICT_REQUIRED
    return flag & SEMI_EXCLUDED == 0


def filter_args(mode: FilterMode) -> List[str]:
    """samtools view arguments implementing record_passes for mode."""
    if mode == FilterMode.STRICT:
        return ['-f', str(STRICT_REQUIRED)]
    return ['-F', str(SEMI_EXCLUDED)]
