"""Tests for SAM flag predicates."""

import pysam
import pytest

from unmapped_pkg.flags import *
from conftest import HEADER, ALL_PAIRS, PAIR_A, PAIR_B, PAIR_C


class TestRecordPasses:
    """Test the strict and semi record predicates."""

    @pytest.mark.parametrize("flag,expected", [
        (12, True),
        (77, True),     # paired, unmapped, mate unmapped, read 1
        (141, True),    # same, read 2
        (4, False),     # unmapped, mate mapped
        (8, False),     # mate unmapped only
        (73, False),
        (99, False),
        (0, False),
    ])
    def test_strict(self, flag, expected):
        assert record_passes(flag, FilterMode.STRICT) is expected

    @pytest.mark.parametrize("flag,expected", [
        (0, True),
        (77, True),
        (73, True),
        (133, True),
        (2, False),
        (99, False),
        (147, False),
        (2 | 4 | 8, False),  # proper-pair bit alone decides
    ])
    def test_semi(self, flag, expected):
        assert record_passes(flag, FilterMode.SEMI) is expected

    def test_strict_is_subset_of_semi_for_consistent_flags(self):
        """Every strictly kept record is semi kept unless it carries the proper-pair bit."""
        for flag in range(4096):
            if record_passes(flag, FilterMode.STRICT) and not flag & FLAG_PROPER_PAIR:
                assert record_passes(flag, FilterMode.SEMI)

    def test_semi_ignores_unmapped_bits(self):
        for flag in range(4096):
            expected = not flag & FLAG_PROPER_PAIR
            assert record_passes(flag, FilterMode.SEMI) is expected


class TestThreePairExample:
    """Pairs A (both unmapped), B (one mate mapped) and C (proper pair)."""

    @pytest.fixture
    def records(self):
        header = pysam.AlignmentHeader.from_dict(HEADER)
        segments = []
        for name, flag1, flag2, _position in ALL_PAIRS:
            for flag in (flag1, flag2):
                seg = pysam.AlignedSegment(header)
                seg.query_name = name
                seg.flag = flag
                segments.append(seg)
        return segments

    def _kept_names(self, records, mode):
        return {r.query_name for r in records if record_passes(r.flag, mode)}

    def test_strict_keeps_only_fully_unmapped_pair(self, records):
        assert self._kept_names(records, FilterMode.STRICT) == {PAIR_A[0]}

    def test_semi_keeps_all_but_proper_pair(self, records):
        assert self._kept_names(records, FilterMode.SEMI) == {PAIR_A[0], PAIR_B[0]}
        assert PAIR_C[0] not in self._kept_names(records, FilterMode.SEMI)

    def test_both_mates_of_pair_a_kept(self, records):
        kept = [r for r in records if record_passes(r.flag, FilterMode.STRICT)]
        assert len(kept) == 2
        assert {r.is_read1 for r in kept} == {True, False}


class TestFilterArgs:
    """Test samtools argument generation."""

    def test_strict_requires_bits(self):
        assert filter_args(FilterMode.STRICT) == ['-f', '12']

    def test_semi_excludes_proper_pair(self):
        assert filter_args(FilterMode.SEMI) == ['-F', '2']


class TestFilterMode:
    """Test FilterMode construction."""

    def test_from_semi(self):
        assert FilterMode.from_semi(True) == FilterMode.SEMI
        assert FilterMode.from_semi(False) == FilterMode.STRICT

    def test_case_insensitive(self):
        assert FilterMode("SEMI") == FilterMode.SEMI
        assert FilterMode(" Strict ") == FilterMode.STRICT

    def test_invalid_value(self):
        with pytest.raises(ValueError, match="not a valid FilterMode"):
            FilterMode("loose")
