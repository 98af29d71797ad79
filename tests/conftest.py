"""Shared fixtures: tiny BAM files and an in-process stand-in for bwa/samtools/bedtools."""

import gzip
import shutil
import sys
import tempfile
from pathlib import Path

import pysam
import pytest
from Bio.SeqIO.QualityIO import FastqGeneralIterator
from loguru import logger

from unmapped_pkg import pipeline
from unmapped_pkg.process import ToolResult
from unmapped_pkg.utils import file_handler

HEADER = {
    'HD': {'VN': '1.6', 'SO': 'unsorted'},
    'SQ': [{'SN': 'chr1', 'LN': 1000}],
    'RG': [{'ID': 'unmapped', 'SM': 'unmapped'}],
}

# (name, read1 flag, read2 flag, mapped position or None)
# A: both reads unmapped; B: read 1 mapped, read 2 unmapped; C: proper pair
PAIR_A = ('pairA', 77, 141, None)
PAIR_B = ('pairB', 73, 133, 100)
PAIR_C = ('pairC', 99, 147, 200)
ALL_PAIRS = [PAIR_A, PAIR_B, PAIR_C]

SEQUENCES = {1: 'ACGTACGTAC', 2: 'TTGCATTGCA'}


def _segment(header, name, flag, position, read_number):
    seg = pysam.AlignedSegment(header)
    seg.query_name = name
    seg.flag = flag
    seg.query_sequence = SEQUENCES[read_number]
    seg.query_qualities = pysam.qualitystring_to_array('I' * 10)
    if position is None:
        seg.reference_id = -1
        seg.reference_start = -1
        seg.next_reference_id = -1
        seg.next_reference_start = -1
    else:
        seg.reference_id = 0
        seg.reference_start = position
        seg.next_reference_id = 0
        seg.next_reference_start = position
        if not flag & 0x4:
            seg.cigarstring = '10M'
            seg.mapping_quality = 60
    return seg


def write_bam(path: Path, pairs=ALL_PAIRS, header=HEADER) -> Path:
    """Write mates adjacent, the way an aligner emits them."""
    with pysam.AlignmentFile(str(path), 'wb', header=pysam.AlignmentHeader.from_dict(header)) as out:
        for name, flag1, flag2, position in pairs:
            out.write(_segment(out.header, name, flag1, position, 1))
            out.write(_segment(out.header, name, flag2, position, 2))
    return path


def read_fastq_names(path: Path):
    """Read names from a gzip FASTQ, in file order."""
    with gzip.open(path, 'rt') as handle:
        return [title.split()[0] for title, _seq, _qual in FastqGeneralIterator(handle)]


class FakeToolchain:
    """Python stand-ins for the aligner, alignment toolkit and converter."""

    def __init__(self, aligner_output: Path):
        self.aligner_output = aligner_output
        self.calls = []
        self.fail_tool = None

    def _result(self, args, returncode=0, stderr=""):
        return ToolResult(args=[str(a) for a in args], returncode=returncode, stderr=stderr)

    def run_tool(self, args, stdin=None, stdout=None, discard_stderr=False, check=True, error_class=None):
        args = [str(a) for a in args]
        self.calls.append(args)

        if self.fail_tool == (args[0], args[1]):
            result = self._result(args, returncode=1, stderr=f"[{args[1]}] simulated failure")
            return result.check() if check else result

        if args[:2] == ['bwa', 'index']:
            prefix = Path(args[args.index('-p') + 1])
            for ext in ('.amb', '.ann', '.bwt', '.pac', '.sa'):
                Path(f"{prefix}{ext}").write_bytes(b"")
        elif args[:2] == ['samtools', 'view']:
            self._samtools_view(args, args[-1])
        elif args[:2] == ['bedtools', 'bamtofastq']:
            self._bamtofastq(args)
        else:
            raise AssertionError(f"Unexpected tool call: {args}")
        return self._result(args)

    def run_piped(self, producer, consumer, stdout=None, check=True):
        producer = [str(a) for a in producer]
        consumer = [str(a) for a in consumer]
        self.calls.append(producer + ['|'] + consumer)

        if self.fail_tool == (producer[0], producer[1]):
            result = self._result(producer, returncode=1, stderr="[mem] simulated failure")
            if check:
                result.check()
            return [result, self._result(consumer)]

        assert producer[:2] == ['bwa', 'mem'], producer
        assert consumer[-1] == '-', consumer
        self._samtools_view(consumer, str(self.aligner_output))
        return [self._result(producer), self._result(consumer)]

    @staticmethod
    def _samtools_view(args, source):
        required = int(args[args.index('-f') + 1]) if '-f' in args else 0
        excluded = int(args[args.index('-F') + 1]) if '-F' in args else 0
        target = args[args.index('-o') + 1]

        with pysam.AlignmentFile(source, 'rb', check_sq=False) as bam_in:
            with pysam.AlignmentFile(target, 'wb', template=bam_in) as bam_out:
                for read in bam_in:
                    if read.flag & required == required and read.flag & excluded == 0:
                        bam_out.write(read)

    @staticmethod
    def _bamtofastq(args):
        source = args[args.index('-i') + 1]
        fq1 = Path(args[args.index('-fq') + 1])
        fq2 = Path(args[args.index('-fq2') + 1])

        def record(read):
            quals = pysam.array_to_qualitystring(read.query_qualities)
            return f"@{read.query_name}\n{read.query_sequence}\n+\n{quals}\n"

        with pysam.AlignmentFile(source, 'rb', check_sq=False) as bam_in, \
                open(fq1, 'w') as out1, open(fq2, 'w') as out2:
            pending = None
            for read in bam_in:
                # Mates must be adjacent; orphans are dropped
                if pending is not None and pending.query_name == read.query_name:
                    first, second = (pending, read) if pending.is_read1 else (read, pending)
                    out1.write(record(first))
                    out2.write(record(second))
                    pending = None
                else:
                    pending = read


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def alignment_bam(temp_dir):
    """Pre-computed alignment holding pairs A, B and C."""
    return write_bam(temp_dir / "aligned_input.bam")


@pytest.fixture
def work_parent(temp_dir):
    """Parent directory for working areas, so tests can see leftovers."""
    parent = temp_dir / "work"
    parent.mkdir()
    return parent


@pytest.fixture
def out_dir(temp_dir):
    out = temp_dir / "out"
    out.mkdir()
    return out


@pytest.fixture
def missing_tools():
    """Names the fake PATH lookup reports as absent."""
    return set()


@pytest.fixture
def toolchain(monkeypatch, alignment_bam, missing_tools):
    """Replace external tool execution in the pipeline with FakeToolchain."""
    fake = FakeToolchain(aligner_output=alignment_bam)
    real_which = shutil.which

    def fake_which(name, *args, **kwargs):
        if name in missing_tools:
            return None
        if name in ('bwa', 'samtools', 'bedtools'):
            return f"/fake/bin/{name}"
        return real_which(name, *args, **kwargs)

    file_handler.clear_tool_cache()
    monkeypatch.setattr(file_handler.shutil, 'which', fake_which)
    monkeypatch.setattr(pipeline, 'run_tool', fake.run_tool)
    monkeypatch.setattr(pipeline, 'run_piped', fake.run_piped)
    yield fake
    file_handler.clear_tool_cache()


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo sinks added by setup_logging, which bind the stream captured for one test."""
    yield
    logger.remove()
    logger.add(lambda message: sys.stderr.write(message), level="WARNING")


@pytest.fixture
def log_messages():
    """Collect WARNING and above messages emitted through loguru."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)
