import argparse
import signal
import sys
from pathlib import Path

from unmapped_pkg import __version__
from unmapped_pkg.config import DEFAULT_BASE, DEFAULT_THREADS, RunConfig
from unmapped_pkg.exceptions import UnmappedError, UsageError
from unmapped_pkg.flags import FilterMode
from unmapped_pkg.logger import add_log_file, get_logger, setup_logging
from unmapped_pkg.pipeline import UnmappedExtractor
from unmapped_pkg.report import RunReport

USAGE = (
    "%(prog)s [OPTIONS] REFERENCE READS1 READS2\n"
    "       %(prog)s [OPTIONS] ALIGNMENT_FILE"
)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if len(args.inputs) not in (1, 3):
        parser.error(
            f"expected 1 input (ALIGNMENT_FILE) or 3 inputs (REFERENCE READS1 READS2), got {len(args.inputs)}"
        )

    # -v narrates stages, -vv also shows every command line
    console_level = {0: "WARNING", 1: "INFO"}.get(args.verbose, "DEBUG")
    setup_logging(console_level=console_level)
    logger = get_logger()

    _install_signal_handlers()

    try:
        config = RunConfig.from_inputs(
            args.inputs,
            base=args.base,
            filter_mode=FilterMode.from_semi(args.semi),
            keep_alignment=args.keep,
            force=args.force,
            threads=args.threads,
            coding_type=args.coding,
            tmp_dir=args.tmp_dir,
            report=args.report,
        )
    except UsageError as e:
        parser.error(str(e))
    except UnmappedError as e:
        logger.error(str(e))
        return e.exit_code

    # Only once inputs resolve, so a rejected run leaves no log directory behind
    if args.log_file is not None:
        add_log_file(args.log_file)

    extractor = UnmappedExtractor(config)
    try:
        extractor.run()
        return 0
    except UnmappedError as e:
        logger.error(str(e))
        return e.exit_code
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    finally:
        if config.report is not None:
            report_path = RunReport(config.report).write(extractor.result)
            logger.info(f"Report written to: {report_path}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="unmapped-extract",
        usage=USAGE,
        description="Extract read pairs that fail to align to a reference genome "
                    "into compressed paired FASTQ files.",
    )
    p.add_argument(
        "inputs",
        nargs="+",
        metavar="INPUT",
        help="Either REFERENCE READS1 READS2 (FASTA + paired FASTQ, optionally .gz/.bz2) "
             "or a single pre-computed ALIGNMENT_FILE (BAM)."
    )
    p.add_argument(
        "-b", "--base",
        type=Path,
        default=DEFAULT_BASE,
        help="Output base path; writes {base}_R1.fastq.gz and {base}_R2.fastq.gz (default: ./unmapped)."
    )
    p.add_argument(
        "-s", "--semi",
        action="store_true",
        help="Keep every record that is not part of a concordantly mapped pair, "
             "instead of only pairs where both reads are unmapped."
    )
    p.add_argument(
        "-k", "--keep",
        action="store_true",
        help="Also write the unfiltered alignment as {base}.bam (ignored for BAM input)."
    )
    p.add_argument(
        "-f", "--force",
        action="store_true",
        help="Overwrite existing output files."
    )
    p.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Report progress on stderr; repeat to also log tool command lines."
    )
    p.add_argument(
        "-t", "--threads",
        type=_positive_int,
        default=DEFAULT_THREADS,
        help=f"Threads for the aligner and compressor (default: CPU count, {DEFAULT_THREADS})."
    )
    p.add_argument(
        "-c", "--coding",
        choices=["gz", "bz2"],
        default="gz",
        help="Compression of the output FASTQ files (default: gz)."
    )
    p.add_argument(
        "--tmp-dir",
        type=Path,
        default=None,
        help="Directory in which to create the temporary working area (default: system temp)."
    )
    p.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write a run report to this path (JSON if it ends in .json, plain text otherwise)."
    )
    p.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write a DEBUG-level log to this file."
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return p


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{value}'")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def _raise_on_signal(signum, frame):
    # Unwinds the stack so the working area is removed
    raise SystemExit(128 + signum)


def _install_signal_handlers() -> None:
    signal.signal(signal.SIGTERM, _raise_on_signal)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _raise_on_signal)


if __name__ == "__main__":
    sys.exit(main())
