"""External process execution with structured results.

Every delegated tool (aligner, alignment toolkit, converter, compressors) is
started through ``run_tool`` or ``run_piped`` so that exit statuses are always
checked and turned into ``ExternalToolError``.
"""

import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional, Sequence, Union

from unmapped_pkg.exceptions import ExternalToolError, MissingDependencyError
from unmapped_pkg.logger import get_logger

__all__ = [
    'ToolResult',
    'run_tool',
    'run_piped',
]

# Tail of stderr kept on a ToolResult
STDERR_TAIL_BYTES = 4096


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external tool invocation."""
    args: List[str]
    returncode: int
    stderr: str = ""

    @property
    def tool(self) -> str:
        return Path(self.args[0]).name if self.args else ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self, error_class=ExternalToolError) -> "ToolResult":
        """Raise error_class if the tool exited non-zero."""
        if not self.ok:
            raise error_class(self.tool, self.returncode, self.stderr)
        return self


def _read_tail(handle: IO[bytes]) -> str:
    handle.seek(0, 2)
    size = handle.tell()
    handle.seek(max(0, size - STDERR_TAIL_BYTES))
    return handle.read().decode('utf-8', errors='replace')


def _command_line(args: Sequence[str]) -> str:
    return ' '.join(str(a) for a in args)


def run_tool(
    args: Sequence[Union[str, Path]],
    stdin: Optional[IO[bytes]] = None,
    stdout: Optional[IO[bytes]] = None,
    discard_stderr: bool = False,
    check: bool = True,
    error_class=ExternalToolError
) -> ToolResult:
    """
    Run one external tool to completion.

    Args:
        args: Command and arguments
        stdin: Optional binary handle connected to the tool's stdin
        stdout: Optional binary handle receiving stdout (discarded if None)
        discard_stderr: Send stderr to /dev/null instead of capturing it
        check: Raise error_class on a non-zero exit
        error_class: ExternalToolError subclass to raise

    Returns:
        ToolResult with exit status and stderr tail
    """
    args = [str(a) for a in args]
    logger = get_logger()
    logger.debug(f"Running: {_command_line(args)}")

    with tempfile.TemporaryFile() as err_handle:
        try:
            proc = subprocess.run(
                args,
                stdin=stdin if stdin is not None else subprocess.DEVNULL,
                stdout=stdout if stdout is not None else subprocess.DEVNULL,
                stderr=subprocess.DEVNULL if discard_stderr else err_handle,
            )
        except FileNotFoundError as e:
            raise MissingDependencyError(f"Required tool not found on PATH: {args[0]}") from e

        stderr = "" if discard_stderr else _read_tail(err_handle)

    result = ToolResult(args=args, returncode=proc.returncode, stderr=stderr)
    if check:
        result.check(error_class)
    return result


def run_piped(
    producer: Sequence[Union[str, Path]],
    consumer: Sequence[Union[str, Path]],
    stdout: Optional[IO[bytes]] = None,
    check: bool = True
) -> List[ToolResult]:
    """
    Run ``producer | consumer`` and wait for both.

    The producer's stdout is streamed straight into the consumer's stdin, so
    the intermediate never touches disk. Stderr of both tools goes to
    anonymous temporary files to keep chatty tools from blocking on a full pipe.

    Returns:
        [producer_result, consumer_result]
    """
    producer = [str(a) for a in producer]
    consumer = [str(a) for a in consumer]
    logger = get_logger()
    logger.debug(f"Running: {_command_line(producer)} | {_command_line(consumer)}")

    with tempfile.TemporaryFile() as producer_err, tempfile.TemporaryFile() as consumer_err:
        try:
            producer_proc = subprocess.Popen(
                producer,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=producer_err,
            )
        except FileNotFoundError as e:
            raise MissingDependencyError(f"Required tool not found on PATH: {producer[0]}") from e

        try:
            consumer_proc = subprocess.Popen(
                consumer,
                stdin=producer_proc.stdout,
                stdout=stdout if stdout is not None else subprocess.DEVNULL,
                stderr=consumer_err,
            )
        except FileNotFoundError as e:
            producer_proc.kill()
            producer_proc.wait()
            raise MissingDependencyError(f"Required tool not found on PATH: {consumer[0]}") from e
        finally:
            # Close in parent so the producer sees SIGPIPE if the consumer dies
            producer_proc.stdout.close()

        consumer_returncode = consumer_proc.wait()
        producer_returncode = producer_proc.wait()

        results = [
            ToolResult(args=producer, returncode=producer_returncode, stderr=_read_tail(producer_err)),
            ToolResult(args=consumer, returncode=consumer_returncode, stderr=_read_tail(consumer_err)),
        ]

    if check:
        # Consumer first: when it dies early the producer only reports SIGPIPE
        for result in reversed(results):
            result.check()
    return results
