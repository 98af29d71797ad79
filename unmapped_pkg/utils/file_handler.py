"""External tool lookup and (de)compression through pigz/gzip or pbzip2/bzip2."""

import shutil
import threading
from pathlib import Path
from typing import Iterable, List, Tuple

from unmapped_pkg.exceptions import CompressionError, MissingDependencyError
from unmapped_pkg.process import run_tool
from unmapped_pkg.utils.formats import CodingType

__all__ = [
    # PATH lookups
    'check_tool_available',
    'clear_tool_cache',
    'require_tools',

    # Compressor selection
    'compression_tool_names',
    'get_compression_command',
    'detect_compression_type',

    # File conversion
    'compress_file',
    'decompress_file',
]


# tool name -> found on PATH
_TOOL_CACHE = {}
_TOOL_CACHE_LOCK = threading.Lock()

# coding_type -> (parallel tool, standard tool)
_COMPRESSORS = {
    CodingType.GZIP: ('pigz', 'gzip'),
    CodingType.BZIP2: ('pbzip2', 'bzip2'),
}


def _gzip_args(mode: str, threads: int) -> List[str]:
    # -n: no name or timestamp in the header, so reruns are byte-identical
    return ['-c', '-n'] if mode == 'compress' else ['-dc']


def _pigz_args(mode: str, threads: int) -> List[str]:
    return _gzip_args(mode, threads) + ['-p', str(threads)]


def _bzip2_args(mode: str, threads: int) -> List[str]:
    return ['-c'] if mode == 'compress' else ['-dc']


def _pbzip2_args(mode: str, threads: int) -> List[str]:
    return _bzip2_args(mode, threads) + [f'-p{threads}']


_TOOL_ARGS = {
    'gzip': _gzip_args,
    'pigz': _pigz_args,
    'bzip2': _bzip2_args,
    'pbzip2': _pbzip2_args,
}


def check_tool_available(tool_name: str) -> bool:
    """Return True if tool_name resolves on PATH (cached)."""
    if tool_name in _TOOL_CACHE:
        return _TOOL_CACHE[tool_name]

    with _TOOL_CACHE_LOCK:
        if tool_name not in _TOOL_CACHE:
            _TOOL_CACHE[tool_name] = shutil.which(tool_name) is not None
        return _TOOL_CACHE[tool_name]


def clear_tool_cache() -> None:
    """Forget cached PATH lookups."""
    with _TOOL_CACHE_LOCK:
        _TOOL_CACHE.clear()


def compression_tool_names(coding_type: CodingType) -> Tuple[str, str]:
    """Return (parallel_tool, standard_tool) for a compressed coding type."""
    return _COMPRESSORS[coding_type]


def require_tools(tool_names: Iterable[str]) -> None:
    """Raise MissingDependencyError naming every tool not found on PATH."""
    missing = [name for name in tool_names if not check_tool_available(name)]
    if missing:
        raise MissingDependencyError(
            f"Required tool(s) not found on PATH: {', '.join(missing)}"
        )


def _select_compression_tool(coding_type: CodingType, threads: int) -> str:
    parallel_tool, standard_tool = compression_tool_names(coding_type)

    # A parallel compressor only pays off with more than one thread
    preference = [parallel_tool, standard_tool] if threads > 1 else [standard_tool, parallel_tool]
    for tool_name in preference:
        if check_tool_available(tool_name):
            return tool_name

    raise MissingDependencyError(
        f"No {coding_type.value} tool found on PATH (need {standard_tool} or {parallel_tool})"
    )


def get_compression_command(coding_type: CodingType, mode: str = 'compress', threads: int = None) -> List[str]:
    """
    Build the command line that (de)compresses stdin or a file to stdout.

    Args:
        coding_type: GZIP or BZIP2
        mode: 'compress' or 'decompress'
        threads: Worker threads; a parallel tool is only chosen above 1

    Raises:
        ValueError: For CodingType.NONE
        MissingDependencyError: If no suitable tool is on PATH
    """
    if coding_type == CodingType.NONE:
        raise ValueError("No compression command for uncompressed data")

    threads = threads or 1
    tool_name = _select_compression_tool(coding_type, threads)
    return [tool_name] + _TOOL_ARGS[tool_name](mode, threads)


def detect_compression_type(filepath: Path) -> CodingType:
    """Compression implied by the last suffix of filepath."""
    suffixes = Path(filepath).suffixes
    if not suffixes:
        return CodingType.NONE

    return CodingType.normalize(suffixes[-1])


def compress_file(source: Path, target: Path, coding_type: CodingType, threads: int = None) -> Path:
    """Compress source into target with the best available tool."""
    command = get_compression_command(coding_type, 'compress', threads)

    with open(source, 'rb') as input_file, open(target, 'wb') as output_file:
        run_tool(command, stdin=input_file, stdout=output_file, error_class=CompressionError)

    return target


def decompress_file(source: Path, target: Path, coding_type: CodingType = None, threads: int = None) -> Path:
    """Decompress source into target; coding type is detected from the name if not given."""
    if coding_type is None:
        coding_type = detect_compression_type(source)

    command = get_compression_command(coding_type, 'decompress', threads)

    with open(target, 'wb') as output_file:
        run_tool(command + [str(source)], stdout=output_file, error_class=CompressionError)

    return target
