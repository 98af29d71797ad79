"""Path checks for pipeline inputs and outputs."""

import os
import re
from pathlib import Path
from typing import Optional, Union

from unmapped_pkg.exceptions import MissingInputError, OutputConflictError

__all__ = [
    'resolve_input_path',
    'check_output_path',
    'build_output_paths',
    'get_incremented_path',
]


def resolve_input_path(path: Union[str, Path], label: str = "input") -> Path:
    """Return the absolute path of a readable, existing regular file."""
    filepath = Path(path).expanduser()

    if not filepath.exists():
        raise MissingInputError(f"{label} file not found: {filepath}")

    if not filepath.is_file():
        raise MissingInputError(f"{label} is not a regular file: {filepath}")

    if not os.access(filepath, os.R_OK):
        raise MissingInputError(f"{label} file is not readable: {filepath}")

    return filepath.resolve()


def check_output_path(path: Union[str, Path], force: bool = False) -> Path:
    """
    Validate that an output file may be written.

    Args:
        path: Destination file
        force: Allow replacing an existing regular file

    Returns:
        The destination as an absolute path

    Raises:
        OutputConflictError: If the destination exists without force, is not a
            regular file, or cannot be written

    Examples:
        >>> check_output_path("results/sample_R1.fastq.gz")
        PosixPath('/abs/results/sample_R1.fastq.gz')
    """
    filepath = Path(path).expanduser().absolute()

    if filepath.exists() or filepath.is_symlink():
        if not force:
            raise OutputConflictError(
                f"Output file already exists: {filepath} (use --force to overwrite)"
            )
        if not filepath.is_file():
            raise OutputConflictError(f"Output path exists and is not a regular file: {filepath}")
        if not os.access(filepath, os.W_OK):
            raise OutputConflictError(f"Output file is not writable: {filepath}")
        return filepath

    parent = filepath.parent
    if not parent.is_dir():
        raise OutputConflictError(f"Output directory does not exist: {parent}")
    if not os.access(parent, os.W_OK | os.X_OK):
        raise OutputConflictError(f"Output directory is not writable: {parent}")

    return filepath


def build_output_paths(base: Union[str, Path], fastq_extension: str, keep_alignment: bool):
    """
    Derive output file names from the base path.

    Examples:
        >>> build_output_paths("out/sample", ".fastq.gz", True)
        (PosixPath('out/sample_R1.fastq.gz'), PosixPath('out/sample_R2.fastq.gz'), PosixPath('out/sample.bam'))
    """
    base = Path(base)
    read1 = base.with_name(f"{base.name}_R1{fastq_extension}")
    read2 = base.with_name(f"{base.name}_R2{fastq_extension}")
    alignment: Optional[Path] = base.with_name(f"{base.name}.bam") if keep_alignment else None
    return read1, read2, alignment


def get_incremented_path(path: Path, separator: str = "_") -> Path:
    """Get next available filename by auto-incrementing if file exists."""
    path = Path(path)

    if not path.exists():
        return path

    stem = path.stem
    suffix = path.suffix
    parent = path.parent

    # Stem already carries a counter (e.g. report_001)
    match = re.match(r'^(.+)_(\d+)$', stem)
    if match:
        base_stem = match.group(1)
        counter = int(match.group(2)) + 1
    else:
        base_stem = stem
        counter = 1

    while counter <= 9999:
        new_path = parent / f"{base_stem}{separator}{counter:03d}{suffix}"
        if not new_path.exists():
            return new_path
        counter += 1

    raise RuntimeError(f"Too many incremented files for {path}. Maximum is 9999.")
