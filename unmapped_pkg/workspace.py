"""Process-exclusive working area for intermediate files."""

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from unmapped_pkg.logger import get_logger

__all__ = ['working_area']

WORKDIR_PREFIX = "unmapped_extract_"


@contextmanager
def working_area(parent: Optional[Union[str, Path]] = None) -> Iterator[Path]:
    """
    Create a private temporary directory and remove it on exit.

    Removal runs on normal completion and on every exception, including
    KeyboardInterrupt and SystemExit raised from signal handlers.

    Args:
        parent: Directory to create the working area in (system temp dir if None)
    """
    logger = get_logger()
    workdir = Path(tempfile.mkdtemp(prefix=WORKDIR_PREFIX, dir=parent))
    logger.debug(f"Working area created: {workdir}")
    try:
        yield workdir
    finally:
        shutil.rmtree(workdir, ignore_errors=True)
        logger.debug(f"Working area removed: {workdir}")
