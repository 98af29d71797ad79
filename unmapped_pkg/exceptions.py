"""Custom exceptions for the unmapped read extraction package."""


class UnmappedError(Exception):
    """Base exception for all extraction errors."""
    exit_code = 1


class UsageError(UnmappedError):
    """Raised when the command line is malformed (wrong number of inputs)."""
    exit_code = 2


class MissingInputError(UnmappedError):
    """Raised when a required input file is missing or unreadable."""
    pass


class MissingDependencyError(UnmappedError):
    """Raised when a required external tool is not on PATH."""
    pass


class OutputConflictError(UnmappedError):
    """Raised when an output destination cannot be (over)written."""
    pass


class ExternalToolError(UnmappedError):
    """Raised when a delegated tool exits with a non-zero status."""

    def __init__(self, tool: str, returncode: int, stderr: str = ""):
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr or ""
        message = f"{tool} failed with exit status {returncode}"
        last_line = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else ""
        if last_line:
            message += f": {last_line}"
        super().__init__(message)


class CompressionError(ExternalToolError):
    """Raised when a compression or decompression tool fails."""
    pass


class AlignmentFormatError(UnmappedError):
    """Raised when an alignment file cannot be read as BAM."""
    pass


class PairingError(UnmappedError):
    """Raised when the two output read files do not pair up."""
    pass
