"""
Error types for fastcheck sessions and queries.

Type errors found in the checked code are never exceptions: they are ordinary
results with a non-empty error list. The exceptions below mean the query
itself could not run.
"""

from pathlib import Path


class FastcheckError(Exception):
    """Base exception for all fastcheck tool errors."""

    def __init__(self, message: str, path: Path | str | None = None):
        self.message = message
        self.path = Path(path) if path is not None else None
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with the offending path if available."""
        if self.path is not None:
            return f"{self.message}: {self.path}"
        return self.message


class ConfigurationError(FastcheckError):
    """
    Raised when the project configuration cannot be used.

    Examples:
    - No mypy configuration in the project root
    - Malformed TOML or INI
    - Options mypy refuses to accept
    - Invalid [tool.fastcheck] settings
    """

    pass


class SourceNotFoundError(FastcheckError, FileNotFoundError):
    """Raised when a file requested for checking does not exist on disk."""

    pass


class NotAVersionControlledProjectError(FastcheckError):
    """Raised when git cannot report a status for the project root."""

    pass


class OutOfProjectScope(FastcheckError):
    """
    Raised by a program asked about a file it does not contain.

    Changed-set checks skip such files silently (build scripts, files under
    excluded directories); a direct single-file check reports it.
    """

    pass
