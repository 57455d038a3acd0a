"""
Error and warning types for the slide compiler.

Parsing never raises for user input; degraded input is reported through
:class:`ParseDegraded` records.  Asset lookups raise :class:`AssetUnresolved`
internally, which the registries catch and log.  Only :class:`ExportFailed`
ever reaches a caller of ``export``.
"""
from dataclasses import dataclass
from typing import Optional


class SlideCompilerError(Exception):
    """Base class for all slide compiler errors."""


class MalformedDocumentError(SlideCompilerError):
    """Raised when the tokenizer ends in a state the assembler cannot use."""


class AssetUnresolved(SlideCompilerError):
    """A font or image could not be fetched or decoded."""

    def __init__(self, ref: str, reason: str = ""):
        self.ref = ref
        self.reason = reason
        message = f"Could not resolve asset '{ref}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ExportFailed(SlideCompilerError):
    """Export aborted; no output bytes were produced."""

    def __init__(self, message: str, fmt: Optional[str] = None):
        self.format = fmt
        super().__init__(message)


@dataclass(frozen=True)
class ParseDegraded:
    """Non-fatal parse warning attached to a source line."""
    line_number: int
    message: str

    def __str__(self):
        return f"line {self.line_number}: {self.message}"
