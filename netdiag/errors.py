"""Error taxonomy for NetDiag operations."""


class DiagnosticError(Exception):
    """Base class for errors that end an operation in the Failure phase."""


class ValidationError(DiagnosticError):
    """Trigger input could not be parsed (detected before any network call)."""


class TransportError(DiagnosticError):
    """Network failure or non-success status from the diagnostic service."""


class ShapeError(DiagnosticError):
    """A success response is missing required fields or has the wrong types."""
