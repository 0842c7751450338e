"""
Error taxonomy for report generation.

Every failure raised by the compositor derives from ReportError so the
HTTP layer can map it with a single except clause.
"""


class ReportError(Exception):
    """Base class for report generation failures."""


class ValidationError(ReportError):
    """The request is well formed but cannot be honoured (e.g. FULL below 100%)."""


class NotFoundError(ReportError):
    """A referenced user or dataset root does not exist."""


class RenderError(ReportError):
    """Estimating, drawing, encoding or writing the document failed."""
