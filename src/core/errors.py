"""
Domain errors for the verification pipeline.

Raised by use cases and adapters; the API layer turns them into the
uniform `{success: false, error}` envelope.
"""


class VerificationError(Exception):
    """Base class for every error raised by the verification pipeline."""


class ValidationError(VerificationError):
    """Client input malformed, missing or oversized. Nothing was persisted."""


class NotFoundError(VerificationError):
    """Unknown document or photo id."""


class ConflictError(VerificationError):
    """A review was based on a status that is no longer current."""


class AnalysisFailure(VerificationError):
    """The AI analysis engine could not produce a verdict (error or timeout)."""


class CapturePermissionError(VerificationError):
    """Camera (or location) access was denied by the device."""


class CaptureError(VerificationError):
    """The camera was acquired but a frame could not be read."""


class TransientNetworkError(VerificationError):
    """An upload failed in transit; the caller may retry with the same payload."""
