"""
Typed failures raised by the content & review engine.

GenerationError      AI/provider failure, timeout, or two malformed responses in a row.
ValidationError      one malformed AI response; retried once inside the generator.
EmptyResultError     well-formed JSON that yields zero usable items.
SchedulingError      grade outside the ReviewGrade enum.
SessionStateError    review session operation not allowed in the current state.
NotFoundError        deck / item / session lookup miss.
"""
from __future__ import annotations


class RecallError(Exception):
    """Base class for all engine errors."""


class GenerationError(RecallError):
    pass


class GenerationCancelledError(GenerationError):
    """A newer generation request for the same session superseded this one."""


class ValidationError(RecallError):
    pass


class UnsupportedContentKindError(RecallError, ValueError):
    """Generation or validation asked for a kind other than flashcards or quiz."""


class EmptyResultError(RecallError):
    """The AI response parsed, but no item survived sanitization."""


class SchedulingError(RecallError):
    pass


class SessionStateError(RecallError):
    pass


class NotFoundError(RecallError):
    pass
