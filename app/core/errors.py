# backend/app/core/errors.py

"""
Error kinds raised by the consumption pipeline.

Not every unhappy path is an exception: a prediction with too little history
returns None, and leaderboards with nobody qualifying return [].
"""


class EconestError(Exception):
    """Base class for errors raised by the Econest services."""


class ValidationFailure(EconestError, ValueError):
    """Malformed input handed to a pure calculation (caller bug)."""


class PersistenceFailure(EconestError):
    """The storage collaborator failed to read or write."""


class ExternalCapabilityFailure(EconestError):
    """Text generation or weather lookup failed, timed out or returned junk."""


class TextGenerationError(ExternalCapabilityFailure):
    """The text generator is not configured, errored or timed out."""


class MalformedAIResponse(ExternalCapabilityFailure):
    """The text generator answered with something other than the expected JSON."""
