"""Exception hierarchy shared by the gateway, importer and AI layers."""

from __future__ import annotations


class PaleoCoreError(Exception):
    """Root of all errors raised by :mod:`paleocore`."""


class ValidationError(PaleoCoreError, ValueError):
    """Local input rejected before any mutation or remote call."""


class DataImportError(PaleoCoreError):
    """A CSV/ODV upload could not be turned into data points."""


class RemoteStoreError(PaleoCoreError):
    """Failure reported by the relational store.

    ``message`` is the backend's own text, kept verbatim so it can be shown
    to the user as-is.
    """

    def __init__(self, message: str, *, code: str | None = None, table: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.table = table


class AIServiceError(PaleoCoreError):
    """A generative-AI call failed or returned an unusable payload."""


class AIDisabledError(AIServiceError):
    """No API key is configured; AI features are switched off."""

    MESSAGE = "AI features are disabled: no Gemini API key is configured."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.MESSAGE)


class AgeModelError(AIServiceError):
    """Age-model delegation produced no usable ages."""


__all__ = [
    "PaleoCoreError",
    "ValidationError",
    "DataImportError",
    "RemoteStoreError",
    "AIServiceError",
    "AIDisabledError",
    "AgeModelError",
]
