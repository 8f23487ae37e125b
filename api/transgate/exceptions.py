"""Exceptions raised by the translation gateway.

Routers map them onto HTTP statuses; ``/translate/test`` reports them in-band.
"""


class GatewayError(Exception):
    """Base class for every error raised by the gateway core."""


class TranslationValidationError(GatewayError):
    """The caller sent an unsupported language, empty fields or oversized text."""


class ConfigUnavailableError(GatewayError):
    """The record store could not supply the translation config."""


class BackendError(GatewayError):
    """A translation backend failed (HTTP error, network error)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class BackendAuthError(BackendError):
    """The AI backend rejected the credentials (HTTP 401/403)."""


class BackendTimeoutError(BackendError):
    """A backend call exceeded its deadline."""


class ContractViolationError(GatewayError):
    """The AI backend answered, but not with the JSON shape we asked for."""


class EmptyModelOutputError(ContractViolationError):
    """The AI backend answered without any text."""
