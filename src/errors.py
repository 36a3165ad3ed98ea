"""Exception hierarchy shared by the translation engine and its collaborators."""
from enum import Enum
from typing import Optional


class ApiErrorCode(Enum):
    """Status codes reported by a glossary backend."""
    OK = "OK"
    CANCELLED = "CANCELLED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    UNAVAILABLE = "UNAVAILABLE"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


class TranslatorError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(TranslatorError):
    """Raised when the YAML configuration cannot be used."""


class TranslationError(TranslatorError):
    """A single translation request failed."""

    def __init__(self, message: str, key: Optional[str] = None, transient: bool = False):
        super().__init__(message)
        self.key = key
        self.transient = transient


class TranslatorUnavailableError(TranslationError):
    """The translation capability cannot serve any request, e.g. bad credentials."""


class GlossaryError(TranslatorError):
    """Base class for glossary lifecycle failures."""


class GlossaryNotFoundError(GlossaryError):
    """The named glossary does not exist on the backend."""

    def __init__(self, name: str):
        super().__init__(f"Glossary not found: {name}")
        self.name = name


class GlossaryApiError(GlossaryError):
    """A backend call failed with a status code."""

    def __init__(self, code: ApiErrorCode, message: str = ""):
        super().__init__(f"API error (Code: {code.value}): {message}")
        self.code = code
        self.message = message


class GlossaryTimeoutError(GlossaryError):
    """Waiting for glossary creation exceeded the configured timeout."""

    def __init__(self, name: str, timeout_seconds: float):
        super().__init__(f"Glossary creation for '{name}' timed out after {timeout_seconds:g} seconds")
        self.name = name
        self.timeout_seconds = timeout_seconds


class GlossaryQuotaError(GlossaryError):
    """Backend quota exhausted. Retrying later may succeed."""


class GlossaryPermanentError(GlossaryError):
    """Backend rejected the request in a way retrying will not fix."""

    def __init__(self, message: str, code: Optional[ApiErrorCode] = None):
        super().__init__(message)
        self.code = code


class InvalidLanguageCodeError(GlossaryPermanentError):
    """The target language code is malformed."""

    def __init__(self, language_code: str):
        super().__init__(f"Invalid target language code: {language_code!r}", ApiErrorCode.INVALID_ARGUMENT)
        self.language_code = language_code
