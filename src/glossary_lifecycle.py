"""
Glossary lifecycle for a target language.

A glossary is looked up by name. When it is missing and the glossary source
lists the language, it is created through a long-running backend operation
that is polled until it resolves or the creation timeout elapses. Any state
other than EXISTS or READY means translation proceeds without a glossary.

    UNKNOWN -> EXISTS | ABSENT | FAILED
    ABSENT -> CREATING | SKIPPED | FAILED
    CREATING -> READY | FAILED
"""
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Protocol

from src.errors import (
    ApiErrorCode,
    GlossaryApiError,
    GlossaryError,
    GlossaryNotFoundError,
    GlossaryPermanentError,
    GlossaryQuotaError,
    GlossaryTimeoutError,
    InvalidLanguageCodeError,
)
from src.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CREATION_TIMEOUT_SECONDS = 5 * 60
DEFAULT_POLL_INTERVAL_SECONDS = 2.0

LANGUAGE_CODE_PATTERN = re.compile(r'^[a-zA-Z]{2,3}(-[a-zA-Z]{2,4})?$')


class GlossaryState(Enum):
    UNKNOWN = "unknown"
    EXISTS = "exists"
    ABSENT = "absent"
    CREATING = "creating"
    READY = "ready"
    SKIPPED = "skipped"
    FAILED = "failed"


USABLE_STATES: FrozenSet[GlossaryState] = frozenset({GlossaryState.EXISTS, GlossaryState.READY})

ALLOWED_TRANSITIONS: Dict[GlossaryState, FrozenSet[GlossaryState]] = {
    GlossaryState.UNKNOWN: frozenset({GlossaryState.EXISTS, GlossaryState.ABSENT, GlossaryState.FAILED}),
    GlossaryState.ABSENT: frozenset({GlossaryState.CREATING, GlossaryState.SKIPPED, GlossaryState.FAILED}),
    GlossaryState.CREATING: frozenset({GlossaryState.READY, GlossaryState.FAILED}),
}


@dataclass(frozen=True)
class Glossary:
    name: str
    source_language: str
    target_language: str
    terms: Mapping[str, str] = field(default_factory=dict)

    @property
    def entry_count(self) -> int:
        return len(self.terms)


@dataclass(frozen=True)
class GlossarySpec:
    """Everything a backend needs to build a glossary."""
    name: str
    source_language: str
    target_language: str
    input_uri: str


class GlossaryOperation(Protocol):
    """A pending backend operation. ``concurrent.futures.Future`` satisfies it."""

    def done(self) -> bool: ...

    def result(self, timeout: Optional[float] = None) -> Glossary: ...

    def cancel(self) -> bool: ...


class GlossaryBackend(Protocol):
    def get(self, name: str) -> Glossary: ...

    def start_create(self, spec: GlossarySpec) -> GlossaryOperation: ...

    def delete(self, name: str) -> None: ...

    def upload_source(self, file_path: str, target_language: str) -> str: ...


class GlossarySourceInspector(Protocol):
    def contains_language(self, target_language: str) -> bool: ...


@dataclass
class GlossaryResolution:
    """Outcome of resolving the glossary for one language."""
    target_language: str
    name: str
    state: GlossaryState = GlossaryState.UNKNOWN
    glossary: Optional[Glossary] = None
    error: Optional[Exception] = None
    history: List[GlossaryState] = field(default_factory=lambda: [GlossaryState.UNKNOWN])

    @property
    def usable(self) -> bool:
        return self.state in USABLE_STATES

    def transition(self, new_state: GlossaryState) -> None:
        allowed = ALLOWED_TRANSITIONS.get(self.state, frozenset())
        if new_state not in allowed:
            raise RuntimeError(f"Illegal glossary transition {self.state.name} -> {new_state.name}")
        logger.debug("Glossary '%s': %s -> %s", self.name, self.state.name, new_state.name)
        self.state = new_state
        self.history.append(new_state)


def is_valid_language_code(language_code: Optional[str]) -> bool:
    if not language_code:
        return False
    return bool(LANGUAGE_CODE_PATTERN.match(language_code))


def classify_api_error(exc: GlossaryApiError) -> GlossaryError:
    """Map a backend status code onto the error taxonomy."""
    code = exc.code
    if code is ApiErrorCode.RESOURCE_EXHAUSTED:
        return GlossaryQuotaError(f"Resource quota exceeded. Please try again later. ({exc.message})")
    if code is ApiErrorCode.INVALID_ARGUMENT:
        return GlossaryPermanentError(f"Invalid glossary configuration: {exc.message}", code)
    if code is ApiErrorCode.PERMISSION_DENIED:
        return GlossaryPermanentError(
            "Permission denied. Please check your credentials and project permissions.", code)
    if code is ApiErrorCode.NOT_FOUND:
        return GlossaryPermanentError(
            f"Resource not found. Please check that the glossary source exists. ({exc.message})", code)
    return exc


class GlossaryLifecycle:
    """
    Decides whether a glossary can be used for a language, creating it if needed.

    ``clock`` and ``sleep`` are injectable so the creation wait can be driven
    without real time passing.
    """

    def __init__(
            self,
            backend: GlossaryBackend,
            inspector: GlossarySourceInspector,
            source_uri: str,
            name_format: str = "glossary-{lang}",
            source_language: str = "en",
            creation_timeout: float = DEFAULT_CREATION_TIMEOUT_SECONDS,
            poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
            clock: Callable[[], float] = time.monotonic,
            sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend
        self.inspector = inspector
        self.source_uri = source_uri
        self.name_format = name_format
        self.source_language = source_language
        self.creation_timeout = creation_timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def glossary_name(self, target_language: str) -> str:
        return self.name_format.format(lang=target_language.lower())

    def build_spec(self, target_language: str) -> GlossarySpec:
        return GlossarySpec(
            name=self.glossary_name(target_language),
            source_language=self.source_language,
            target_language=target_language,
            input_uri=self.source_uri,
        )

    def resolve(self, target_language: str) -> GlossaryResolution:
        """
        Find or create the glossary for ``target_language``.

        Never raises for backend failures: the error is recorded on the
        returned resolution and its state is SKIPPED or FAILED.
        """
        name = self.glossary_name(target_language)
        resolution = GlossaryResolution(target_language=target_language, name=name)
        logger.info("Checking if glossary exists: %s", name)

        try:
            resolution.glossary = self.backend.get(name)
        except GlossaryNotFoundError:
            resolution.transition(GlossaryState.ABSENT)
        except GlossaryError as exc:
            logger.error("Error checking glossary '%s': %s", name, exc)
            resolution.error = exc
            resolution.transition(GlossaryState.FAILED)
            return resolution
        else:
            logger.info("Glossary already exists: %s", name)
            resolution.transition(GlossaryState.EXISTS)
            return resolution

        logger.info("Glossary not found. Checking if '%s' exists in the glossary source...", target_language)
        try:
            language_present = self.inspector.contains_language(target_language)
        except GlossaryError as exc:
            logger.error("Could not inspect glossary source for '%s': %s", target_language, exc)
            resolution.error = exc
            resolution.transition(GlossaryState.FAILED)
            return resolution

        if not language_present:
            logger.warning("Target language %s not found in glossary source. Skipping glossary creation.",
                           target_language)
            resolution.transition(GlossaryState.SKIPPED)
            return resolution

        resolution.transition(GlossaryState.CREATING)
        try:
            resolution.glossary = self.create_and_wait(self.build_spec(target_language))
        except GlossaryError as exc:
            logger.error("Failed to create glossary '%s': %s", name, exc)
            resolution.error = exc
            resolution.transition(GlossaryState.FAILED)
            return resolution

        resolution.transition(GlossaryState.READY)
        return resolution

    def create_and_wait(self, spec: GlossarySpec) -> Glossary:
        """
        Submit a create request and block until it finishes.

        Raises:
            InvalidLanguageCodeError: The target language code is malformed.
            GlossaryTimeoutError: The operation did not finish in time. It is
                cancelled before this is raised.
            GlossaryQuotaError: The backend quota is exhausted.
            GlossaryPermanentError: The request can never succeed as issued.
            GlossaryApiError: Any other backend status.
        """
        if not is_valid_language_code(spec.target_language):
            raise InvalidLanguageCodeError(spec.target_language)

        logger.info("Creating glossary with configuration - ID: %s, Source: %s, Target: %s, URI: %s",
                    spec.name, spec.source_language, spec.target_language, spec.input_uri)
        try:
            operation = self.backend.start_create(spec)
        except GlossaryApiError as exc:
            return self._handle_api_error(exc, spec)

        deadline = self._clock() + self.creation_timeout
        while not operation.done():
            remaining = deadline - self._clock()
            if remaining <= 0:
                operation.cancel()
                logger.error("Glossary creation timed out after %g seconds: %s", self.creation_timeout, spec.name)
                raise GlossaryTimeoutError(spec.name, self.creation_timeout)
            self._sleep(min(self.poll_interval, remaining))

        try:
            glossary = operation.result()
        except GlossaryApiError as exc:
            return self._handle_api_error(exc, spec)
        except GlossaryError:
            raise
        except Exception as exc:
            raise GlossaryError(f"Error during glossary creation: {exc}") from exc

        logger.info("Successfully created glossary: %s", glossary.name)
        return glossary

    def _handle_api_error(self, exc: GlossaryApiError, spec: GlossarySpec) -> Glossary:
        if exc.code is ApiErrorCode.ALREADY_EXISTS:
            logger.info("Glossary already exists. Proceeding with existing glossary: %s", spec.name)
            try:
                return self.backend.get(spec.name)
            except GlossaryNotFoundError:
                # Another writer's create may not be visible to reads yet.
                logger.warning("Glossary '%s' exists but is not readable yet. Using it without terms.", spec.name)
                return Glossary(spec.name, spec.source_language, spec.target_language)
        classified = classify_api_error(exc)
        if classified is exc:
            raise exc
        raise classified from exc

    def delete(self, target_language: str) -> bool:
        """
        Delete the glossary for ``target_language``.

        Returns:
            bool: True if a glossary was deleted, False if none existed.
        """
        name = self.glossary_name(target_language)
        logger.info("Attempting to delete glossary for language: %s", target_language)
        try:
            self.backend.delete(name)
        except GlossaryNotFoundError:
            logger.info("Glossary not found. No deletion required: %s", name)
            return False
        logger.info("Successfully deleted glossary: %s", name)
        return True

    def update(self, target_language: str, source_path: str) -> Glossary:
        """
        Replace the glossary for a language with one built from ``source_path``.

        Publishes the source file, deletes any existing glossary, then creates
        and verifies a new one.
        """
        logger.info("Processing glossary update for language: %s", target_language)
        if not is_valid_language_code(target_language):
            raise InvalidLanguageCodeError(target_language)

        logger.info("Step 1: Uploading glossary source: %s", source_path)
        input_uri = self.backend.upload_source(source_path, target_language)

        logger.info("Step 2: Deleting existing glossary for language: %s", target_language)
        self.delete(target_language)

        logger.info("Step 3: Creating new glossary for language: %s", target_language)
        spec = GlossarySpec(
            name=self.glossary_name(target_language),
            source_language=self.source_language,
            target_language=target_language,
            input_uri=input_uri,
        )
        glossary = self.create_and_wait(spec)
        return self._verify(glossary)

    def _verify(self, glossary: Glossary) -> Glossary:
        try:
            verified = self.backend.get(glossary.name)
        except GlossaryNotFoundError:
            # Creation can take a moment to become visible to reads.
            logger.warning("Glossary '%s' was created but is not visible yet.", glossary.name)
            return glossary
        logger.info("Glossary verification successful - Name: %s, Entry count: %d",
                    verified.name, verified.entry_count)
        return verified
