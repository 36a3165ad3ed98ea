import random
import re
import time
import uuid
from typing import Callable, Dict, Optional, Protocol, Tuple

from openai import (
    APIConnectionError,
    AuthenticationError,
    APIStatusError,
    APITimeoutError,
    OpenAI,
    OpenAIError,
    RateLimitError,
)
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from src.errors import TranslationError, TranslatorUnavailableError
from src.glossary_lifecycle import Glossary
from src.logging_config import get_logger

logger = get_logger(__name__)


class Translator(Protocol):
    """Anything that turns one flat string into another language."""

    def translate(self, text: str, source_language: str, target_language: str,
                  glossary: Optional[Glossary] = None) -> str: ...


class EchoTranslator:
    """Returns the source text unchanged. Used for dry runs."""

    def translate(self, text: str, source_language: str, target_language: str,
                  glossary: Optional[Glossary] = None) -> str:
        return text


def extract_placeholders(text: str) -> Tuple[str, Dict[str, str]]:
    """
    Extract and replace placeholders in the text with unique tokens.

    Args:
        text (str): The text to process.

    Returns:
        Tuple[str, Dict[str, str]]: The processed text and placeholder mapping.
    """
    if not isinstance(text, str):
        raise ValueError("Input text must be a string.")

    # Pattern to match placeholders like `{0}` or `{name}` and HTML-like tags
    pattern = re.compile(r'(<[^<>]+>)|({[^{}]+})')
    placeholder_mapping = {}

    def replace_placeholder(match):
        full_match = match.group(0)
        placeholder_token = f"__PH_{uuid.uuid4().hex}__"
        placeholder_mapping[placeholder_token] = full_match
        return placeholder_token

    processed_text = pattern.sub(replace_placeholder, text)
    return processed_text, placeholder_mapping


def restore_placeholders(text: str, placeholder_mapping: Dict[str, str]) -> str:
    """Put the original placeholders back in place of their tokens."""
    for token, placeholder in placeholder_mapping.items():
        text = text.replace(token, placeholder)
    return text


def clean_translated_text(translated_text: str, original_text: str) -> str:
    """
    Remove quotes or square brackets that wrap the whole translation unless
    the original text was wrapped the same way.
    """
    if translated_text.startswith('"') and translated_text.endswith('"') and not (
            original_text.startswith('"') and original_text.endswith('"')):
        translated_text = translated_text[1:-1]
    if translated_text.startswith('[') and translated_text.endswith(']') and not (
            original_text.startswith('[') and original_text.endswith(']')):
        translated_text = translated_text[1:-1]
    return translated_text


def build_glossary_text(glossary: Optional[Glossary], text: str) -> str:
    """List the glossary terms that occur in ``text`` as prompt instructions."""
    if glossary is None:
        return ''
    lowered = text.lower()
    entries = [
        f'"{source}" should be translated as "{target}"'
        for source, target in glossary.terms.items()
        if source.lower() in lowered
    ]
    return '\n'.join(entries)


def _retry_delay(attempt: int, base_delay: float, api_exc: Optional[Exception]) -> float:
    """Honor a Retry-After header when present, else exponential backoff with jitter."""
    retry_after = None
    headers = getattr(getattr(api_exc, 'response', None), 'headers', None) or {}
    retry_after_header = headers.get('retry-after') if hasattr(headers, 'get') else None
    if retry_after_header:
        try:
            if retry_after_header.endswith('ms'):
                retry_after = float(retry_after_header[:-2]) / 1000
            else:
                retry_after = float(retry_after_header)
        except ValueError:
            logger.warning("Failed to parse Retry-After header '%s'. Falling back to exponential backoff.",
                           retry_after_header)
    if retry_after is None:
        retry_after = base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1)
    return retry_after


SYSTEM_PROMPT = """
You are an expert translator specializing in software localization. Translate the following text from {source_language} to {target_language}.

**Instructions**:
- **Do not translate or modify placeholder tokens**: Any text enclosed within double underscores `__` (e.g., `__PH_abc123__`) should remain exactly as is.
- **Strictly follow the glossary**: These terms are non-negotiable. You MUST use the provided translation, matching the source term case-insensitively.
- **Preserve formatting**: Keep special characters and formatting such as `\\n` and `\\t`.
- **Do not add** any additional characters or punctuation (e.g., no square brackets, quotation marks, etc.).
- **Provide only** the translated text.
"""

USER_PROMPT = """
**Glossary:**
{glossary_text}

**Text to Translate:**
{processed_text}
"""


class OpenAITranslator:
    """
    Translator backed by the OpenAI chat completions API.

    Rate-limit, timeout and connection errors are retried with backoff. When
    retries run out a :class:`TranslationError` is raised so the caller can
    keep the untranslated entry.
    """

    def __init__(self, client: OpenAI, model_name: str, max_retries: int = 5, base_delay: float = 1.0,
                 temperature: float = 0.3, request_timeout: float = 60.0,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.model_name = model_name
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.temperature = temperature
        self.request_timeout = request_timeout
        self._sleep = sleep

    def translate(self, text: str, source_language: str, target_language: str,
                  glossary: Optional[Glossary] = None) -> str:
        processed_text, placeholder_mapping = extract_placeholders(text)
        system_prompt = SYSTEM_PROMPT.format(source_language=source_language, target_language=target_language)
        user_prompt = USER_PROMPT.format(
            glossary_text=build_glossary_text(glossary, text) or '(none)',
            processed_text=processed_text,
        )

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=self.model_name,
                    messages=[
                        ChatCompletionSystemMessageParam(role="system", content=system_prompt),
                        ChatCompletionUserMessageParam(role="user", content=user_prompt),
                    ],
                    temperature=self.temperature,
                    timeout=self.request_timeout,
                )
            except (RateLimitError, APITimeoutError, APIConnectionError) as api_exc:
                logger.error("API error occurred: %s - %s", api_exc.__class__.__name__, api_exc)
                if attempt == self.max_retries:
                    raise TranslationError(
                        f"Translation failed after {self.max_retries} attempts: {api_exc}", transient=True
                    ) from api_exc
                delay = _retry_delay(attempt, self.base_delay, api_exc)
                logger.info("Retrying request to /chat/completions in %.2f seconds (Attempt %d/%d)",
                            delay, attempt, self.max_retries)
                self._sleep(delay)
                continue
            except AuthenticationError as api_exc:
                raise TranslatorUnavailableError(f"OpenAI rejected the credentials: {api_exc}") from api_exc
            except (APIStatusError, OpenAIError) as api_exc:
                raise TranslationError(f"Translation request rejected: {api_exc}") from api_exc

            content = response.choices[0].message.content
            if not content:
                raise TranslationError("Translation response was empty")
            translated_text = restore_placeholders(content.strip(), placeholder_mapping)
            return clean_translated_text(translated_text, text)

        raise TranslationError("Translation was not attempted: max_retries must be at least 1")
