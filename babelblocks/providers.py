"""Translation client abstractions and provider adapters."""

from __future__ import annotations

import html
import json
import re
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from .errors import ConfigurationError, ProviderError
from .structures import TranslationOutcome

DEFAULT_PROMPT = (
    "Translate the following text to {target_language}. Maintain all HTML tags, "
    "formatting, and structure. Only translate the visible text content, not HTML "
    "attributes or code. Return only the translation."
)

DEFAULT_TIMEOUT = 60.0

LANGUAGE_NAMES: Dict[str, str] = {
    "es": "Spanish",
    "en": "English",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "pt-br": "Brazilian Portuguese",
    "nl": "Dutch",
    "ru": "Russian",
    "ja": "Japanese",
    "zh": "Chinese",
    "ko": "Korean",
    "ar": "Arabic",
    "pl": "Polish",
    "tr": "Turkish",
    "sv": "Swedish",
    "da": "Danish",
    "no": "Norwegian",
    "fi": "Finnish",
    "el": "Greek",
    "he": "Hebrew",
    "hi": "Hindi",
    "th": "Thai",
    "vi": "Vietnamese",
    "id": "Indonesian",
    "cs": "Czech",
    "ro": "Romanian",
    "hu": "Hungarian",
    "uk": "Ukrainian",
}

SEGMENT_TAG_PATTERN = re.compile(
    r"<seg\s+id=\"(?P<id>[^\"]+)\">(?P<content>.*?)</seg>",
    re.DOTALL,
)


def language_name(code: str, names: Optional[Mapping[str, str]] = None) -> str:
    """Return a display name for a language code, falling back to the code."""

    table = LANGUAGE_NAMES if names is None else names
    key = (code or "").strip().lower()
    if key in table:
        return table[key]
    return key[:1].upper() + key[1:]


class ProviderKind(Enum):
    """Supported translation backends."""

    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"
    ECHO = "echo"

    @classmethod
    def parse(cls, value: "str | ProviderKind | None") -> "ProviderKind":
        if isinstance(value, ProviderKind):
            return value
        normalized = (value or "openai").strip().lower().replace("-", "_")
        synonyms = {
            "gpt": "openai",
            "default": "openai",
            "anthropic": "claude",
            "google": "gemini",
            "noop": "echo",
            "mock": "echo",
        }
        normalized = synonyms.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown translation provider '{value}'."
            ) from exc


class TranslationClient(ABC):
    """Stateless text-in, text-out translation boundary.

    ``translate`` never raises; provider failures come back as an outcome
    carrying an error message.
    """

    name = "client"

    def __init__(
        self,
        *,
        prompt_template: str = DEFAULT_PROMPT,
        language_names: Optional[Mapping[str, str]] = None,
        debug: bool = False,
    ) -> None:
        self.prompt_template = prompt_template or DEFAULT_PROMPT
        self.language_names = language_names
        self.debug = debug

    def build_instruction(
        self,
        target_language: str,
        source_language: Optional[str] = None,
    ) -> str:
        instruction = self.prompt_template.replace(
            "{target_language}",
            language_name(target_language, self.language_names),
        )
        if source_language:
            source_name = language_name(source_language, self.language_names)
            instruction += f" The source text is written in {source_name}."
        return instruction

    def translate(
        self,
        text: str,
        target_language: str,
        source_language: Optional[str] = None,
    ) -> TranslationOutcome:
        if not text or not text.strip():
            return TranslationOutcome(translated_text="")

        instruction = self.build_instruction(target_language, source_language)
        self._log_debug("provider.request.instruction", instruction)
        self._log_debug("provider.request.text", text)
        try:
            translated = self._complete(instruction, text)
        except ProviderError as exc:
            self._log_debug("provider.response.error", str(exc))
            return TranslationOutcome(error=str(exc))

        self._log_debug("provider.response.text", translated)
        if not translated or not translated.strip():
            return TranslationOutcome(
                error=f"{self.name} returned an empty translation."
            )
        return TranslationOutcome(translated_text=translated.strip())

    @abstractmethod
    def _complete(self, instruction: str, text: str) -> str:
        """Send one request and return the raw translated text."""

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        print(f"[babelblocks][provider-debug] {label}:\n{message}", file=sys.stderr)


class EchoTranslationClient(TranslationClient):
    """A client that returns the original text (useful for dry runs)."""

    name = "echo"

    def _complete(self, instruction: str, text: str) -> str:
        return text


class OpenAITranslationClient(TranslationClient):
    """Translation client that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        *,
        api_key: str,
        model: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.model = model or self.DEFAULT_MODEL
        self._client = client or self._build_client(api_key, timeout)

    @staticmethod
    def _build_client(api_key: str, timeout: float) -> Any:
        if not api_key:
            raise ConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise ConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc
        return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _complete(self, instruction: str, text: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                temperature=0.3,
                messages=[
                    {"role": "system", "content": instruction},
                    {"role": "user", "content": text},
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise ProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        choices = getattr(response, "choices", None) or []
        for choice in choices:
            message = getattr(choice, "message", None)
            content = getattr(message, "content", None)
            if content:
                return str(content)
        raise ProviderError("Invalid response from OpenAI.")


class _HttpTranslationClient(TranslationClient):
    """Shared plumbing for providers called over plain HTTPS."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        if not api_key:
            raise ConfigurationError(
                f"{self.name} API key missing. Configure it or choose a different provider."
            )
        self.api_key = api_key
        self.model = model
        self._http = http_client or httpx.Client(timeout=timeout)

    def _post(self, url: str, *, headers: Dict[str, str], payload: dict) -> dict:
        try:
            response = self._http.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"{self.name} request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderError(
                f"{self.name} returned a non-JSON response (HTTP {response.status_code})."
            ) from exc

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderError(f"{self.name} error: {message}")
        if response.status_code >= 400:
            raise ProviderError(f"{self.name} returned HTTP {response.status_code}.")
        if not isinstance(body, dict):
            raise ProviderError(f"Invalid response from {self.name}.")
        return body


class ClaudeTranslationClient(_HttpTranslationClient):
    """Translation client for the Anthropic Messages API."""

    name = "claude"
    DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
    ENDPOINT = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    MAX_TOKENS = 8000

    def __init__(self, *, api_key: str, model: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(api_key=api_key, model=model or self.DEFAULT_MODEL, **kwargs)

    def _complete(self, instruction: str, text: str) -> str:
        body = self._post(
            self.ENDPOINT,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self.api_key,
                "anthropic-version": self.API_VERSION,
            },
            payload={
                "model": self.model,
                "max_tokens": self.MAX_TOKENS,
                "system": instruction,
                "messages": [{"role": "user", "content": text}],
            },
        )
        try:
            return str(body["content"][0]["text"])
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Invalid response from Claude.") from exc


class GeminiTranslationClient(_HttpTranslationClient):
    """Translation client for the Google Gemini generateContent API."""

    name = "gemini"
    DEFAULT_MODEL = "gemini-2.5-flash"
    ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(self, *, api_key: str, model: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(api_key=api_key, model=model or self.DEFAULT_MODEL, **kwargs)

    def _complete(self, instruction: str, text: str) -> str:
        body = self._post(
            self.ENDPOINT.format(model=self.model),
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.api_key,
            },
            payload={
                "systemInstruction": {"parts": [{"text": instruction}]},
                "contents": [{"role": "user", "parts": [{"text": text}]}],
                "generationConfig": {"temperature": 0.3},
            },
        )
        try:
            return str(body["candidates"][0]["content"]["parts"][0]["text"])
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Invalid response from Gemini.") from exc


def build_client(
    kind: "ProviderKind | str | None",
    *,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    prompt_template: str = DEFAULT_PROMPT,
    language_names: Optional[Mapping[str, str]] = None,
    debug: bool = False,
) -> TranslationClient:
    """Factory creating the client for an explicit provider choice."""

    provider = ProviderKind.parse(kind)
    common: Dict[str, Any] = {
        "prompt_template": prompt_template,
        "language_names": language_names,
        "debug": debug,
    }
    if provider is ProviderKind.ECHO:
        return EchoTranslationClient(**common)
    if provider is ProviderKind.OPENAI:
        return OpenAITranslationClient(
            api_key=api_key or "", model=model, timeout=timeout, **common
        )
    if provider is ProviderKind.CLAUDE:
        return ClaudeTranslationClient(
            api_key=api_key or "", model=model, timeout=timeout, **common
        )
    return GeminiTranslationClient(
        api_key=api_key or "", model=model, timeout=timeout, **common
    )


def check_connection(client: TranslationClient) -> Tuple[bool, str]:
    """Translate a greeting to confirm the provider is reachable."""

    outcome = client.translate("Hello", "es")
    if not outcome.ok:
        return False, outcome.error or "Unknown error."
    return True, f"Connection successful: 'Hello' -> '{outcome.translated_text}'"


def pack_segments(texts: Sequence[str]) -> str:
    """Wrap several texts in numbered tags so one call can carry them all."""

    return "\n".join(
        f'<seg id="{index}">{html.escape(text, quote=False)}</seg>'
        for index, text in enumerate(texts, start=1)
    )


def unpack_segments(translated: str, count: int) -> List[str]:
    """Parse ``<seg id="">`` tagged output back into an ordered list."""

    expected_ids = [str(index) for index in range(1, count + 1)]
    mapping: Dict[str, str] = {}
    cursor = 0
    for match in SEGMENT_TAG_PATTERN.finditer(translated):
        if translated[cursor:match.start()].strip():
            raise ProviderError(
                "Translated output contained unexpected content outside <seg> tags."
            )
        seg_id = match.group("id")
        if seg_id not in expected_ids:
            raise ProviderError(f"Translated output contained an unknown seg id '{seg_id}'.")
        if seg_id in mapping:
            raise ProviderError(f"Translated output duplicated seg id '{seg_id}'.")
        mapping[seg_id] = html.unescape(match.group("content"))
        cursor = match.end()

    if translated[cursor:].strip():
        raise ProviderError(
            "Translated output contained unexpected trailing content outside <seg> tags."
        )
    if len(mapping) != count:
        missing = [seg_id for seg_id in expected_ids if seg_id not in mapping]
        raise ProviderError("Translation output missing expected segments: " + ", ".join(missing))
    return [mapping[seg_id] for seg_id in expected_ids]
