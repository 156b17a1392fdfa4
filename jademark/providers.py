"""Text-transformation provider abstractions."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import aiohttp

from .errors import (
    ErrorCategory,
    ModelNotFoundError,
    ProviderConfigurationError,
    ProviderError,
)
from .segmenter import split_for_length
from .structures import DeltaCallback, TransformSettings

logger = logging.getLogger(__name__)

TRANSLATION_INSTRUCTION = """You are a strict translation engine. Translate the following Markdown text to {language}.

STRICT INSTRUCTIONS:
1. Output ONLY the translated text.
2. DO NOT start with "Here is the translation" or "Translation:".
3. DO NOT wrap the output in markdown code fences (like ```markdown) unless the input text itself is inside them.
4. Keep all existing markdown formatting (#, *, -, links, images) EXACTLY as they are.
5. Do NOT translate content inside code blocks or inline code.
6. If the text is already in {language}, return it exactly as is.
7. Translate concisely and professionally."""

FREE_ENDPOINT = "https://translate.googleapis.com/translate_a/single"
FREE_MAX_LENGTH = 2000


def build_translation_instruction(target_language: str) -> str:
    return TRANSLATION_INSTRUCTION.format(language=target_language)


def _is_not_found(exc: BaseException) -> bool:
    for attr in ("status_code", "code", "status"):
        if getattr(exc, attr, None) == 404:
            return True
    return False


def strip_code_fence(text: str) -> str:
    """Remove leading/trailing markdown code fences if present."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return text

    # Drop opening fence and optional language hint.
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return text
    body = stripped[first_newline + 1 :]
    closing_index = body.rfind("```")
    if closing_index != -1:
        body = body[:closing_index]
    return body.strip()


class TextTransformer(ABC):
    """Abstract adapter for streaming text-transformation backends."""

    name: str = "abstract"
    supports_instructions: bool = True

    @abstractmethod
    async def transform(
        self,
        system_instruction: str,
        input_text: str,
        on_delta: Optional[DeltaCallback] = None,
    ) -> str:
        """Transform ``input_text`` and return the complete result.

        Implementations that stream call ``on_delta`` with each chunk before
        returning; non-streaming ones never call it. Failures raise
        ``ProviderError``.
        """

    def prepare_translation_input(self, text: str) -> str:
        return text


class EchoTransformer(TextTransformer):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    async def transform(
        self,
        system_instruction: str,
        input_text: str,
        on_delta: Optional[DeltaCallback] = None,
    ) -> str:
        return input_text


class _DebugLoggingMixin:
    debug: bool = False

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
        logger.debug("[provider-debug] %s:\n%s", label, message)


def parse_free_response(data: Any, fallback: str) -> str:
    """Extract translated text from the free endpoint's nested-array payload."""

    if isinstance(data, list) and data and isinstance(data[0], list):
        parts: List[str] = []
        for segment in data[0]:
            if isinstance(segment, list) and segment and isinstance(segment[0], str):
                parts.append(segment[0])
        return "".join(parts)
    return fallback


class GoogleFreeTransformer(_DebugLoggingMixin, TextTransformer):
    """Unauthenticated Google translate endpoint; ignores system instructions."""

    name = "google-free"
    supports_instructions = False

    def __init__(
        self,
        *,
        target_language_code: str = "zh-CN",
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 60.0,
        debug: bool = False,
    ) -> None:
        self.target_language_code = target_language_code
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self.debug = debug

    async def transform(
        self,
        system_instruction: str,
        input_text: str,
        on_delta: Optional[DeltaCallback] = None,
    ) -> str:
        pieces = split_for_length(input_text, FREE_MAX_LENGTH)
        if self._session is not None:
            translated = await self._translate_pieces(self._session, pieces)
        else:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                translated = await self._translate_pieces(session, pieces)
        result = "\n".join(translated)
        if on_delta is not None:
            on_delta(result)
        return result

    async def _translate_pieces(
        self, session: aiohttp.ClientSession, pieces: List[str]
    ) -> List[str]:
        return [await self._translate_piece(session, piece) for piece in pieces]

    async def _translate_piece(self, session: aiohttp.ClientSession, piece: str) -> str:
        if not piece.strip():
            return piece
        params = {
            "client": "gtx",
            "sl": "auto",
            "tl": self.target_language_code,
            "dt": "t",
            "q": piece,
        }
        self._log_debug("provider.request.params", params)
        try:
            async with session.get(FREE_ENDPOINT, params=params) as response:
                if response.status != 200:
                    raise ProviderError(
                        f"Google Free API Error: {response.status}",
                        category=ErrorCategory.NETWORK,
                    )
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ProviderError(
                f"Google Free API unavailable: {exc}", category=ErrorCategory.NETWORK
            ) from exc
        except ValueError as exc:
            raise ProviderError(
                f"Google Free API returned an unreadable response: {exc}",
                category=ErrorCategory.NETWORK,
            ) from exc
        self._log_debug("provider.response.raw", data)
        return parse_free_response(data, piece)


class GeminiTransformer(_DebugLoggingMixin, TextTransformer):
    """Google Gemini through the official ``google-genai`` SDK."""

    name = "google-sdk"
    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(
        self,
        *,
        api_key: str,
        model: str | None = None,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        if not api_key and client is None:
            raise ProviderConfigurationError("API Key is required for Google Gemini.")
        self.model = model or self.DEFAULT_MODEL
        self.debug = debug
        self._client = client if client is not None else self._build_client(api_key)

    def _build_client(self, api_key: str) -> Any:
        try:
            from google import genai  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise ProviderConfigurationError(
                "Google GenAI SDK not installed. Install with `pip install google-genai`."
            ) from exc
        return genai.Client(api_key=api_key)

    async def transform(
        self,
        system_instruction: str,
        input_text: str,
        on_delta: Optional[DeltaCallback] = None,
    ) -> str:
        prompt = f"{system_instruction}\n\n{input_text}"
        self._log_debug("provider.request.prompt", prompt)
        chunks: List[str] = []
        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=self.model,
                contents=[{"role": "user", "parts": [{"text": prompt}]}],
                config={"temperature": 0.1},
            )
            async for chunk in stream:
                text = getattr(chunk, "text", None)
                if text:
                    chunks.append(text)
                    if on_delta is not None:
                        on_delta(text)
        except ProviderError:
            raise
        except Exception as exc:  # pragma: no cover - network call
            if _is_not_found(exc) or "404" in str(exc):
                raise ModelNotFoundError(self.model) from exc
            raise ProviderError(f"Google Gemini API Error: {exc}") from exc
        result = "".join(chunks)
        self._log_debug("provider.response.text", result)
        if not input_text.lstrip().startswith("```"):
            result = strip_code_fence(result)
        return result


class OpenAICompatibleTransformer(_DebugLoggingMixin, TextTransformer):
    """Streaming chat completions against OpenAI or any compatible endpoint."""

    name = "custom"
    DEFAULT_MODEL = "gpt-4o"
    TRANSLATION_PREAMBLE = "Please translate the following Markdown content:\n\n"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        self.model = model or self.DEFAULT_MODEL
        self.base_url = normalise_base_url(base_url) if base_url else None
        self.debug = debug
        self._client = client if client is not None else self._build_client(api_key)

    def _build_client(self, api_key: str) -> Any:
        try:
            from openai import AsyncOpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise ProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc
        return AsyncOpenAI(api_key=api_key or "not-needed", base_url=self.base_url)

    def prepare_translation_input(self, text: str) -> str:
        return f"{self.TRANSLATION_PREAMBLE}{text}"

    async def transform(
        self,
        system_instruction: str,
        input_text: str,
        on_delta: Optional[DeltaCallback] = None,
    ) -> str:
        messages = [
            {"role": "system", "content": system_instruction},
            {"role": "user", "content": input_text},
        ]
        self._log_debug("provider.request.messages", messages)
        chunks: List[str] = []
        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                stream=True,
                temperature=0.1,
            )
            async for event in stream:
                for choice in getattr(event, "choices", None) or []:
                    delta = getattr(choice, "delta", None)
                    content = getattr(delta, "content", None) if delta is not None else None
                    if content:
                        chunks.append(content)
                        if on_delta is not None:
                            on_delta(content)
        except ProviderError:
            raise
        except Exception as exc:  # pragma: no cover - network call
            if _is_not_found(exc):
                raise ModelNotFoundError(
                    self.model,
                    "Some endpoints only expose a subset of models; try another model name.",
                ) from exc
            raise ProviderError(
                f"API Error: {exc}", category=ErrorCategory.NETWORK
            ) from exc
        result = "".join(chunks)
        self._log_debug("provider.response.text", result)
        body = input_text.split(self.TRANSLATION_PREAMBLE, 1)[-1]
        if not body.lstrip().startswith("```"):
            result = strip_code_fence(result)
        return result


def normalise_base_url(base_url: str) -> str:
    """Trim whitespace, trailing slashes and an explicit completions suffix."""

    cleaned = base_url.strip().rstrip("/")
    suffix = "/chat/completions"
    if cleaned.endswith(suffix):
        cleaned = cleaned[: -len(suffix)]
    return cleaned


def normalise_provider_name(name: str | None) -> str:
    normalized = (name or "google-free").strip().lower().replace("_", "-")
    synonyms = {
        "google": "google-free",
        "free": "google-free",
        "gemini": "google-sdk",
        "google-genai": "google-sdk",
        "openai-compatible": "custom",
        "compatible": "custom",
        "noop": "echo",
        "mock": "echo",
    }
    return synonyms.get(normalized, normalized)


def build_transformer(settings: TransformSettings, *, debug: bool = False) -> TextTransformer:
    """Factory to create transformers from the active settings."""

    provider = normalise_provider_name(settings.provider)
    if provider == "google-free":
        return GoogleFreeTransformer(
            target_language_code=settings.target_language_code, debug=debug
        )
    if provider == "google-sdk":
        return GeminiTransformer(
            api_key=settings.api_key, model=settings.model or None, debug=debug
        )
    if provider == "custom":
        if not settings.base_url.strip():
            raise ProviderConfigurationError(
                "Base URL is required for the custom provider."
            )
        return OpenAICompatibleTransformer(
            api_key=settings.api_key,
            base_url=settings.base_url,
            model=settings.model or None,
            debug=debug,
        )
    if provider == "openai":
        if not settings.api_key:
            raise ProviderConfigurationError(
                "OpenAI configuration missing. Set an API key or choose a different provider."
            )
        return OpenAICompatibleTransformer(
            api_key=settings.api_key,
            base_url=settings.base_url or None,
            model=settings.model or None,
            debug=debug,
        )
    if provider == "echo":
        return EchoTransformer()
    raise ProviderConfigurationError(f"Unknown translation provider '{settings.provider}'.")
