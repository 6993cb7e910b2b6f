from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any, Dict, Optional, Protocol

from schemas.errors import TailorError

logger = logging.getLogger(__name__)


class LLMClient(Protocol):
    def chat(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        json_mode: bool = False,
        max_retries: int = 1,
    ) -> str: ...

    def chat_json(
        self, prompt: str, *, system: Optional[str] = None, max_retries: int = 1
    ) -> Dict[str, Any]: ...


class JSONChatMixin:
    """`chat_json` on top of a client's `chat`; a reply that is not a JSON object fails."""

    def chat_json(
        self, prompt: str, *, system: Optional[str] = None, max_retries: int = 1
    ) -> Dict[str, Any]:
        raw = self.chat(prompt, system=system, json_mode=True, max_retries=max_retries)  # type: ignore[attr-defined]
        parsed = safe_json_parse(raw)
        if parsed is None:
            raise TailorError("AI response was not valid JSON")
        return parsed


class OpenAIClient(JSONChatMixin):
    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        try:
            import openai  # type: ignore
        except Exception as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "openai package is required. Install with `pip install openai`."
            ) from exc

        self.model = model
        self.client = openai.OpenAI(api_key=api_key)

    def _complete(self, messages: list, *, json_mode: bool, max_retries: int) -> str:
        delay = 1.0
        last_error: Exception | None = None
        for attempt in range(max_retries):
            try:
                kwargs: Dict[str, Any] = {}
                if json_mode:
                    kwargs["response_format"] = {"type": "json_object"}
                resp = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.2,
                    **kwargs,
                )
                return resp.choices[0].message.content or ""
            except Exception as exc:  # pragma: no cover - network call
                last_error = exc
                logger.warning("OpenAI call failed (attempt %s): %s", attempt + 1, exc)
                if attempt + 1 < max_retries:
                    time.sleep(60.0 if _is_rate_limit_error(exc) else delay)
                    delay *= 2
        raise TailorError(f"OpenAI call failed: {last_error}")  # pragma: no cover - network call

    def chat(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        json_mode: bool = False,
        max_retries: int = 1,
    ) -> str:
        return self._complete(_messages(prompt, system), json_mode=json_mode, max_retries=max_retries)

    def chat_with_image(
        self, prompt: str, image: bytes, *, mime_type: str = "image/png", max_retries: int = 1
    ) -> str:
        encoded = base64.b64encode(image).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                    },
                ],
            }
        ]
        return self._complete(messages, json_mode=False, max_retries=max_retries)


class HuggingFaceClient(JSONChatMixin):
    def __init__(self, api_token: str, model: str):
        if not api_token:
            raise ValueError("Hugging Face token required.")
        try:
            from huggingface_hub import InferenceClient  # type: ignore
        except Exception as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "huggingface_hub package is required. Install with `pip install huggingface_hub`."
            ) from exc

        self.client = InferenceClient(model=model, token=api_token)
        self.model = model

    def chat(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        json_mode: bool = False,
        max_retries: int = 1,
    ) -> str:
        # The inference API has no JSON mode; replies are unwrapped by the caller.
        delay = 1.0
        last_error: Exception | None = None
        for attempt in range(max_retries):
            try:
                resp = self.client.chat_completion(
                    messages=_messages(prompt, system),
                    max_tokens=4096,
                    temperature=0.2,
                )
                return resp.choices[0].message.content or ""
            except Exception as exc:  # pragma: no cover - network call
                last_error = exc
                logger.warning("Hugging Face call failed (attempt %s): %s", attempt + 1, exc)
                if attempt + 1 < max_retries:
                    time.sleep(30.0 if _is_rate_limit_error(exc) else delay)
                    delay *= 2
        raise TailorError(f"Hugging Face call failed: {last_error}")  # pragma: no cover - network call


def build_client(provider: str, api_key: str, model: str) -> LLMClient:
    normalized = provider.strip().lower()
    if normalized in {"openai", "open ai"}:
        return OpenAIClient(api_key=api_key, model=model)
    if normalized in {"huggingface", "hugging face", "hugging face (inference api)"}:
        return HuggingFaceClient(api_token=api_key, model=model)
    raise ValueError(f"Unknown provider: {provider}")


def _messages(prompt: str, system: Optional[str]) -> list:
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages


def strip_code_fence(text: str) -> str:
    """Drop a surrounding ```json ... ``` fence if the model added one."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
        if cleaned[:4].lower() == "json":
            cleaned = cleaned[4:]
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def safe_json_parse(text: str) -> Dict[str, Any] | None:
    text = strip_code_fence(text or "")
    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    # Try to extract JSON substring if wrapped in text.
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        snippet = text[start : end + 1]
        try:
            parsed = json.loads(snippet)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _is_rate_limit_error(exc: Exception) -> bool:
    msg = str(exc).lower()
    if "rate limit" in msg or "rate_limit" in msg:
        return True
    if hasattr(exc, "status_code") and getattr(exc, "status_code") == 429:
        return True
    return False
