from __future__ import annotations

import asyncio
import base64
from typing import Any

import openai

from config.defaults import IMAGE_CATEGORY
from config.defaults import TEXT_CATEGORY
from misc.errors import QuotaExhaustedError
from misc.errors import UpstreamGenerationError

_QUOTA_MARKERS = ("resource_exhausted", "resource exhausted", "insufficient_quota", "quota")


def is_quota_exhausted_error(exc: BaseException) -> bool:
    if not isinstance(exc, openai.RateLimitError):
        return False
    text = str(exc).lower()
    body = getattr(exc, "body", None)
    if body:
        text = f"{text} {body}".lower()
    return any(marker in text for marker in _QUOTA_MARKERS)


class GenerationClient:
    """
    Text and image generation over the OpenAI-compatible Gemini endpoint.

    Failures surface as QuotaExhaustedError (provider says the daily quota is
    gone) or UpstreamGenerationError (everything else). No retries here.
    """

    def __init__(self, client: Any, *, model: str, image_model: str, persona: str):
        self.client = client
        self.model = model
        self.image_model = image_model
        self.persona = persona

    def _build_messages(self, prompt: str, context: str) -> list[dict[str, str]]:
        user_block = prompt
        if context:
            user_block = f"{prompt}\n\nRecent conversation (oldest first):\n{context}"
        return [
            {"role": "system", "content": self.persona},
            {"role": "user", "content": user_block},
        ]

    def _translate_error(self, exc: Exception, *, category: str) -> Exception:
        if is_quota_exhausted_error(exc):
            return QuotaExhaustedError(str(exc), category=category)
        return UpstreamGenerationError(f"{category} generation failed: {exc}")

    async def generate(self, prompt: str, context: str = "") -> str:
        try:
            resp = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=self.model,
                messages=self._build_messages(prompt, context),
            )
        except openai.OpenAIError as e:
            raise self._translate_error(e, category=TEXT_CATEGORY) from e

        try:
            text = (resp.choices[0].message.content or "").strip()
        except (AttributeError, IndexError) as e:
            raise UpstreamGenerationError(f"text generation returned an unexpected payload: {e}") from e
        if not text:
            raise UpstreamGenerationError("text generation returned an empty reply")
        print(f"[Gen] text model={self.model} chars={len(text)}")
        return text

    async def generate_image(self, prompt: str) -> bytes:
        try:
            resp = await asyncio.to_thread(
                self.client.images.generate,
                model=self.image_model,
                prompt=prompt,
                n=1,
                response_format="b64_json",
            )
        except openai.OpenAIError as e:
            raise self._translate_error(e, category=IMAGE_CATEGORY) from e

        try:
            payload = resp.data[0].b64_json
        except (AttributeError, IndexError) as e:
            raise UpstreamGenerationError(f"image generation returned an unexpected payload: {e}") from e
        if not payload:
            raise UpstreamGenerationError("image generation returned no image data")
        data = base64.b64decode(payload)
        print(f"[Gen] image model={self.image_model} bytes={len(data)}")
        return data
