from __future__ import annotations

import base64
import unittest
from types import SimpleNamespace

import httpx
import openai

from generation.client import GenerationClient
from generation.client import is_quota_exhausted_error
from misc.errors import QuotaExhaustedError
from misc.errors import UpstreamGenerationError

_REQUEST = httpx.Request("POST", "https://generativelanguage.googleapis.com/v1beta/openai/chat/completions")


def _rate_limit_error(body: dict) -> openai.RateLimitError:
    return openai.RateLimitError(
        "Error code: 429",
        response=httpx.Response(429, request=_REQUEST),
        body=body,
    )


def _completion(text: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class _FakeOpenAI:
    def __init__(self, *, chat_result=None, image_result=None, error: Exception | None = None):
        self.chat_kwargs: dict = {}
        self.image_kwargs: dict = {}
        self._chat_result = chat_result
        self._image_result = image_result
        self._error = error
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))
        self.images = SimpleNamespace(generate=self._generate)

    def _create(self, **kwargs):
        self.chat_kwargs = kwargs
        if self._error is not None:
            raise self._error
        return self._chat_result

    def _generate(self, **kwargs):
        self.image_kwargs = kwargs
        if self._error is not None:
            raise self._error
        return self._image_result


def _client(fake: _FakeOpenAI) -> GenerationClient:
    return GenerationClient(fake, model="gemini-2.0-flash", image_model="imagen-3.0-generate-002", persona="be brief")


class QuotaErrorDetectionTests(unittest.TestCase):
    def test_resource_exhausted_is_a_quota_error(self):
        err = _rate_limit_error({"error": {"status": "RESOURCE_EXHAUSTED", "message": "Quota exceeded"}})
        self.assertTrue(is_quota_exhausted_error(err))

    def test_plain_throttle_is_not(self):
        err = _rate_limit_error({"error": {"message": "slow down"}})
        self.assertFalse(is_quota_exhausted_error(err))
        self.assertFalse(is_quota_exhausted_error(ValueError("quota")))


class GenerationClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_generate_sends_persona_prompt_and_context(self):
        fake = _FakeOpenAI(chat_result=_completion("  sure thing  "))
        out = await _client(fake).generate("Say something.", "alice: hi")
        self.assertEqual(out, "sure thing")
        self.assertEqual(fake.chat_kwargs["model"], "gemini-2.0-flash")
        messages = fake.chat_kwargs["messages"]
        self.assertEqual(messages[0], {"role": "system", "content": "be brief"})
        self.assertTrue(messages[1]["content"].startswith("Say something."))
        self.assertTrue(messages[1]["content"].endswith("alice: hi"))

    async def test_empty_reply_is_an_upstream_error(self):
        with self.assertRaises(UpstreamGenerationError):
            await _client(_FakeOpenAI(chat_result=_completion(""))).generate("x")

    async def test_quota_error_is_translated(self):
        fake = _FakeOpenAI(error=_rate_limit_error({"error": {"status": "RESOURCE_EXHAUSTED"}}))
        with self.assertRaises(QuotaExhaustedError) as ctx:
            await _client(fake).generate("x")
        self.assertEqual(ctx.exception.category, "text")

    async def test_connection_failure_is_upstream_error(self):
        fake = _FakeOpenAI(error=openai.APIConnectionError(request=_REQUEST))
        with self.assertRaises(UpstreamGenerationError):
            await _client(fake).generate("x")

    async def test_image_is_decoded(self):
        payload = base64.b64encode(b"\x89PNG fake").decode("ascii")
        fake = _FakeOpenAI(image_result=SimpleNamespace(data=[SimpleNamespace(b64_json=payload)]))
        data = await _client(fake).generate_image("a lighthouse")
        self.assertEqual(data, b"\x89PNG fake")
        self.assertEqual(fake.image_kwargs["model"], "imagen-3.0-generate-002")
        self.assertEqual(fake.image_kwargs["response_format"], "b64_json")

    async def test_image_quota_error_carries_image_category(self):
        fake = _FakeOpenAI(error=_rate_limit_error({"error": {"message": "insufficient_quota"}}))
        with self.assertRaises(QuotaExhaustedError) as ctx:
            await _client(fake).generate_image("a lighthouse")
        self.assertEqual(ctx.exception.category, "image")


if __name__ == "__main__":
    unittest.main()
