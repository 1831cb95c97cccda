import asyncio
from abc import ABC, abstractmethod
import logging
from typing import AsyncIterator

import google.generativeai as genai
from openai import AsyncOpenAI

from interview_app.interview.errors import GenerationFailure
from interview_core.config import (
    GEMINI_API_KEY,
    GEMINI_MODEL,
    LLM_PROVIDER,
    LLM_RETRIES,
    LLM_TIMEOUT_SEC,
    MODEL_NAME,
    OPENAI_API_KEY,
)

logger = logging.getLogger("interview_app.services.llm")


class StreamingLLM(ABC):
    """
    Lazy text generation. stream() yields fragments in order, exactly once;
    a failed call is retried only while nothing has been yielded yet.
    """

    name = "base"

    def __init__(self, timeout_sec: float = LLM_TIMEOUT_SEC, retries: int = LLM_RETRIES, temperature: float = 0.7):
        self.timeout_sec = float(timeout_sec)
        self.retries = max(0, int(retries))
        self.temperature = float(temperature)

    @abstractmethod
    def _stream_once(self, prompt: str) -> AsyncIterator[str]:
        raise NotImplementedError

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        if not str(prompt or "").strip():
            raise GenerationFailure("Empty prompt")

        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            yielded = False
            try:
                async for fragment in self._stream_once(prompt):
                    if not fragment:
                        continue
                    yielded = True
                    yield fragment
                return
            except Exception as exc:
                if yielded:
                    raise GenerationFailure(f"LLM stream interrupted: {exc}") from exc
                last_error = exc
                logger.warning("LLM stream failure | provider=%s attempt=%s err=%s", self.name, attempt + 1, exc)

            if attempt < self.retries:
                await asyncio.sleep(0.35 * (attempt + 1))

        raise GenerationFailure(f"LLM stream failed after retries: {last_error}")

    async def _collect(self, prompt: str) -> str:
        parts = [fragment async for fragment in self._stream_once(prompt) if fragment]
        return "".join(parts)

    async def complete(self, prompt: str) -> str:
        if not str(prompt or "").strip():
            raise GenerationFailure("Empty prompt")

        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                text = await asyncio.wait_for(self._collect(prompt), timeout=self.timeout_sec)
                text = text.strip()
                if text:
                    return text
                last_error = GenerationFailure("Empty response from LLM")
            except asyncio.TimeoutError as exc:
                last_error = exc
                logger.warning("LLM timeout | provider=%s attempt=%s", self.name, attempt + 1)
            except Exception as exc:
                last_error = exc
                logger.warning("LLM failure | provider=%s attempt=%s err=%s", self.name, attempt + 1, exc)

            if attempt < self.retries:
                await asyncio.sleep(0.35 * (attempt + 1))

        raise GenerationFailure(f"LLM request failed after retries: {last_error}")


class OpenAIStreamingLLM(StreamingLLM):
    name = "openai"

    def __init__(self, api_key: str = OPENAI_API_KEY, model: str = MODEL_NAME, client: AsyncOpenAI | None = None, **kwargs):
        super().__init__(**kwargs)
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def _stream_once(self, prompt: str) -> AsyncIterator[str]:
        response = await asyncio.wait_for(
            self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                stream=True,
            ),
            timeout=self.timeout_sec,
        )
        async for chunk in response:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content


class GeminiStreamingLLM(StreamingLLM):
    name = "gemini"

    def __init__(self, api_key: str = GEMINI_API_KEY, model: str = GEMINI_MODEL, **kwargs):
        super().__init__(**kwargs)
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model)
        self._generation_config = genai.GenerationConfig(temperature=self.temperature)

    async def _stream_once(self, prompt: str) -> AsyncIterator[str]:
        response = await asyncio.wait_for(
            self.model.generate_content_async(
                prompt,
                stream=True,
                generation_config=self._generation_config,
            ),
            timeout=self.timeout_sec,
        )
        async for chunk in response:
            try:
                text = chunk.text
            except ValueError:
                # chunk carried no text part (safety block or empty candidate)
                continue
            if text:
                yield text


def build_llm_client(provider: str = LLM_PROVIDER) -> StreamingLLM:
    normalized = str(provider or "openai").strip().lower()
    if normalized == "gemini":
        if not GEMINI_API_KEY:
            raise RuntimeError("LLM_PROVIDER=gemini requires GEMINI_API_KEY")
        return GeminiStreamingLLM()
    if normalized != "openai":
        raise RuntimeError(f"Unknown LLM_PROVIDER: {provider}")
    return OpenAIStreamingLLM()
