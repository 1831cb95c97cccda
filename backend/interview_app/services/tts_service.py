from __future__ import annotations

import logging
import re
from typing import AsyncIterable, AsyncIterator, Optional

import httpx

from interview_app.interview.errors import SynthesisFailure
from interview_app.services.audio_store import AudioFileStore
from interview_core.config import (
    ELEVENLABS_API_KEY,
    ELEVENLABS_MODEL_ID,
    ELEVENLABS_OUTPUT_FORMAT,
    ELEVENLABS_VOICE_ID,
    TTS_TIMEOUT_SEC,
)

logger = logging.getLogger("interview_app.services.tts_service")

ELEVENLABS_STREAM_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}/stream"

# keep the terminator with its sentence; split on the whitespace after it
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


async def iter_sentences(text_chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    """Regroup streamed text into whole sentences; the unfinished tail is held until the source ends."""
    buffer = ""
    async for chunk in text_chunks:
        buffer += chunk
        parts = SENTENCE_BOUNDARY.split(buffer)
        buffer = parts.pop() if parts else ""
        for sentence in parts:
            if sentence.strip():
                yield sentence.strip()

    if buffer.strip():
        yield buffer.strip()


async def _single(text: str) -> AsyncIterator[str]:
    yield text


class ElevenLabsSynthesizer:
    """
    Text to mp3 via the ElevenLabs streaming endpoint.
    Each rendered utterance is also written to the transient audio store.
    """

    def __init__(
        self,
        api_key: str = ELEVENLABS_API_KEY,
        voice_id: str = ELEVENLABS_VOICE_ID,
        model_id: str = ELEVENLABS_MODEL_ID,
        output_format: str = ELEVENLABS_OUTPUT_FORMAT,
        audio_store: AudioFileStore | None = None,
        timeout_sec: float = TTS_TIMEOUT_SEC,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format
        self.audio_store = audio_store
        self.timeout_sec = float(timeout_sec)
        # persistent client so consecutive sentences reuse the connection
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_sec)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()

    def _payload(self, text: str) -> dict:
        return {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": 0,
                "similarity_boost": 0,
                "use_speaker_boost": True,
                "speed": 1.0,
            },
        }

    async def _render(self, text: str) -> bytes:
        url = ELEVENLABS_STREAM_URL.format(voice_id=self.voice_id)
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        params = {
            "output_format": self.output_format,
            "optimize_streaming_latency": 4,
        }

        client = await self._get_client()
        audio = bytearray()
        async with client.stream("POST", url, headers=headers, params=params, json=self._payload(text)) as response:
            response.raise_for_status()
            async for chunk in response.aiter_bytes():
                if chunk:
                    audio.extend(chunk)
        return bytes(audio)

    async def synthesize(self, text: str) -> bytes:
        cleaned = str(text or "").strip()
        if not cleaned:
            raise SynthesisFailure("Nothing to synthesize")
        if not self.api_key:
            raise SynthesisFailure("ELEVENLABS_API_KEY is not configured")

        try:
            audio = await self._render(cleaned)
        except httpx.HTTPError as exc:
            logger.warning("Voice generation error | chars=%s err=%s", len(cleaned), exc)
            raise SynthesisFailure(f"Voice generation failed: {exc}") from exc

        if not audio:
            raise SynthesisFailure("Voice generation returned no audio")

        if self.audio_store is not None:
            try:
                path = await self.audio_store.write(audio)
                logger.info("Audio generated | file=%s bytes=%s", path.name, len(audio))
            except OSError as exc:
                logger.warning("Audio file write failed | err=%s", exc)
        return audio

    async def synthesize_stream(self, text_chunks: AsyncIterable[str] | str) -> AsyncIterator[bytes]:
        """One audio payload per sentence, in sentence order."""
        source = _single(text_chunks) if isinstance(text_chunks, str) else text_chunks
        async for sentence in iter_sentences(source):
            yield await self.synthesize(sentence)
