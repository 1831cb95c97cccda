from types import SimpleNamespace

import pytest

from interview_app.interview.errors import GenerationFailure
from interview_app.services.llm import OpenAIStreamingLLM, StreamingLLM


def _chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class _FakeStream:
    def __init__(self, texts, fail_after=None):
        self._texts = list(texts)
        self._fail_after = fail_after

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for index, text in enumerate(self._texts):
            if self._fail_after is not None and index == self._fail_after:
                raise RuntimeError("stream dropped")
            yield _chunk(text)


class _FakeCompletions:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def create(self, **kwargs):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _llm(outcomes, retries=1):
    completions = _FakeCompletions(outcomes)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIStreamingLLM(api_key="test-key", client=client, retries=retries, timeout_sec=2.0), completions


@pytest.mark.asyncio
async def test_stream_yields_fragments_in_order():
    llm, _ = _llm([_FakeStream(["Hello", None, " there"])])

    fragments = [fragment async for fragment in llm.stream("say hi")]

    assert fragments == ["Hello", " there"]


@pytest.mark.asyncio
async def test_stream_retries_before_first_fragment():
    llm, completions = _llm([RuntimeError("forced"), _FakeStream(["ok"])])

    fragments = [fragment async for fragment in llm.stream("retry me")]

    assert fragments == ["ok"]
    assert completions.calls == 2


@pytest.mark.asyncio
async def test_stream_does_not_retry_after_partial_output():
    llm, completions = _llm([_FakeStream(["part", "rest"], fail_after=1), _FakeStream(["never"])])

    received = []
    with pytest.raises(GenerationFailure):
        async for fragment in llm.stream("partial"):
            received.append(fragment)

    assert received == ["part"]
    assert completions.calls == 1


@pytest.mark.asyncio
async def test_stream_raises_after_exhausting_retries():
    llm, completions = _llm([RuntimeError("a"), RuntimeError("b")], retries=1)

    with pytest.raises(GenerationFailure):
        async for _ in llm.stream("fail"):
            pass
    assert completions.calls == 2


@pytest.mark.asyncio
async def test_blank_prompt_is_rejected():
    llm, completions = _llm([])

    with pytest.raises(GenerationFailure):
        await llm.complete("   ")
    assert completions.calls == 0


@pytest.mark.asyncio
async def test_complete_joins_stream():
    llm, _ = _llm([_FakeStream(["One", " sentence."])])

    assert await llm.complete("go") == "One sentence."


def test_base_client_requires_a_stream_implementation():
    with pytest.raises(TypeError):
        StreamingLLM()
