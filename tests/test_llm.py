import asyncio
from types import SimpleNamespace

import pytest

from nota.ai_reasoning.llm import InsightGenerator, final_analysis_budget
from nota.errors import AnalysisError


def _client(content='{"topic": "beta"}', error=None, delay=0.0):
    calls = []

    async def _create(**kwargs):
        calls.append(kwargs)
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=_create)))
    return client, calls


@pytest.mark.asyncio
async def test_generate_insight_uses_insight_model_and_language():
    client, calls = _client()
    generator = InsightGenerator(client=client, insight_model="gpt-4o-mini", language="ru-RU")

    result = await generator.generate_insight("Обсудили релиз")

    assert result == '{"topic": "beta"}'
    call = calls[0]
    assert call["model"] == "gpt-4o-mini"
    assert call["max_tokens"] == 150
    assert call["temperature"] == pytest.approx(0.3)
    prompt = call["messages"][0]["content"]
    assert "respond in Russian" in prompt
    assert "Обсудили релиз" in prompt


@pytest.mark.asyncio
async def test_final_analysis_budget_depends_on_model_and_length():
    client, calls = _client()
    generator = InsightGenerator(client=client, analysis_model="gpt-4o", language="de-DE")

    await generator.final_analysis("short")
    await generator.final_analysis("x" * 2000)

    assert [c["max_tokens"] for c in calls] == [300, 500]
    assert "German (de)" in calls[0]["messages"][0]["content"]
    assert final_analysis_budget("gpt-4o-mini", "short") == 500
    assert final_analysis_budget("gpt-4o-mini", "x" * 2000) == 800


@pytest.mark.asyncio
async def test_empty_response_is_invalid():
    client, _ = _client(content="   ")
    generator = InsightGenerator(client=client)

    with pytest.raises(AnalysisError, match="Invalid response format"):
        await generator.generate_insight("something")


@pytest.mark.asyncio
async def test_client_failure_becomes_analysis_error():
    client, _ = _client(error=RuntimeError("forced"))
    generator = InsightGenerator(client=client)

    with pytest.raises(AnalysisError):
        await generator.final_analysis("something")


@pytest.mark.asyncio
async def test_timeout_becomes_analysis_error():
    client, _ = _client(delay=1.0)
    generator = InsightGenerator(client=client, timeout_sec=0.01)

    with pytest.raises(AnalysisError, match="timed out"):
        await generator.generate_insight("something")


@pytest.mark.asyncio
async def test_blank_prompt_and_missing_key():
    generator = InsightGenerator(api_key="")

    assert generator.enabled is False
    with pytest.raises(AnalysisError):
        await generator.complete("", "gpt-4o-mini", 10)
    with pytest.raises(AnalysisError, match="not configured"):
        await generator.generate_insight("text")
