import asyncio
import logging

import httpx
from openai import AsyncOpenAI

from nota.ai_reasoning.prompts import FINAL_ANALYSIS_PROMPT, LIVE_INSIGHT_PROMPT
from nota.core.config import ANALYSIS_MODEL, INSIGHT_MAX_TOKENS, INSIGHT_MODEL, RPC_TIMEOUT
from nota.errors import AnalysisError
from nota.languages import language_name, primary_code, system_locale

logger = logging.getLogger("nota.ai_reasoning.llm")

TEMPERATURE = 0.3


def final_analysis_budget(model: str, transcript: str) -> int:
    short = len(transcript) < 1000
    if "mini" in str(model or "").lower():
        return 500 if short else 800
    return 300 if short else 500


class InsightGenerator:
    """
    Analysis RPC: one chat completion per call, answered in the
    system language. No retries; callers decide what a failure means.
    """

    def __init__(
        self,
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
        insight_model: str = INSIGHT_MODEL,
        analysis_model: str = ANALYSIS_MODEL,
        timeout_sec: float = RPC_TIMEOUT,
        language: str | None = None,
    ):
        self._api_key = str(api_key or "").strip()
        self._client = client
        self.insight_model = insight_model
        self.analysis_model = analysis_model
        self.timeout_sec = timeout_sec
        self.language = language or system_locale()

    @property
    def enabled(self) -> bool:
        return self._client is not None or bool(self._api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise AnalysisError("OpenAI API key not configured")
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                timeout=httpx.Timeout(self.timeout_sec, connect=5.0),
                max_retries=0,
            )
        return self._client

    async def complete(self, prompt: str, model: str, max_tokens: int) -> str:
        if not str(prompt or "").strip():
            raise AnalysisError("empty prompt")

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=max_tokens,
                    temperature=TEMPERATURE,
                ),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Analysis timeout | model=%s timeout=%.0fs", model, self.timeout_sec)
            raise AnalysisError(f"analysis timed out after {self.timeout_sec:.0f}s") from exc
        except AnalysisError:
            raise
        except Exception as exc:
            logger.warning("Analysis failure | model=%s err=%s", model, exc)
            raise AnalysisError(str(exc)) from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        text = str(content or "").strip()
        if not text:
            raise AnalysisError("Invalid response format")
        return text

    async def generate_insight(self, transcript: str) -> str:
        prompt = LIVE_INSIGHT_PROMPT.format(
            language=language_name(self.language),
            transcript=transcript,
        )
        return await self.complete(prompt, self.insight_model, INSIGHT_MAX_TOKENS)

    async def final_analysis(self, transcript: str) -> str:
        prompt = FINAL_ANALYSIS_PROMPT.format(
            language=language_name(self.language),
            code=primary_code(self.language),
            transcript=transcript,
        )
        max_tokens = final_analysis_budget(self.analysis_model, transcript)
        return await self.complete(prompt, self.analysis_model, max_tokens)
