"""
Advisory Generation Service
OpenAI-backed capability that drafts a budget plan from aggregated spend.
"""
import json
import logging
from typing import Any, Dict, Optional

import openai
from openai import OpenAI

from spendwise.core.config import settings
from spendwise.core.errors import GenerationFailed, SchemaViolation, TransientGenerationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful personal finance advisor. Always respond with valid JSON only."

PLAN_FORMAT = """{
  "budgets": [
    {"category": "Food", "recommended": 400, "current": 450, "reasoning": "..."}
  ],
  "strategy": {"needs": 2500, "wants": 1000, "savings": 500, "description": "..."},
  "recommendations": [
    {"title": "...", "description": "...", "impact": "$200/month savings"}
  ],
  "totalSavings": 300,
  "summary": "Overall financial health assessment"
}"""


def build_prompt(request: Dict[str, Any]) -> str:
    lines = [
        f"- {item['category']}: ${item['current']:.2f}"
        for item in request.get("categoryTotals", [])
    ]
    spending = "\n".join(lines) if lines else "- No expenses recorded yet"
    return (
        "Analyze this user's finances and recommend a personalised monthly budget.\n\n"
        f"Monthly income: ${request['income']}\n\n"
        f"Month-to-date spending by category:\n{spending}\n\n"
        f"Transactions tracked: {request['transactionCount']}\n\n"
        "Provide a recommended monthly budget per category, an overall strategy "
        "(50/30/20 or custom) splitting income into needs, wants and savings, "
        "3-5 specific actionable recommendations, and the estimated monthly savings.\n\n"
        f"Respond with JSON in exactly this structure:\n{PLAN_FORMAT}\n\n"
        "Be encouraging but realistic. Return ONLY valid JSON, no markdown."
    )


class OpenAIAdvisoryGenerator:
    """Callable generation capability: request payload in, parsed JSON out."""

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: str = settings.OPENAI_MODEL,
        temperature: float = settings.ADVISOR_TEMPERATURE,
        max_tokens: int = settings.ADVISOR_MAX_TOKENS,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    def _get_client(self) -> OpenAI:
        if self._client is None:
            try:
                # Retries are owned by the planner, so the client must not add its own
                self._client = OpenAI(
                    api_key=settings.OPENAI_API_KEY or None,
                    timeout=settings.ADVISOR_TIMEOUT_SECONDS,
                    max_retries=0,
                )
            except openai.OpenAIError as e:
                raise GenerationFailed(f"OpenAI client not configured: {e}")
        return self._client

    def __call__(self, request: Dict[str, Any]) -> Any:
        client = self._get_client()
        try:
            completion = client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(request)},
                ],
                response_format={"type": "json_object"},
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError) as e:
            # APITimeoutError is an APIConnectionError
            raise TransientGenerationError(f"OpenAI unavailable: {e}")
        except openai.OpenAIError as e:
            logger.error(f"OpenAI request rejected: {e}")
            raise GenerationFailed(f"OpenAI request rejected: {e}")

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise GenerationFailed("No response content from OpenAI")

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise SchemaViolation(f"OpenAI response is not valid JSON: {e}")
