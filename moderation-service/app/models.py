# app/models.py
"""Classifier client and the classify-or-fallback step."""
import logging
from typing import Any, Dict

from openai import AsyncOpenAI

from .config import Settings
from .scoring import (
    ClassifierError,
    InvalidUpstreamFormat,
    generate_fallback_scores,
    normalize_scores,
    parse_classifier_reply,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are a content moderation assistant. Analyze the provided text and evaluate how strongly it exhibits each characteristic on a scale from 0 to 1.
Return ONLY a JSON object with scores for: toxicity, harassment, hate-speech, sexual, violence, spam.
All scores must be between 0 and 1. Example: {"toxicity":0.42,"harassment":0.21}
"""

class ScoreClassifier:
    """Asks an OpenAI-compatible chat endpoint for per-flag scores."""

    def __init__(self, settings: Settings, client: Any = None):
        self.model = settings.classifier_model
        self.temperature = settings.classifier_temperature
        if client is None and settings.classifier_api_key:
            client = AsyncOpenAI(
                api_key=settings.classifier_api_key,
                base_url=settings.classifier_api_base,
                timeout=settings.classifier_timeout,
                max_retries=0,
            )
        self._client = client

    async def classify(self, content: str) -> Dict[str, float]:
        """Returns normalized scores, or raises if the classifier reply is unusable."""
        if self._client is None:
            raise ClassifierError("GROQ_API_KEY not set")

        resp = await self._client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            messages=[{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": content}],
            response_format={"type": "json_object"},
        )
        if not resp.choices:
            raise ClassifierError("classifier returned no choices")

        reply = parse_classifier_reply(resp.choices[0].message.content)
        if not reply.ok:
            logger.warning("Failed to parse AI response: %s", reply.error)
            raise InvalidUpstreamFormat()
        return normalize_scores(reply.scores)

    async def aclose(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()

async def score_content(classifier: ScoreClassifier, content: str) -> Dict[str, float]:
    """Classifies content, falling back to randomized scores on any classifier failure."""
    try:
        return await classifier.classify(content)
    except Exception as e:
        logger.warning("AI analysis failed, using randomized scores: %r", e)
        return generate_fallback_scores()
