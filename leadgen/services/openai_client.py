"""
OpenAI scoring capability — one chat completion per lead, JSON reply.

The reply is parsed into a ScoringResponse here; anything that does not fit
the {score, recommendation, reasoning} contract raises MalformedResponse so
the qualification engine records it as a per-lead error.
"""
import json
import logging
from typing import Any, Dict

from leadgen.config import RECOMMENDATIONS, QualificationSettings
from leadgen.errors import LeadgenError, MalformedResponse
from leadgen.pipeline.base import ScoringResponse, Scorer

logger = logging.getLogger('services.openai')

SYSTEM_PROMPT = (
    'You are a business development AI agent analyzing GitHub repositories '
    'for potential partnerships.'
)


def build_prompt(lead) -> str:
    """Repository analysis prompt for one lead."""
    last_activity = lead.last_activity.isoformat() if lead.last_activity else 'unknown'
    return f"""You are an AI agent specialized in analyzing n8n workflow repositories for potential business opportunities.

Analyze this repository and provide a recommendation:

Repository: {lead.repo_name}
Owner: {lead.github_username}
Description: {lead.repo_description or ''}
URL: {lead.repo_url}
Stars: {lead.repo_stars if lead.repo_stars is not None else 'unknown'}
Language: {lead.repo_language or 'unknown'}
Last Activity: {last_activity}

Please analyze this repository based on the following criteria:
1. Relevance to n8n workflows (0-10)
2. Quality and completeness of the project (0-10)
3. Activity level and maintenance (0-10)
4. Potential for business collaboration (0-10)
5. Developer engagement and community presence (0-10)

Respond in JSON:
{{
  "score": <overall_score_0_to_1>,
  "recommendation": "<approve|reject|review>",
  "reasoning": "<detailed_explanation>",
  "confidence": <confidence_0_to_1>,
  "keyFactors": ["<factor1>", "<factor2>", "<factor3>"]
}}

Favor repositories that are actively maintained n8n workflows with good
documentation, monetization or collaboration potential, and engaged authors.
Reject repositories that are abandoned, not actually n8n-related, low quality,
or spam."""


def _as_number(value, field_name):
    # bool is an int subclass; true/false is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                pass
        raise MalformedResponse('scoring', f"'{field_name}' is not a number: {value!r}")
    return float(value)


def parse_scoring_response(text) -> ScoringResponse:
    """Raw completion text → ScoringResponse. Raises MalformedResponse."""
    if not text:
        raise MalformedResponse('scoring', 'empty response')
    try:
        data: Dict[str, Any] = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedResponse('scoring', f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponse('scoring', 'expected a JSON object')

    if 'score' not in data:
        raise MalformedResponse('scoring', "missing 'score'")
    score = _as_number(data['score'], 'score')

    recommendation = data.get('recommendation')
    if recommendation not in RECOMMENDATIONS:
        raise MalformedResponse('scoring', f"unknown recommendation: {recommendation!r}")

    reasoning = data.get('reasoning')
    if not isinstance(reasoning, str) or not reasoning.strip():
        raise MalformedResponse('scoring', "missing 'reasoning'")

    confidence = data.get('confidence')
    if confidence is not None:
        try:
            confidence = _as_number(confidence, 'confidence')
        except MalformedResponse:
            confidence = None

    factors = data.get('keyFactors') or data.get('key_factors') or []
    if not isinstance(factors, list):
        factors = []

    return ScoringResponse(
        score=score,
        recommendation=recommendation,
        reasoning=reasoning,
        confidence=confidence,
        key_factors=[str(f) for f in factors],
    )


class OpenAIScorer(Scorer):
    """Scores a lead with a chat completion routed through the 'openai' breaker."""

    def __init__(self, client=None, settings: QualificationSettings = None, breaker=None):
        self.client = client
        self.settings = settings or QualificationSettings()
        self.breaker = breaker

    def _client(self):
        if self.client is not None:
            return self.client
        from leadgen.extensions import openai_client
        if openai_client is None:
            raise LeadgenError('OpenAI client not configured (OPENAI_API_KEY unset)')
        return openai_client

    def _chat_completion(self, **kwargs):
        create = self._client().chat.completions.create
        if self.breaker is None:
            return create(**kwargs)
        return self.breaker.call(create, **kwargs)

    def score(self, lead) -> ScoringResponse:
        response = self._chat_completion(
            model=self.settings.model,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            messages=[
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': build_prompt(lead)},
            ],
            response_format={'type': 'json_object'},
        )
        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise MalformedResponse('scoring', f"no choices in completion: {e}") from e
        result = parse_scoring_response(text)
        logger.debug("Scored %s/%s: %.2f (%s)", lead.github_username, lead.repo_name,
                     result.score, result.recommendation)
        return result


def build_scorer(settings: QualificationSettings = None) -> OpenAIScorer:
    """OpenAIScorer on the shared client and the 'openai' breaker."""
    from leadgen.services.circuit_breaker import get_breaker
    return OpenAIScorer(settings=settings, breaker=get_breaker('openai'))
