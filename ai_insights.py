"""
AI-Powered Insights Generation Module
Sends search analytics to Anthropic Claude and parses the structured reply
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional

import anthropic
from pydantic import ValidationError as PydanticValidationError

from analyzer import compute_summary
from config import (
    ANTHROPIC_API_KEY, AI_MODEL, AI_MAX_TOKENS, API_TIMEOUT_SECONDS,
    INSIGHT_PROMPTS, ERROR_MESSAGES
)
from errors import AnalysisParseError, AnalysisUpstreamError
from logger import log
from models import AggregatedSummary, AnalysisResult, SearchAnalytics, SearchRow

FENCED_JSON_PATTERN = re.compile(r'```json\s*\n(.*?)\n?\s*```', re.DOTALL)
BRACKET_SPAN_PATTERNS = {
    '{': re.compile(r'\{.*\}', re.DOTALL),
    '[': re.compile(r'\[.*\]', re.DOTALL)
}


# ---------------------------------------------------------------------------
# Response parsing tiers
# ---------------------------------------------------------------------------

def parse_json_direct(text: str) -> Optional[Any]:
    """Parse the whole response as JSON, None if it is not JSON"""
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def extract_fenced_json(text: str) -> Optional[Any]:
    """Parse the first ```json fenced block, None if absent or invalid"""
    match = FENCED_JSON_PATTERN.search(text or '')
    if not match:
        return None
    return parse_json_direct(match.group(1))


def extract_bracket_span(text: str, opener: str = '{') -> Optional[Any]:
    """
    Parse the widest {...} or [...] span in the text

    Args:
        text: Raw model output
        opener: '{' for an object, '[' for an array

    Returns:
        Parsed value, or None
    """
    match = BRACKET_SPAN_PATTERNS[opener].search(text or '')
    if not match:
        return None
    return parse_json_direct(match.group(0))


def _tiers(opener: str) -> List[Callable[[str], Optional[Any]]]:
    return [
        parse_json_direct,
        extract_fenced_json,
        lambda text: extract_bracket_span(text, opener)
    ]


def parse_analysis_response(text: str) -> Dict:
    """
    Coerce a model reply into the analysis structure

    Tries a direct parse, then a fenced ```json block, then the widest {...}
    span. The first object found is validated against AnalysisResult.

    Raises:
        AnalysisParseError: no tier yields an object, or it has the wrong shape
    """
    for tier in _tiers('{'):
        value = tier(text)
        if not isinstance(value, dict):
            continue

        try:
            result = AnalysisResult.model_validate(value)
        except PydanticValidationError as e:
            raise AnalysisParseError(f"Analysis response has an unexpected shape: {e}", raw_text=text) from e

        return result.model_dump(by_alias=True, mode='json')

    raise AnalysisParseError("Could not parse JSON from Anthropic response", raw_text=text)


def parse_recommendations_response(text: str) -> List[str]:
    """
    Coerce a model reply into a list of recommendation strings

    Same tiers as the analysis parser but looking for an array; falls back to
    the whole reply as a single recommendation.
    """
    for tier in _tiers('['):
        value = tier(text)
        if isinstance(value, list):
            return [item if isinstance(item, str) else json.dumps(item) for item in value]

    return [(text or '').strip()]


def _serialize(data: Any) -> Any:
    if isinstance(data, (SearchAnalytics, SearchRow, AggregatedSummary)):
        return data.to_dict()
    return data


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class AIInsightsGenerator:
    """Generates insights from search data using Anthropic Claude"""

    def __init__(self, client=None, model: Optional[str] = None):
        self.model = model or AI_MODEL

        if client is not None:
            self.client = client
        elif ANTHROPIC_API_KEY:
            # Single attempt per call; failures surface to the caller
            self.client = anthropic.Anthropic(
                api_key=ANTHROPIC_API_KEY,
                timeout=API_TIMEOUT_SECONDS,
                max_retries=0
            )
        else:
            raise AnalysisUpstreamError(ERROR_MESSAGES['no_ai_key'])

    def generate_insight(self, prompt: str, max_tokens: int) -> str:
        """
        Run one completion and return its text

        Args:
            prompt: Fully formatted prompt
            max_tokens: Token budget for the reply

        Returns:
            Text of the first content block

        Raises:
            AnalysisUpstreamError: the API call failed or returned no content
        """
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}]
            )
        except anthropic.APIError as e:
            log.error(f"Anthropic request failed: {e}")
            raise AnalysisUpstreamError(f"Anthropic request failed: {e}") from e

        if not response.content:
            raise AnalysisUpstreamError("Anthropic returned an empty response")

        return getattr(response.content[0], 'text', '') or ''

    def analyze_search_data(self, data: SearchAnalytics, summary: Optional[AggregatedSummary] = None) -> Dict:
        """
        Generate a structured analysis of a search analytics snapshot

        Args:
            data: SearchAnalytics snapshot
            summary: Precomputed aggregates; computed from `data` when omitted

        Returns:
            Dictionary with summary, insights, topPerformers and recommendations
        """
        if summary is None:
            summary = compute_summary(data)

        payload = {
            'searchAnalytics': _serialize(data),
            'summary': summary.to_dict()
        }
        prompt = INSIGHT_PROMPTS['analysis'].format(data=json.dumps(payload, indent=2, default=str))

        content = self.generate_insight(prompt, AI_MAX_TOKENS['analysis'])
        analysis = parse_analysis_response(content)

        log.info(f"Generated analysis with {len(analysis['insights'])} insights")
        return analysis

    def get_query_recommendations(self, query: str, data: Any) -> List[str]:
        """
        Generate 3-5 recommendations for a single query

        Args:
            query: The search query
            data: The query's SearchRow, a snapshot, or a plain dictionary

        Returns:
            List of recommendation strings
        """
        prompt = INSIGHT_PROMPTS['recommendations'].format(
            query=query,
            data=json.dumps(_serialize(data), indent=2, default=str)
        )

        content = self.generate_insight(prompt, AI_MAX_TOKENS['recommendations'])
        recommendations = parse_recommendations_response(content)

        log.info(f"Generated {len(recommendations)} recommendations for '{query}'")
        return recommendations

    def summarize_performance_trends(self, historical_data: Any) -> str:
        """
        Summarize performance over time in one paragraph

        Args:
            historical_data: Date-dimension snapshot or plain dictionary

        Returns:
            Plain-text summary
        """
        prompt = INSIGHT_PROMPTS['trends'].format(
            data=json.dumps(_serialize(historical_data), indent=2, default=str)
        )

        return self.generate_insight(prompt, AI_MAX_TOKENS['trends']).strip()
