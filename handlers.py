"""
Request handlers for SearchScope

Each function is one dashboard action: check the caller's input, call the
fetcher, aggregator, generator or store, and return plain data. Errors are
raised as the SearchScope taxonomy; error_response turns them into a status
code and JSON body.
"""

from typing import (
    Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Sequence, Tuple
)

from pydantic import ValidationError as PydanticValidationError

from ai_insights import AIInsightsGenerator
from analyzer import compute_summary
from config import ERROR_MESSAGES
from data_collector import GSCDataCollector, PERFORMANCE_FETCHERS
from errors import SearchScopeError, ValidationError
from logger import log
from models import (
    AggregatedSummary, Insight, SearchAnalytics, User, Website, WebsiteCreate
)
from storage import InsightStore, Storage

CollectorFactory = Callable[[str], GSCDataCollector]


def require_fields(_message: str = "Missing required parameters", **fields: Any) -> None:
    """Raise ValidationError naming every empty field"""
    missing = [name for name, value in fields.items() if value is None or value == '' or value == []]
    if missing:
        raise ValidationError.missing(missing, _message)


def _access_token(user: Optional[User]) -> str:
    if not user or not user.google_access_token:
        raise ValidationError(ERROR_MESSAGES['not_connected'])
    return user.google_access_token


def parse_dimensions(dimensions: Optional[Any]) -> Optional[List[str]]:
    """Accept 'query,page' or ['query', 'page']"""
    if dimensions is None or dimensions == '':
        return None
    if isinstance(dimensions, str):
        return [d.strip() for d in dimensions.split(',') if d.strip()]
    return list(dimensions)


# ---------------------------------------------------------------------------
# Search Console
# ---------------------------------------------------------------------------

def list_sites(user: User, collector_factory: CollectorFactory = GSCDataCollector.from_access_token) -> List[Dict]:
    return collector_factory(_access_token(user)).list_sites()


def fetch_analytics(
    user: User,
    site_url: str,
    start_date: Any,
    end_date: Any,
    dimensions: Optional[Sequence[str]] = None,
    collector_factory: CollectorFactory = GSCDataCollector.from_access_token
) -> SearchAnalytics:
    token = _access_token(user)
    require_fields(siteUrl=site_url, startDate=start_date, endDate=end_date)

    collector = collector_factory(token)
    return collector.get_search_analytics(site_url, start_date, end_date, parse_dimensions(dimensions))


def fetch_performance(
    user: User,
    kind: str,
    site_url: str,
    start_date: Any,
    end_date: Any,
    collector_factory: CollectorFactory = GSCDataCollector.from_access_token
) -> SearchAnalytics:
    """Single-dimension fetch; kind is one of date, device, page, country"""
    token = _access_token(user)
    require_fields(siteUrl=site_url, startDate=start_date, endDate=end_date)

    fetcher = PERFORMANCE_FETCHERS.get(kind)
    if fetcher is None:
        raise ValidationError(
            f"Unknown performance breakdown: {kind}",
            [{'field': 'kind', 'message': f"must be one of {', '.join(PERFORMANCE_FETCHERS)}", 'type': 'enum'}]
        )

    return fetcher(collector_factory(token), site_url, start_date, end_date)


def summarize(data: SearchAnalytics) -> AggregatedSummary:
    require_fields(data=data)
    return compute_summary(data)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

def analyze(generator: AIInsightsGenerator, data: Optional[SearchAnalytics]) -> Dict:
    require_fields("No data provided for analysis", data=data)
    return generator.analyze_search_data(data)


def query_recommendations(generator: AIInsightsGenerator, query: str, data: Any) -> List[str]:
    require_fields("Missing query or data", query=query, data=data)
    return generator.get_query_recommendations(query, data)


def performance_trends(generator: AIInsightsGenerator, data: Any) -> str:
    require_fields("No data provided for analysis", data=data)
    return generator.summarize_performance_trends(data)


# ---------------------------------------------------------------------------
# Websites and insights
# ---------------------------------------------------------------------------

def save_website(storage: Storage, user: User, payload: Dict) -> Tuple[Website, bool]:
    """
    Save a website for the user, reusing an existing one with the same URL

    Returns:
        (website, created)
    """
    try:
        validated = WebsiteCreate.model_validate({**payload, 'userId': user.id})
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e

    existing = next((w for w in storage.get_websites(user.id) if w.url == validated.url), None)
    if existing:
        return existing, False

    website = storage.create_website(validated)
    log.info(f"Saved website {website.id} ({website.site_url}) for user {user.id}")
    return website, True


def save_insights(store: InsightStore, website_id: Any, insights: Any) -> List[Insight]:
    require_fields("Invalid input", websiteId=website_id)
    if not isinstance(insights, (list, tuple)):
        raise ValidationError(
            "Invalid input",
            [{'field': 'insights', 'message': 'must be a list', 'type': 'list_type'}]
        )
    return store.replace_insights(_website_id(website_id), insights)


def get_insights(store: InsightStore, website_id: Any) -> List[Insight]:
    require_fields(websiteId=website_id)
    return store.list_insights(_website_id(website_id))


def _website_id(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            "Invalid websiteId",
            [{'field': 'websiteId', 'message': 'must be an integer', 'type': 'int_parsing'}]
        ) from e


def refresh_insights(
    store: InsightStore,
    generator: AIInsightsGenerator,
    website_id: int,
    data: SearchAnalytics
) -> Tuple[Dict, List[Insight]]:
    """
    Analyze a snapshot and replace the website's stored insights

    Stored insights are only touched once the analysis has fully succeeded.

    Returns:
        (analysis, saved insights)
    """
    analysis = analyze(generator, data)
    saved = store.replace_insights(website_id, analysis['insights'])
    return analysis, saved


def remember_analysis(state: MutableMapping, website_id: int, analysis: Dict) -> None:
    """Keep the latest analysis for a website in a session mapping"""
    state.setdefault('analyses', {})[website_id] = analysis


def recall_analysis(state: Mapping, website_id: int) -> Optional[Dict]:
    return state.get('analyses', {}).get(website_id)


def error_response(exc: SearchScopeError) -> Tuple[int, Dict]:
    """Status code and JSON body for a SearchScope error"""
    return exc.status_code, exc.to_dict()
