"""
Utility functions for SearchScope
Helper functions for data processing and formatting
"""

import re
import urllib.parse
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple, Union

import pandas as pd

from config import DATA_FRESHNESS_DELAY, DATE_FORMAT, DEFAULT_DATE_RANGE
from errors import ValidationError


def format_number(num: Union[int, float], decimals: int = 0) -> str:
    """
    Format number with thousands separator

    Args:
        num: Number to format
        decimals: Decimal places to show

    Returns:
        Formatted string
    """
    if num is None or pd.isna(num):
        return "N/A"

    if decimals > 0:
        return f"{num:,.{decimals}f}"
    else:
        return f"{int(num):,}"


def format_percentage(num: float, decimals: int = 2) -> str:
    """
    Format a ratio as percentage

    Args:
        num: Ratio to format (0.15 = 15%)
        decimals: Decimal places

    Returns:
        Formatted percentage string
    """
    if num is None or pd.isna(num):
        return "N/A"

    return f"{num * 100:.{decimals}f}%"


def format_position(num: float) -> str:
    """Format an average position, zero meaning no data"""
    if num is None or pd.isna(num) or num == 0:
        return "N/A"

    return f"{num:.1f}"


def format_change(change_pct: Optional[float]) -> Optional[str]:
    """
    Format a percentage change for st.metric deltas

    Args:
        change_pct: Change in percent (12.5 = +12.5%)

    Returns:
        Signed string, or None when there is nothing to compare
    """
    if change_pct is None or pd.isna(change_pct):
        return None

    return f"{change_pct:+.1f}%"


def safe_delta_pct(current: float, previous: float) -> float:
    """
    Percentage change between two periods:
    - previous > 0 → standard percentage delta
    - previous == 0 and current > 0 → 100.0
    - previous == 0 and current == 0 → 0.0
    """
    if previous > 0:
        return round(((current - previous) / previous) * 100, 2)
    elif current > 0:
        return 100.0
    else:
        return 0.0


def parse_date(value: Union[str, date], field: str = 'date') -> date:
    """
    Coerce a date or YYYY-MM-DD string into a date

    Raises:
        ValidationError: when the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(
            f"Invalid {field}: expected YYYY-MM-DD",
            [{'field': field, 'message': f"'{value}' is not a YYYY-MM-DD date", 'type': 'date_format'}]
        )


def get_date_range(days: int = DEFAULT_DATE_RANGE, end: Optional[date] = None) -> Tuple[date, date]:
    """
    Calculate an inclusive date range of `days` days

    Args:
        days: Number of days in the window
        end: Last day of the window; defaults to the freshest complete GSC day

    Returns:
        Tuple of (start_date, end_date)
    """
    if end is None:
        end = date.today() - timedelta(days=DATA_FRESHNESS_DELAY)

    return end - timedelta(days=days - 1), end


def clean_url(url: str, max_length: int = 50) -> str:
    """
    Clean and truncate URL for display

    Args:
        url: Full URL
        max_length: Maximum length

    Returns:
        Cleaned URL string
    """
    # Remove protocol
    url = re.sub(r'^https?://', '', url)

    # Remove www
    url = re.sub(r'^www\.', '', url)

    # Remove trailing slash
    url = url.rstrip('/')

    # Truncate if needed
    if len(url) > max_length:
        return url[:max_length-3] + "..."

    return url


def get_domain_from_url(url: str) -> str:
    """
    Extract domain from URL

    Args:
        url: Full URL

    Returns:
        Domain name
    """
    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError:
        return url

    domain = parsed.netloc or parsed.path
    return domain.replace('www.', '')


def validate_gsc_property_url(url: str) -> bool:
    """
    Validate GSC property URL format

    Args:
        url: Property URL

    Returns:
        True if valid
    """
    if not url:
        return False

    # Domain property
    if url.startswith('sc-domain:'):
        return len(url) > len('sc-domain:')

    # URL prefix property
    if url.startswith(('http://', 'https://')):
        return bool(urllib.parse.urlparse(url).netloc)

    return False


def parse_gsc_property_url(url: str) -> Dict[str, str]:
    """
    Parse GSC property URL into components

    Args:
        url: Property URL

    Returns:
        Dictionary with property type and domain
    """
    if url.startswith('sc-domain:'):
        return {
            'type': 'domain',
            'domain': url.replace('sc-domain:', ''),
            'protocol': 'all',
            'subdomain': 'all'
        }
    elif url.startswith(('https://', 'http://')):
        return {
            'type': 'url-prefix',
            'domain': get_domain_from_url(url),
            'protocol': 'https' if url.startswith('https://') else 'http',
            'subdomain': 'www' if 'www.' in url else 'none'
        }

    return {'type': 'unknown', 'domain': url}


def property_display_url(site_url: str) -> str:
    """Human-facing URL for a property, as stored on Website.url"""
    parsed = parse_gsc_property_url(site_url)
    if parsed['type'] == 'domain':
        return f"https://{parsed['domain']}"
    return site_url.rstrip('/')
