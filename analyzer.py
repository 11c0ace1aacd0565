"""
Metrics Aggregation Module for SearchScope
Derives totals, weighted averages and period comparisons from search rows.
Every view that shows CTR or position reads it from compute_summary.
"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple, Union

from config import RANKABLE_METRICS
from errors import ValidationError
from models import AggregatedSummary, SearchAnalytics, SearchRow
from utils import safe_delta_pct

RowSource = Union[SearchAnalytics, Iterable[SearchRow]]


def _rows(source: RowSource) -> List[SearchRow]:
    if isinstance(source, SearchAnalytics):
        return list(source.rows)
    return list(source)


def compute_summary(source: RowSource) -> AggregatedSummary:
    """
    Aggregate rows into totals and impressions-weighted averages

    Args:
        source: SearchAnalytics snapshot or sequence of SearchRow

    Returns:
        AggregatedSummary; all zeros when there are no impressions
    """
    rows = _rows(source)

    total_clicks = sum(row.clicks for row in rows)
    total_impressions = sum(row.impressions for row in rows)

    if total_impressions <= 0:
        return AggregatedSummary(total_clicks=total_clicks, total_impressions=0)

    weighted_position = sum(row.position * row.impressions for row in rows)

    return AggregatedSummary(
        total_clicks=total_clicks,
        total_impressions=total_impressions,
        avg_ctr=total_clicks / total_impressions,
        avg_position=weighted_position / total_impressions
    )


def compare_summaries(current: AggregatedSummary, previous: AggregatedSummary) -> Dict[str, float]:
    """
    Percentage change of each metric against the previous period

    Position is reported as a raw change too; a negative position change is
    an improvement.

    Returns:
        Dictionary of clicksChange, impressionsChange, ctrChange,
        positionChange (percent) and positionDelta (absolute)
    """
    position_delta = 0.0
    if current.avg_position > 0 and previous.avg_position > 0:
        position_delta = round(current.avg_position - previous.avg_position, 2)

    return {
        'clicksChange': safe_delta_pct(current.total_clicks, previous.total_clicks),
        'impressionsChange': safe_delta_pct(current.total_impressions, previous.total_impressions),
        'ctrChange': safe_delta_pct(current.avg_ctr, previous.avg_ctr),
        'positionChange': safe_delta_pct(current.avg_position, previous.avg_position),
        'positionDelta': position_delta
    }


def previous_period(start: date, end: date) -> Tuple[date, date]:
    """
    The equal-length window that ends the day before `start`

    Args:
        start: First day of the current window
        end: Last day of the current window

    Returns:
        Tuple of (previous_start, previous_end)
    """
    length = (end - start).days + 1
    previous_end = start - timedelta(days=1)
    return previous_end - timedelta(days=length - 1), previous_end


def top_rows(source: RowSource, metric: str = 'clicks', limit: int = 10) -> List[SearchRow]:
    """
    Rows ranked by a metric, highest first

    Position ranks ascending since a lower position is better.
    """
    if metric not in RANKABLE_METRICS:
        raise ValidationError(
            f"Unknown metric: {metric}",
            [{'field': 'metric', 'message': f"must be one of {', '.join(RANKABLE_METRICS)}", 'type': 'enum'}]
        )

    rows = _rows(source)
    if metric == 'position':
        ranked = sorted((r for r in rows if r.position > 0), key=lambda r: r.position)
    else:
        ranked = sorted(rows, key=lambda r: getattr(r, metric), reverse=True)

    return ranked[:limit]


def find_row(source: RowSource, key: str) -> Optional[SearchRow]:
    """First row whose leading dimension value equals `key`"""
    for row in _rows(source):
        if row.keys and row.keys[0] == key:
            return row
    return None
