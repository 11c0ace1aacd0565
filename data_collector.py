"""
Data Collection Module for SearchScope
Handles all calls to the Google Search Console API
"""

from datetime import date
from typing import Dict, List, Optional, Sequence, Union

import httplib2
import pandas as pd
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config import (
    API_TIMEOUT_SECONDS, DEFAULT_DIMENSIONS, SEARCH_ROW_LIMIT, SEARCH_TYPE,
    VALID_DIMENSIONS, DATE_FORMAT
)
from errors import ExternalApiError, ValidationError
from logger import log
from models import SearchAnalytics, SearchRow
from utils import parse_date

DateLike = Union[str, date]

METRIC_COLUMNS = ['clicks', 'impressions', 'ctr', 'position']

# Transport-level failures raised by httplib2 / the socket layer
TRANSPORT_ERRORS = (httplib2.HttpLib2Error, OSError)


class GSCDataCollector:
    """Fetches search performance data for one authenticated user"""

    def __init__(self, service):
        self.service = service

    @classmethod
    def from_access_token(cls, access_token: str, timeout: float = API_TIMEOUT_SECONDS) -> 'GSCDataCollector':
        """
        Build a collector from a bare OAuth access token

        Args:
            access_token: Currently valid Google access token
            timeout: Socket timeout for every API call, in seconds

        Returns:
            GSCDataCollector bound to the searchconsole v1 API
        """
        credentials = Credentials(token=access_token)
        http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
        service = build('searchconsole', 'v1', http=http, cache_discovery=False)
        return cls(service)

    def _execute(self, request, action: str) -> Dict:
        try:
            return request.execute()
        except HttpError as e:
            status = getattr(e.resp, 'status', None)
            log.error(f"{action} failed with HTTP {status}: {e}")
            raise ExternalApiError(f"Failed to {action}: {e}", upstream_status=status) from e
        except TRANSPORT_ERRORS as e:
            log.error(f"{action} failed: {e}")
            raise ExternalApiError(f"Failed to {action}: {e}") from e

    def get_search_analytics(
        self,
        site_url: str,
        start_date: DateLike,
        end_date: DateLike,
        dimensions: Optional[Sequence[str]] = None
    ) -> SearchAnalytics:
        """
        Get search analytics data for a site

        Args:
            site_url: GSC property (URL-prefix or sc-domain:)
            start_date: Start date (date or YYYY-MM-DD)
            end_date: End date (date or YYYY-MM-DD)
            dimensions: Ordered dimensions to group by, defaults to ['query']

        Returns:
            SearchAnalytics snapshot, rows normalised

        Raises:
            ValidationError: bad dates or dimensions
            ExternalApiError: the API call failed or returned no data envelope
        """
        dimensions = list(dimensions) if dimensions is not None else list(DEFAULT_DIMENSIONS)
        self._validate_dimensions(dimensions)

        start = parse_date(start_date, 'startDate')
        end = parse_date(end_date, 'endDate')
        if start > end:
            raise ValidationError(
                "startDate must not be after endDate",
                [{'field': 'startDate', 'message': 'after endDate', 'type': 'date_order'}]
            )

        body = {
            'startDate': start.strftime(DATE_FORMAT),
            'endDate': end.strftime(DATE_FORMAT),
            'dimensions': dimensions,
            'rowLimit': SEARCH_ROW_LIMIT,
            'searchType': SEARCH_TYPE
        }

        response = self._execute(
            self.service.searchanalytics().query(siteUrl=site_url, body=body),
            'fetch search analytics'
        )

        # An empty `rows` list is a valid empty period; no envelope at all is not
        if not isinstance(response, dict):
            log.error(f"No data returned from Search Console API for {site_url}")
            raise ExternalApiError("No data returned from Search Console API")

        rows = tuple(SearchRow.from_api(row) for row in response.get('rows') or [])

        log.info(f"Fetched {len(rows)} rows for {site_url} by {','.join(dimensions)} ({body['startDate']}..{body['endDate']})")

        return SearchAnalytics(
            rows=rows,
            start_date=start,
            end_date=end,
            dimensions=tuple(dimensions),
            aggregation_type=response.get('responseAggregationType')
        )

    def get_performance_by_date(self, site_url: str, start_date: DateLike, end_date: DateLike) -> SearchAnalytics:
        return self.get_search_analytics(site_url, start_date, end_date, ['date'])

    def get_performance_by_device(self, site_url: str, start_date: DateLike, end_date: DateLike) -> SearchAnalytics:
        return self.get_search_analytics(site_url, start_date, end_date, ['device'])

    def get_performance_by_page(self, site_url: str, start_date: DateLike, end_date: DateLike) -> SearchAnalytics:
        return self.get_search_analytics(site_url, start_date, end_date, ['page'])

    def get_performance_by_country(self, site_url: str, start_date: DateLike, end_date: DateLike) -> SearchAnalytics:
        return self.get_search_analytics(site_url, start_date, end_date, ['country'])

    def list_sites(self) -> List[Dict[str, str]]:
        """
        Get the Search Console properties the user can access

        Returns:
            List of {'site_url', 'permission_level'} dictionaries
        """
        response = self._execute(self.service.sites().list(), 'fetch site list')

        sites = []
        for entry in (response or {}).get('siteEntry', []):
            if not entry.get('siteUrl'):
                continue
            sites.append({
                'site_url': entry['siteUrl'],
                'permission_level': entry.get('permissionLevel', 'unknown')
            })

        log.info(f"Fetched {len(sites)} Search Console properties")
        return sites

    @staticmethod
    def _validate_dimensions(dimensions: List[str]) -> None:
        if not dimensions:
            raise ValidationError(
                "At least one dimension is required",
                [{'field': 'dimensions', 'message': 'must not be empty', 'type': 'missing'}]
            )

        unknown = [d for d in dimensions if d not in VALID_DIMENSIONS]
        if unknown:
            raise ValidationError(
                f"Unknown dimensions: {', '.join(unknown)}",
                [{'field': 'dimensions', 'message': f"'{d}' is not a Search Console dimension", 'type': 'enum'}
                 for d in unknown]
            )


PERFORMANCE_FETCHERS = {
    'date': GSCDataCollector.get_performance_by_date,
    'device': GSCDataCollector.get_performance_by_device,
    'page': GSCDataCollector.get_performance_by_page,
    'country': GSCDataCollector.get_performance_by_country
}


def to_dataframe(analytics: SearchAnalytics) -> pd.DataFrame:
    """
    Convert a snapshot into a DataFrame with one column per dimension

    Args:
        analytics: SearchAnalytics snapshot

    Returns:
        DataFrame with dimension columns followed by metric columns
    """
    dimensions = list(analytics.dimensions)
    columns = dimensions + METRIC_COLUMNS

    if not analytics.rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame([row.to_dict() for row in analytics.rows])

    # Extract dimension values
    for i, dim in enumerate(dimensions):
        df[dim] = df['keys'].apply(lambda x: x[i] if i < len(x) else None)

    # Drop the keys column
    df = df.drop('keys', axis=1)

    if 'date' in dimensions:
        df['date'] = pd.to_datetime(df['date'])
        df = df.sort_values('date').reset_index(drop=True)

    return df[columns]
