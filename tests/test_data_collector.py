"""
Tests for the Search Console fetcher against a mocked API resource.
"""
from datetime import date

import httplib2
import pytest
from googleapiclient.errors import HttpError

from conftest import make_service, query_body
from data_collector import GSCDataCollector, PERFORMANCE_FETCHERS, to_dataframe
from errors import ExternalApiError, ValidationError

SITE = 'https://example.com/'


def http_error(status, message='boom'):
    return HttpError(
        resp=httplib2.Response({'status': status}),
        content=f'{{"error": {{"code": {status}, "message": "{message}"}}}}'.encode()
    )


class TestGetSearchAnalytics:

    def test_request_body(self):
        service = make_service({'rows': []})
        GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28')

        assert query_body(service) == {
            'startDate': '2024-03-01',
            'endDate': '2024-03-28',
            'dimensions': ['query'],
            'rowLimit': 100,
            'searchType': 'web',
        }
        assert service.searchanalytics.return_value.query.call_args.kwargs['siteUrl'] == SITE

    def test_accepts_date_objects_and_dimension_order(self):
        service = make_service({'rows': []})
        analytics = GSCDataCollector(service).get_search_analytics(
            SITE, date(2024, 3, 1), date(2024, 3, 7), ['page', 'device']
        )

        assert query_body(service)['dimensions'] == ['page', 'device']
        assert analytics.dimensions == ('page', 'device')
        assert analytics.start_date == date(2024, 3, 1)

    def test_rows_are_normalised(self):
        service = make_service({
            'rows': [
                {'keys': ['buy shoes'], 'clicks': 20, 'impressions': 200, 'ctr': 0.1, 'position': 7.2},
                {'keys': ['red shoes'], 'impressions': 10, 'position': 12.5},
                {'keys': ['blue shoes']},
            ],
            'responseAggregationType': 'byProperty'
        })
        analytics = GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28')

        assert analytics.aggregation_type == 'byProperty'
        assert analytics.rows[0].keys == ('buy shoes',)
        assert (analytics.rows[1].clicks, analytics.rows[1].ctr) == (0, 0)
        blank = analytics.rows[2]
        assert (blank.clicks, blank.impressions, blank.ctr, blank.position) == (0, 0, 0, 0)

    def test_null_fields_become_zero(self):
        service = make_service({'rows': [{'keys': ['q'], 'clicks': None, 'impressions': None}]})
        row = GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28').rows[0]

        assert row.clicks == 0 and row.impressions == 0

    def test_missing_rows_is_a_valid_empty_period(self):
        service = make_service({'responseAggregationType': 'byProperty'})
        analytics = GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28')

        assert analytics.rows == ()

    def test_no_data_envelope_is_an_error(self):
        service = make_service(None)

        with pytest.raises(ExternalApiError):
            GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28')

    def test_http_error_keeps_upstream_status(self):
        service = make_service(side_effect=http_error(403, 'User does not have sufficient permission'))

        with pytest.raises(ExternalApiError) as exc_info:
            GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28')

        assert exc_info.value.upstream_status == 403
        assert 'sufficient permission' in exc_info.value.message

    def test_timeout_is_an_external_api_error(self):
        service = make_service(side_effect=TimeoutError('timed out'))

        with pytest.raises(ExternalApiError):
            GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28')

    def test_api_is_called_once_on_failure(self):
        service = make_service(side_effect=http_error(500))

        with pytest.raises(ExternalApiError):
            GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28')

        assert service.searchanalytics.return_value.query.return_value.execute.call_count == 1

    @pytest.mark.parametrize('dimensions', [[], ['keyword'], ['query', 'browser']])
    def test_invalid_dimensions(self, dimensions):
        service = make_service({'rows': []})

        with pytest.raises(ValidationError):
            GSCDataCollector(service).get_search_analytics(SITE, '2024-03-01', '2024-03-28', dimensions)

        service.searchanalytics.assert_not_called()

    def test_malformed_date(self):
        with pytest.raises(ValidationError) as exc_info:
            GSCDataCollector(make_service({})).get_search_analytics(SITE, '03/01/2024', '2024-03-28')

        assert exc_info.value.errors[0]['field'] == 'startDate'

    def test_start_after_end(self):
        with pytest.raises(ValidationError):
            GSCDataCollector(make_service({})).get_search_analytics(SITE, '2024-03-28', '2024-03-01')


@pytest.mark.parametrize('kind', ['date', 'device', 'page', 'country'])
def test_performance_fetchers_use_one_dimension(kind):
    service = make_service({'rows': []})
    collector = GSCDataCollector(service)

    analytics = PERFORMANCE_FETCHERS[kind](collector, SITE, '2024-03-01', '2024-03-28')

    assert query_body(service)['dimensions'] == [kind]
    assert analytics.dimensions == (kind,)


def test_list_sites():
    service = make_service()
    service.sites.return_value.list.return_value.execute.return_value = {
        'siteEntry': [
            {'siteUrl': 'sc-domain:example.com', 'permissionLevel': 'siteOwner'},
            {'siteUrl': 'https://blog.example.com/'},
        ]
    }

    assert GSCDataCollector(service).list_sites() == [
        {'site_url': 'sc-domain:example.com', 'permission_level': 'siteOwner'},
        {'site_url': 'https://blog.example.com/', 'permission_level': 'unknown'},
    ]


def test_list_sites_failure():
    service = make_service()
    service.sites.return_value.list.return_value.execute.side_effect = http_error(401)

    with pytest.raises(ExternalApiError):
        GSCDataCollector(service).list_sites()


class TestToDataFrame:

    def test_dimension_columns(self):
        service = make_service({'rows': [
            {'keys': ['https://example.com/a', 'MOBILE'], 'clicks': 3, 'impressions': 30, 'ctr': 0.1, 'position': 2},
        ]})
        analytics = GSCDataCollector(service).get_search_analytics(
            SITE, '2024-03-01', '2024-03-28', ['page', 'device']
        )

        df = to_dataframe(analytics)

        assert list(df.columns) == ['page', 'device', 'clicks', 'impressions', 'ctr', 'position']
        assert df.iloc[0]['device'] == 'MOBILE'

    def test_dates_are_sorted(self):
        service = make_service({'rows': [
            {'keys': ['2024-03-02'], 'clicks': 2, 'impressions': 20},
            {'keys': ['2024-03-01'], 'clicks': 1, 'impressions': 10},
        ]})
        analytics = GSCDataCollector(service).get_performance_by_date(SITE, '2024-03-01', '2024-03-02')

        df = to_dataframe(analytics)

        assert list(df['clicks']) == [1, 2]

    def test_empty_snapshot(self):
        analytics = GSCDataCollector(make_service({})).get_performance_by_device(SITE, '2024-03-01', '2024-03-02')

        df = to_dataframe(analytics)

        assert df.empty
        assert 'device' in df.columns
