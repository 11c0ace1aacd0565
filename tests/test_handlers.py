"""
Tests for the dashboard request handlers.
"""
import json

import anthropic
import httpx
import pytest

import handlers
from ai_insights import AIInsightsGenerator
from conftest import make_anthropic_client, make_service, query_body
from data_collector import GSCDataCollector
from errors import (
    AnalysisParseError, AnalysisUpstreamError, ExternalApiError, NotFoundError, ValidationError
)

SITE = 'https://example.com/'


def factory_for(service):
    tokens = []

    def factory(token):
        tokens.append(token)
        return GSCDataCollector(service)

    factory.tokens = tokens
    return factory


class TestFetchAnalytics:

    def test_user_without_connection(self, anonymous_user):
        service = make_service({'rows': []})

        with pytest.raises(ValidationError) as exc_info:
            handlers.fetch_analytics(anonymous_user, SITE, '2024-03-01', '2024-03-28',
                                     collector_factory=factory_for(service))

        assert exc_info.value.message == "Google Search Console not connected"
        service.searchanalytics.assert_not_called()

    def test_missing_parameters(self, connected_user):
        with pytest.raises(ValidationError) as exc_info:
            handlers.fetch_analytics(connected_user, '', None, '2024-03-28',
                                     collector_factory=factory_for(make_service()))

        assert [e['field'] for e in exc_info.value.errors] == ['siteUrl', 'startDate']

    def test_dimensions_string(self, connected_user):
        service = make_service({'rows': [{'keys': ['q', '/p'], 'clicks': 1, 'impressions': 2}]})
        factory = factory_for(service)

        analytics = handlers.fetch_analytics(connected_user, SITE, '2024-03-01', '2024-03-28',
                                             'query, page', collector_factory=factory)

        assert query_body(service)['dimensions'] == ['query', 'page']
        assert analytics.rows[0].keys == ('q', '/p')
        assert factory.tokens == ['ya29.token']

    def test_upstream_error_propagates(self, connected_user):
        service = make_service(side_effect=TimeoutError('slow'))

        with pytest.raises(ExternalApiError):
            handlers.fetch_analytics(connected_user, SITE, '2024-03-01', '2024-03-28',
                                     collector_factory=factory_for(service))


class TestFetchPerformance:

    def test_device_breakdown(self, connected_user):
        service = make_service({'rows': [{'keys': ['MOBILE'], 'clicks': 4, 'impressions': 40}]})

        analytics = handlers.fetch_performance(connected_user, 'device', SITE, '2024-03-01', '2024-03-28',
                                               collector_factory=factory_for(service))

        assert query_body(service)['dimensions'] == ['device']
        assert analytics.rows[0].keys == ('MOBILE',)

    def test_unknown_kind(self, connected_user):
        with pytest.raises(ValidationError) as exc_info:
            handlers.fetch_performance(connected_user, 'browser', SITE, '2024-03-01', '2024-03-28',
                                       collector_factory=factory_for(make_service()))

        assert exc_info.value.errors[0]['field'] == 'kind'


def test_list_sites(connected_user):
    service = make_service()
    service.sites.return_value.list.return_value.execute.return_value = {
        'siteEntry': [{'siteUrl': SITE, 'permissionLevel': 'siteOwner'}]
    }

    assert handlers.list_sites(connected_user, factory_for(service)) == [
        {'site_url': SITE, 'permission_level': 'siteOwner'}
    ]


def test_summarize(shoes_snapshot):
    assert handlers.summarize(shoes_snapshot).total_clicks == 20

    with pytest.raises(ValidationError):
        handlers.summarize(None)


class TestAnalysisHandlers:

    def test_analyze_without_data(self):
        generator = AIInsightsGenerator(client=make_anthropic_client('{}'))

        with pytest.raises(ValidationError) as exc_info:
            handlers.analyze(generator, None)

        assert exc_info.value.message == "No data provided for analysis"
        generator.client.messages.create.assert_not_called()

    def test_recommendations_missing_query(self):
        generator = AIInsightsGenerator(client=make_anthropic_client('[]'))

        with pytest.raises(ValidationError) as exc_info:
            handlers.query_recommendations(generator, '', {'clicks': 1})

        assert exc_info.value.message == "Missing query or data"

    def test_recommendations(self):
        generator = AIInsightsGenerator(client=make_anthropic_client('["a", "b", "c"]'))

        assert handlers.query_recommendations(generator, 'buy shoes', {'clicks': 1}) == ['a', 'b', 'c']

    def test_performance_trends_missing_data(self):
        generator = AIInsightsGenerator(client=make_anthropic_client('text'))

        with pytest.raises(ValidationError):
            handlers.performance_trends(generator, None)


class TestSaveWebsite:

    def test_creates_then_reuses(self, storage, connected_user, website_payload):
        website, created = handlers.save_website(storage, connected_user, website_payload)
        again, created_again = handlers.save_website(storage, connected_user, website_payload)

        assert created and not created_again
        assert again.id == website.id
        assert website.user_id == connected_user.id
        assert len(storage.get_websites(connected_user.id)) == 1

    def test_invalid_property_url(self, storage, connected_user, website_payload):
        with pytest.raises(ValidationError) as exc_info:
            handlers.save_website(storage, connected_user, dict(website_payload, siteUrl='example.com'))

        assert exc_info.value.errors[0]['field'] == 'siteUrl'
        assert storage.get_websites(connected_user.id) == []

    def test_domain_property(self, storage, connected_user):
        website, _ = handlers.save_website(
            storage, connected_user, {'url': 'https://example.com', 'siteUrl': 'sc-domain:example.com'}
        )

        assert website.site_url == 'sc-domain:example.com'


class TestInsights:

    def test_save_and_get(self, insight_store):
        insights = [{'type': 'positive', 'title': 'Good', 'description': 'CTR is up'}]

        handlers.save_insights(insight_store, '3', insights)

        assert [i.title for i in handlers.get_insights(insight_store, 3)] == ['Good']

    def test_missing_website_id(self, insight_store):
        with pytest.raises(ValidationError) as exc_info:
            handlers.save_insights(insight_store, None, [])

        assert exc_info.value.message == "Invalid input"

    def test_insights_must_be_a_list(self, insight_store):
        with pytest.raises(ValidationError) as exc_info:
            handlers.save_insights(insight_store, 1, {'type': 'info'})

        assert exc_info.value.errors[0]['type'] == 'list_type'

    def test_non_numeric_website_id(self, insight_store):
        with pytest.raises(ValidationError) as exc_info:
            handlers.get_insights(insight_store, 'abc')

        assert exc_info.value.errors[0]['field'] == 'websiteId'


class TestRefreshInsights:

    def test_replaces_stored_insights(self, insight_store, shoes_snapshot):
        insight_store.replace_insights(1, [{'type': 'info', 'title': 'stale', 'description': 'd'}])
        reply = {
            "summary": "ok",
            "insights": [{"type": "opportunity", "title": "fresh", "description": "d"}],
            "topPerformers": {"queries": [], "pages": []},
            "recommendations": []
        }
        generator = AIInsightsGenerator(client=make_anthropic_client(json.dumps(reply)))

        analysis, saved = handlers.refresh_insights(insight_store, generator, 1, shoes_snapshot)

        assert analysis['summary'] == 'ok'
        assert [i.title for i in saved] == ['fresh']
        assert [i.title for i in insight_store.list_insights(1)] == ['fresh']

    @pytest.mark.parametrize('text, side_effect, expected', [
        ('not json at all', None, AnalysisParseError),
        ('{"summary": "missing keys"}', None, AnalysisParseError),
        (None, anthropic.APIConnectionError(request=httpx.Request('POST', 'https://api.anthropic.com')),
         AnalysisUpstreamError),
    ])
    def test_failed_analysis_leaves_store_untouched(self, insight_store, shoes_snapshot,
                                                    text, side_effect, expected):
        insight_store.replace_insights(1, [{'type': 'info', 'title': 'stale', 'description': 'd'}])
        generator = AIInsightsGenerator(client=make_anthropic_client(text, side_effect))

        with pytest.raises(expected):
            handlers.refresh_insights(insight_store, generator, 1, shoes_snapshot)

        assert [i.title for i in insight_store.list_insights(1)] == ['stale']


class TestErrorResponse:

    @pytest.mark.parametrize('error, status', [
        (ValidationError('bad'), 400),
        (NotFoundError('gone'), 404),
        (ExternalApiError('down', upstream_status=503), 502),
        (AnalysisUpstreamError('down'), 502),
        (AnalysisParseError('garbled'), 500),
    ])
    def test_status_codes(self, error, status):
        assert handlers.error_response(error)[0] == status

    def test_body(self):
        status, body = handlers.error_response(ExternalApiError('Search Console failed', upstream_status=403))

        assert status == 502
        assert body == {'message': 'Search Console failed', 'error': 'ExternalApiError', 'upstreamStatus': 403}

    def test_validation_body_lists_fields(self):
        _, body = handlers.error_response(ValidationError.missing(['siteUrl']))

        assert body['message'] == 'Missing required parameters'
        assert body['errors'][0]['field'] == 'siteUrl'


class TestSessionAnalysis:

    def test_analysis_is_kept_per_website(self):
        state = {}
        handlers.remember_analysis(state, 1, {'summary': 'site one'})
        handlers.remember_analysis(state, 2, {'summary': 'site two'})

        assert handlers.recall_analysis(state, 1) == {'summary': 'site one'}
        assert handlers.recall_analysis(state, 2) == {'summary': 'site two'}

    def test_other_website_sees_nothing(self):
        state = {}
        handlers.remember_analysis(state, 1, {'summary': 'site one'})

        assert handlers.recall_analysis(state, 2) is None
        assert handlers.recall_analysis({}, 1) is None
