"""
Shared fixtures: fake Search Console service, fake Anthropic client, storage.
No test touches the network.
"""
from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from models import SearchAnalytics, SearchRow, User
from storage import InsightStore, MemStorage


def make_service(response=None, side_effect=None):
    """MagicMock shaped like the searchconsole v1 resource"""
    service = MagicMock()
    execute = service.searchanalytics.return_value.query.return_value.execute
    if side_effect is not None:
        execute.side_effect = side_effect
    else:
        execute.return_value = response
    return service


def query_body(service):
    """The body passed to the last searchanalytics().query() call"""
    return service.searchanalytics.return_value.query.call_args.kwargs['body']


def make_anthropic_client(text=None, side_effect=None):
    """MagicMock shaped like anthropic.Anthropic returning one text block"""
    client = MagicMock()
    if side_effect is not None:
        client.messages.create.side_effect = side_effect
    else:
        client.messages.create.return_value = SimpleNamespace(content=[SimpleNamespace(type='text', text=text)])
    return client


def sent_prompt(client):
    return client.messages.create.call_args.kwargs['messages'][0]['content']


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def insight_store(storage):
    return InsightStore(storage)


@pytest.fixture
def connected_user(storage):
    user = storage.create_user('owner', 'owner@example.com')
    return storage.update_user_google_credentials(user.id, 'g-123', 'ya29.token', 'refresh-1')


@pytest.fixture
def shoes_snapshot():
    """One query over 28 days"""
    return SearchAnalytics(
        rows=(SearchRow(keys=('buy shoes',), clicks=20, impressions=200, ctr=0.1, position=7.2),),
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 28),
        dimensions=('query',)
    )


@pytest.fixture
def two_rows():
    return [
        SearchRow(keys=('a',), clicks=10, impressions=100, ctr=0.1, position=5),
        SearchRow(keys=('b',), clicks=5, impressions=50, ctr=0.1, position=15),
    ]


@pytest.fixture
def website_payload():
    return {'url': 'https://example.com', 'siteUrl': 'https://example.com/', 'permissionLevel': 'siteOwner'}


@pytest.fixture
def anonymous_user():
    return User(id=99, username='nobody')
