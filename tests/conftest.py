from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from zendesk_triage_mcp.agents import AgentDirectory
from zendesk_triage_mcp.server import ZendeskTools
from zendesk_triage_mcp.zendesk_client import ZendeskClient

NOW = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


def hours_ago(hours: float) -> str:
    return (NOW - timedelta(hours=hours)).strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeRecord:
    """Stands in for a zenpy API object"""

    def __init__(self, **fields):
        self._fields = fields

    def to_dict(self):
        return dict(self._fields)


@pytest.fixture
def zenpy():
    return MagicMock()


@pytest.fixture
def zendesk_client(zenpy):
    return ZendeskClient(zenpy)


@pytest.fixture
def agent_directory():
    return AgentDirectory({
        "Jane Doe": 111,
        "John Smith": 222,
        "jane Roe": 333,
        "Alex Kim": 444,
    })


@pytest.fixture
def tools(zendesk_client, agent_directory):
    return ZendeskTools(zendesk_client, agent_directory, clock=lambda: NOW)
