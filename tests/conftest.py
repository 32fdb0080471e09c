"""
Shared fixtures: a stub Data API engine and sample catalog/token data.
"""

import json

import pytest

from ga4_mcp import server
from ga4_mcp.service import AnalyticsService


class StubEngine:
    """Stands in for AnalyticsEngine and records every call it receives."""

    def __init__(self, report=None, realtime=None, metadata=None, error=None):
        self.report = report if report is not None else {"rows": []}
        self.realtime = realtime if realtime is not None else {"rows": []}
        self.metadata = metadata if metadata is not None else {"dimensions": [], "metrics": []}
        self.error = error
        self.calls = []

    def _respond(self, name, argument, payload):
        self.calls.append((name, argument))
        if self.error is not None:
            raise self.error
        return payload

    async def run_report(self, request):
        return self._respond("run_report", request, self.report)

    async def run_realtime_report(self, request):
        return self._respond("run_realtime_report", request, self.realtime)

    async def get_metadata(self, property_id):
        return self._respond("get_metadata", property_id, self.metadata)


@pytest.fixture
def stub_response():
    return {"rows": [{"dimensionValues": [], "metricValues": [{"value": "42"}]}]}


@pytest.fixture
def catalog():
    return {
        "name": "properties/999/metadata",
        "dimensions": [
            {
                "apiName": "unifiedScreenName",
                "uiName": "Screen name",
                "description": "Page path of the session",
                "category": "PAGE",
                "customDefinition": False,
                "deprecatedApiNames": [],
            },
            {
                "apiName": "country",
                "uiName": "Country",
                "description": "The country from which the user activity originated.",
                "category": "GEOGRAPHY",
                "customDefinition": False,
            },
            {
                "apiName": "customEvent:plan",
                "uiName": "Plan",
                "description": "Subscription plan",
                "category": "CUSTOM",
                "customDefinition": True,
            },
        ],
        "metrics": [
            {
                "apiName": "screenPageViews",
                "uiName": "Views",
                "description": "The number of app screens or web pages your users viewed.",
                "type": "TYPE_INTEGER",
                "category": "PAGE",
                "customDefinition": False,
                "expression": "",
            },
            {
                "apiName": "activeUsers",
                "uiName": "Active users",
                "description": "The number of distinct users who visited your site or app.",
                "type": "TYPE_INTEGER",
                "category": "USER",
                "customDefinition": False,
            },
        ],
    }


@pytest.fixture
def stub_engine(stub_response, catalog):
    return StubEngine(report=stub_response, realtime=stub_response, metadata=catalog)


@pytest.fixture
def service(stub_engine):
    return AnalyticsService(stub_engine)


@pytest.fixture
def installed_service(service):
    """Install the stub-backed service behind the MCP tools for one test."""
    server.set_service(service)
    yield service
    server.set_service(None)


@pytest.fixture
def token_record():
    return {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "scope": "https://www.googleapis.com/auth/analytics.readonly",
        "token_type": "Bearer",
        "expiry_date": 4102444800000,
    }


@pytest.fixture
def token_file(tmp_path, token_record):
    path = tmp_path / "tokens.json"
    path.write_text(json.dumps(token_record, indent=2))
    return path
