import logging
from typing import Any, Dict

import google.auth.credentials
import proto
from google.analytics.data_v1beta import BetaAnalyticsDataAsyncClient
from google.analytics.data_v1beta.types import (
    GetMetadataRequest,
    RunRealtimeReportRequest,
    RunReportRequest,
)
from google.api_core.gapic_v1.client_info import ClientInfo

from . import __version__
from .reports import property_resource

logger = logging.getLogger(__name__)

_CLIENT_INFO = ClientInfo(user_agent=f"ga4-mcp/{__version__}")


def proto_to_dict(message: proto.Message) -> Dict[str, Any]:
    """Convert a Data API response into the JSON shape the API documents."""
    return type(message).to_dict(
        message, use_integers_for_enums=False, preserving_proto_field_name=False
    )


class AnalyticsEngine:
    """Thin async wrapper over the GA4 Data API client.

    Responses come back as plain dicts so the tool layer never touches proto
    objects.
    """

    def __init__(self, credentials: google.auth.credentials.Credentials):
        self._credentials = credentials
        self._client = None

    @property
    def client(self) -> BetaAnalyticsDataAsyncClient:
        # The grpc asyncio channel must be created inside the running loop
        if self._client is None:
            self._client = BetaAnalyticsDataAsyncClient(
                credentials=self._credentials, client_info=_CLIENT_INFO
            )
            logger.info("GA4 client initialized successfully")
        return self._client

    async def run_report(self, request: RunReportRequest) -> Dict[str, Any]:
        response = await self.client.run_report(request=request)
        return proto_to_dict(response)

    async def run_realtime_report(self, request: RunRealtimeReportRequest) -> Dict[str, Any]:
        response = await self.client.run_realtime_report(request=request)
        return proto_to_dict(response)

    async def get_metadata(self, property_id: str) -> Dict[str, Any]:
        request = GetMetadataRequest(name=f"{property_resource(property_id)}/metadata")
        response = await self.client.get_metadata(request=request)
        return proto_to_dict(response)
