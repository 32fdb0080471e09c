"""The five analytics operations exposed as MCP tools.

Each operation validates the property id locally, builds the request, runs it
against the engine and returns a JSON-serialisable dict. Anything raised past
validation is classified into a diagnostic instead of propagating.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from .errors import classify, invalid_choice_error, missing_property_error
from .metadata import METADATA_TYPES, search_metadata, select_metadata
from .reports import (
    DEFAULT_INSIGHT_LIMIT,
    DEFAULT_REALTIME_LIMIT,
    DEFAULT_REPORT_LIMIT,
    REPORT_TYPES,
    OrderDirective,
    ReportSpec,
    build_predefined,
    build_realtime,
    build_report,
)

logger = logging.getLogger(__name__)


def _missing(property_id: Optional[str]) -> bool:
    return not property_id or not str(property_id).strip()


class AnalyticsService:
    def __init__(self, engine):
        self.engine = engine

    async def _guarded(self, operation: str, property_id: str, call) -> Dict[str, Any]:
        start_time = time.time()
        try:
            result = await call()
        except Exception as e:
            diagnostic = classify(e, property_id)
            logger.error(f"{operation} failed for property {property_id} ({diagnostic.category}): {e}")
            return diagnostic.to_dict()
        elapsed = time.time() - start_time
        logger.info(f"{operation} for property {property_id} completed in {elapsed:.2f}s")
        return result

    async def analytics_report(
        self,
        property_id: str,
        start_date: str,
        end_date: str,
        metrics: List[str],
        dimensions: Optional[List[str]] = None,
        dimension_filter: Optional[Dict[str, Any]] = None,
        metric_filter: Optional[Dict[str, Any]] = None,
        order_by: Optional[OrderDirective] = None,
        limit: int = DEFAULT_REPORT_LIMIT,
    ) -> Dict[str, Any]:
        if _missing(property_id):
            return missing_property_error()

        async def call():
            request = build_report(ReportSpec(
                property_id=property_id,
                start_date=start_date,
                end_date=end_date,
                metrics=list(metrics or []),
                dimensions=list(dimensions or []),
                dimension_filter=dimension_filter,
                metric_filter=metric_filter,
                order_by=order_by,
                limit=limit,
            ))
            return await self.engine.run_report(request)

        return await self._guarded("analytics_report", property_id, call)

    async def realtime_data(
        self,
        property_id: str,
        dimensions: Optional[List[str]] = None,
        metrics: Optional[List[str]] = None,
        limit: int = DEFAULT_REALTIME_LIMIT,
    ) -> Dict[str, Any]:
        if _missing(property_id):
            return missing_property_error()

        async def call():
            request = build_realtime(property_id, dimensions, metrics, limit)
            return await self.engine.run_realtime_report(request)

        return await self._guarded("realtime_data", property_id, call)

    async def quick_insights(
        self,
        property_id: str,
        start_date: str,
        end_date: str,
        report_type: str,
        limit: int = DEFAULT_INSIGHT_LIMIT,
    ) -> Dict[str, Any]:
        if _missing(property_id):
            return missing_property_error()
        request = build_predefined(report_type, property_id, start_date, end_date, limit)
        if request is None:
            return invalid_choice_error("reportType", report_type, REPORT_TYPES, property_id)

        async def call():
            return await self.engine.run_report(request)

        return await self._guarded(f"quick_insights[{report_type}]", property_id, call)

    async def get_metadata(self, property_id: str, type: str = "both") -> Dict[str, Any]:
        if _missing(property_id):
            return missing_property_error()
        if type not in METADATA_TYPES:
            return invalid_choice_error("type", type, METADATA_TYPES, property_id)

        async def call():
            metadata = await self.engine.get_metadata(property_id)
            return select_metadata(metadata, type)

        return await self._guarded("get_metadata", property_id, call)

    async def search_metadata(
        self,
        property_id: str,
        query: str,
        type: str = "both",
        category: Optional[str] = None,
    ) -> Dict[str, Any]:
        if _missing(property_id):
            return missing_property_error()
        if type not in METADATA_TYPES:
            return invalid_choice_error("type", type, METADATA_TYPES, property_id)

        async def call():
            metadata = await self.engine.get_metadata(property_id)
            return search_metadata(metadata, query or "", type, category)

        return await self._guarded("search_metadata", property_id, call)
