"""Build GA4 Data API requests from the tool parameter surface."""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from google.analytics.data_v1beta.types import (
    DateRange,
    Dimension,
    Filter,
    FilterExpression,
    Metric,
    OrderBy,
    RunRealtimeReportRequest,
    RunReportRequest,
)
from pydantic import BaseModel, Field

DEFAULT_REPORT_LIMIT = 100
DEFAULT_REALTIME_LIMIT = 50
DEFAULT_INSIGHT_LIMIT = 20
DEFAULT_REALTIME_METRICS = ("activeUsers",)


class OrderDirective(BaseModel):
    """Sort by a single dimension or metric. ``metric`` wins when both are set."""

    dimension: Optional[str] = Field(default=None, description="Dimension name to sort by")
    metric: Optional[str] = Field(default=None, description="Metric name to sort by")
    desc: bool = Field(default=True, description="Sort descending (default true)")


@dataclass
class ReportSpec:
    property_id: str
    start_date: str
    end_date: str
    metrics: List[str]
    dimensions: List[str] = field(default_factory=list)
    dimension_filter: Optional[Dict[str, Any]] = None
    metric_filter: Optional[Dict[str, Any]] = None
    order_by: Optional[OrderDirective] = None
    limit: int = DEFAULT_REPORT_LIMIT


@dataclass(frozen=True)
class ReportTemplate:
    dimensions: Tuple[str, ...]
    metrics: Tuple[str, ...]
    dimension_filter: Optional[FilterExpression] = None
    order_by_metric: Optional[str] = None


def _string_filter(field_name: str, match_type: Filter.StringFilter.MatchType, value: str) -> FilterExpression:
    return FilterExpression(
        filter=Filter(
            field_name=field_name,
            string_filter=Filter.StringFilter(match_type=match_type, value=value),
        )
    )


PREDEFINED_REPORTS: Mapping[str, ReportTemplate] = MappingProxyType({
    "overview": ReportTemplate(
        dimensions=("date",),
        metrics=("activeUsers", "sessions", "screenPageViews", "bounceRate", "averageSessionDuration"),
    ),
    "top_pages": ReportTemplate(
        dimensions=("pagePath", "pageTitle"),
        metrics=("screenPageViews", "activeUsers", "bounceRate"),
        order_by_metric="screenPageViews",
    ),
    "traffic_sources": ReportTemplate(
        dimensions=("sessionDefaultChannelGroup", "sessionSource", "sessionMedium"),
        metrics=("sessions", "activeUsers", "newUsers", "bounceRate"),
        order_by_metric="sessions",
    ),
    "geographic": ReportTemplate(
        dimensions=("country", "region", "city"),
        metrics=("activeUsers", "sessions", "newUsers", "bounceRate"),
        order_by_metric="activeUsers",
    ),
    "user_demographics": ReportTemplate(
        dimensions=("userAgeBracket", "userGender", "country"),
        metrics=("activeUsers", "sessions", "averageSessionDuration", "bounceRate"),
    ),
    "conversions": ReportTemplate(
        dimensions=("eventName", "sessionDefaultChannelGroup"),
        metrics=("conversions", "eventCount", "eventValue"),
        dimension_filter=_string_filter("eventName", Filter.StringFilter.MatchType.CONTAINS, "conversion"),
    ),
    "us_states": ReportTemplate(
        dimensions=("region", "city"),
        metrics=("activeUsers", "sessions", "newUsers"),
        dimension_filter=_string_filter("country", Filter.StringFilter.MatchType.EXACT, "United States"),
        order_by_metric="activeUsers",
    ),
    "engagement_metrics": ReportTemplate(
        dimensions=("date",),
        metrics=(
            "bounceRate",
            "engagementRate",
            "engagedSessions",
            "averageSessionDuration",
            "screenPageViewsPerSession",
            "userEngagementDuration",
        ),
    ),
    "ecommerce_overview": ReportTemplate(
        dimensions=("date",),
        metrics=(
            "totalRevenue",
            "transactions",
            "averagePurchaseRevenue",
            "itemRevenue",
            "addToCarts",
            "checkouts",
            "ecommercePurchases",
        ),
    ),
    "device_technology": ReportTemplate(
        dimensions=("deviceCategory", "operatingSystem", "browser"),
        metrics=("activeUsers", "sessions", "bounceRate", "averageSessionDuration"),
        order_by_metric="activeUsers",
    ),
})

REPORT_TYPES = tuple(PREDEFINED_REPORTS)


def property_resource(property_id: Any) -> str:
    """Return ``properties/<id>`` for ``123``, ``"123"`` or ``"properties/123"``."""
    value = str(property_id).strip()
    if value.startswith("properties/"):
        return value
    return f"properties/{value}"


def _dimensions(names) -> List[Dimension]:
    return [Dimension(name=name) for name in names]


def _metrics(names) -> List[Metric]:
    return [Metric(name=name) for name in names]


def _filter_expression(predicate: Optional[Mapping[str, Any]]) -> Optional[FilterExpression]:
    # Opaque predicate in the Data API JSON form; the API validates semantics
    if not predicate:
        return None
    return FilterExpression.from_json(json.dumps(predicate))


def build_order_by(directive: Optional[OrderDirective]) -> List[OrderBy]:
    if directive is None:
        return []
    if directive.metric:
        return [OrderBy(metric=OrderBy.MetricOrderBy(metric_name=directive.metric), desc=directive.desc)]
    if directive.dimension:
        return [OrderBy(dimension=OrderBy.DimensionOrderBy(dimension_name=directive.dimension), desc=directive.desc)]
    return []


def build_report(spec: ReportSpec) -> RunReportRequest:
    request = RunReportRequest(
        property=property_resource(spec.property_id),
        date_ranges=[DateRange(start_date=spec.start_date, end_date=spec.end_date)],
        dimensions=_dimensions(spec.dimensions or []),
        metrics=_metrics(spec.metrics),
        limit=spec.limit,
    )

    dimension_filter = _filter_expression(spec.dimension_filter)
    if dimension_filter is not None:
        request.dimension_filter = dimension_filter

    metric_filter = _filter_expression(spec.metric_filter)
    if metric_filter is not None:
        request.metric_filter = metric_filter

    order_bys = build_order_by(spec.order_by)
    if order_bys:
        request.order_bys = order_bys

    return request


def build_predefined(name: str, property_id: str, start_date: str, end_date: str,
                     limit: int = DEFAULT_INSIGHT_LIMIT) -> Optional[RunReportRequest]:
    """Build one of the canned reports, or return None for an unknown name."""
    template = PREDEFINED_REPORTS.get(name)
    if template is None:
        return None

    request = RunReportRequest(
        property=property_resource(property_id),
        date_ranges=[DateRange(start_date=start_date, end_date=end_date)],
        dimensions=_dimensions(template.dimensions),
        metrics=_metrics(template.metrics),
        limit=limit,
    )
    if template.dimension_filter is not None:
        request.dimension_filter = template.dimension_filter
    if template.order_by_metric:
        request.order_bys = build_order_by(OrderDirective(metric=template.order_by_metric))
    return request


def build_realtime(property_id: str, dimensions: Optional[List[str]] = None,
                   metrics: Optional[List[str]] = None,
                   limit: int = DEFAULT_REALTIME_LIMIT) -> RunRealtimeReportRequest:
    return RunRealtimeReportRequest(
        property=property_resource(property_id),
        dimensions=_dimensions(dimensions or []),
        metrics=_metrics(metrics or DEFAULT_REALTIME_METRICS),
        limit=limit,
    )
