import argparse
import json
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Annotated, Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastmcp import Client, FastMCP
from pydantic import Field

from . import __version__
from .auth import CredentialError, build_provider
from .config import Settings, setup_logging
from .engine import AnalyticsEngine
from .metadata import METADATA_TYPES
from .reports import (
    DEFAULT_INSIGHT_LIMIT,
    DEFAULT_REALTIME_LIMIT,
    DEFAULT_REPORT_LIMIT,
    REPORT_TYPES,
    OrderDirective,
)
from .service import AnalyticsService

logger = logging.getLogger(__name__)

SERVER_NAME = "Google Analytics 4"
PROTOCOL_VERSION = "2024-11-05"

PropertyId = Annotated[
    str, Field(description="Google Analytics property ID (e.g., 123456789). Required for all queries.")
]
StartDate = Annotated[str, Field(description="Start date (YYYY-MM-DD)")]
EndDate = Annotated[str, Field(description="End date (YYYY-MM-DD)")]
MetadataType = Annotated[
    str, Field(description=f"Type of metadata: one of {', '.join(METADATA_TYPES)} (default both)")
]

@asynccontextmanager
async def service_lifespan(server: FastMCP):
    """Build credentials before serving so a bad credential setup aborts startup."""
    if ANALYTICS_SERVICE is None:
        init_service(Settings.from_env())
    yield


mcp = FastMCP(SERVER_NAME, lifespan=service_lifespan)

# Created once at startup; every tool call shares it
ANALYTICS_SERVICE: Optional[AnalyticsService] = None


def init_service(settings: Settings) -> AnalyticsService:
    """Select the credential strategy and build the service. Raises CredentialError."""
    global ANALYTICS_SERVICE
    provider = build_provider(settings)
    ANALYTICS_SERVICE = AnalyticsService(AnalyticsEngine(provider.acquire()))
    logger.info(f"Analytics service ready ({provider.mode} credentials)")
    return ANALYTICS_SERVICE


def set_service(service: Optional[AnalyticsService]) -> None:
    global ANALYTICS_SERVICE
    ANALYTICS_SERVICE = service


def get_service() -> AnalyticsService:
    if ANALYTICS_SERVICE is None:
        return init_service(Settings.from_env())
    return ANALYTICS_SERVICE


def _render(result: Dict[str, Any]) -> str:
    return json.dumps(result, indent=2)


# Tools; parameter names are the camelCase ones MCP clients send


@mcp.tool()
async def analytics_report(
    propertyId: PropertyId,
    startDate: StartDate,
    endDate: EndDate,
    metrics: Annotated[List[str], Field(description="Metrics to query (e.g., activeUsers, sessions, screenPageViews)")],
    dimensions: Annotated[
        Optional[List[str]], Field(description="Dimensions to query (e.g., country, pagePath, sessionSource)")
    ] = None,
    dimensionFilter: Annotated[
        Optional[Dict[str, Any]], Field(description="Filter by dimension values (GA4 FilterExpression JSON)")
    ] = None,
    metricFilter: Annotated[
        Optional[Dict[str, Any]], Field(description="Filter by metric values (GA4 FilterExpression JSON)")
    ] = None,
    orderBy: Annotated[Optional[OrderDirective], Field(description="Sort results by dimension or metric")] = None,
    limit: Annotated[int, Field(description="Limit number of results")] = DEFAULT_REPORT_LIMIT,
) -> str:
    """Get comprehensive Google Analytics data with custom dimensions and metrics. Can create any type of report."""
    result = await get_service().analytics_report(
        propertyId,
        startDate,
        endDate,
        metrics,
        dimensions=dimensions,
        dimension_filter=dimensionFilter,
        metric_filter=metricFilter,
        order_by=orderBy,
        limit=limit,
    )
    return _render(result)


@mcp.tool()
async def realtime_data(
    propertyId: PropertyId,
    dimensions: Annotated[
        Optional[List[str]], Field(description="Dimensions for real-time data (e.g., country, city, pagePath)")
    ] = None,
    metrics: Annotated[Optional[List[str]], Field(description="Real-time metrics (default: activeUsers)")] = None,
    limit: Annotated[int, Field(description="Limit number of results")] = DEFAULT_REALTIME_LIMIT,
) -> str:
    """Get real-time analytics data for current active users and activity."""
    result = await get_service().realtime_data(propertyId, dimensions=dimensions, metrics=metrics, limit=limit)
    return _render(result)


@mcp.tool()
async def quick_insights(
    propertyId: PropertyId,
    startDate: StartDate,
    endDate: EndDate,
    reportType: Annotated[str, Field(description=f"Type of quick insight report: one of {', '.join(REPORT_TYPES)}")],
    limit: Annotated[int, Field(description="Limit number of results")] = DEFAULT_INSIGHT_LIMIT,
) -> str:
    """Get predefined analytics insights for common use cases."""
    result = await get_service().quick_insights(propertyId, startDate, endDate, reportType, limit=limit)
    return _render(result)


@mcp.tool()
async def get_metadata(propertyId: PropertyId, type: MetadataType = "both") -> str:
    """Get available dimensions and metrics for a Google Analytics property."""
    result = await get_service().get_metadata(propertyId, type=type)
    return _render(result)


@mcp.tool()
async def search_metadata(
    propertyId: PropertyId,
    query: Annotated[str, Field(description="Search term to find dimensions/metrics")],
    type: MetadataType = "both",
    category: Annotated[
        Optional[str], Field(description='Filter by category (e.g., "USER", "SESSION", "PAGE", "EVENT")')
    ] = None,
) -> str:
    """Search for specific dimensions or metrics by name, description or category."""
    result = await get_service().search_metadata(propertyId, query, type=type, category=category)
    return _render(result)


# HTTP transport

app = FastAPI(title="GA4 MCP Server", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _rpc_error(code: int, message: str, msg_id: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": msg_id}


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "GA4 MCP Server is running", "status": "ok", "version": __version__}


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": time.time()}


@app.post("/")
async def mcp_endpoint(request: Request):
    """JSON-RPC endpoint; tool calls are served by the in-process FastMCP server."""
    start_time = time.time()

    try:
        data = await request.json()
        method = data.get("method")
        params = data.get("params") or {}
        msg_id = data.get("id", "unknown")

        logger.info(f"MCP Request: {method} (ID: {msg_id})")

        if method == "initialize":
            return {
                "jsonrpc": "2.0",
                "result": {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {"tools": {"listChanged": True}},
                    "serverInfo": {"name": SERVER_NAME, "version": __version__},
                },
                "id": msg_id,
            }

        elif method == "tools/list":
            async with Client(mcp) as client:
                tools = await client.list_tools()
            listed = [
                {"name": tool.name, "description": tool.description, "inputSchema": tool.inputSchema}
                for tool in tools
            ]
            logger.info(f"Tools/list completed in {time.time() - start_time:.2f}s")
            return {"jsonrpc": "2.0", "result": {"tools": listed}, "id": msg_id}

        elif method == "tools/call":
            tool_name = params.get("name")
            tool_args = params.get("arguments") or {}

            logger.info(f"Calling tool: {tool_name}")

            async with Client(mcp) as client:
                known = {tool.name for tool in await client.list_tools()}
                if tool_name not in known:
                    return _rpc_error(-32601, f"Unknown tool: {tool_name}", msg_id)
                result = await client.call_tool_mcp(tool_name, tool_args)

            logger.info(f"Tool {tool_name} completed in {time.time() - start_time:.2f}s")
            return {
                "jsonrpc": "2.0",
                "result": result.model_dump(mode="json", by_alias=True, exclude_none=True),
                "id": msg_id,
            }

        else:
            return _rpc_error(-32601, f"Unknown method: {method}", msg_id)

    except Exception as e:
        logger.error(f"Request error: {e}")
        return _rpc_error(-32000, f"Request error: {str(e)}", "error")


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="GA4 MCP Server")
    parser.add_argument("--transport", choices=["stdio", "http"], default="stdio")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings.log_level)

    try:
        init_service(settings)
    except CredentialError as e:
        logger.error(f"Unable to setup Google credentials: {e}")
        sys.exit(1)

    if args.transport == "stdio":
        logger.info("Starting GA4 MCP server with stdio transport...")
        mcp.run(transport="stdio")
    else:
        logger.info(f"Starting GA4 MCP server on {args.host}:{args.port}...")
        uvicorn.run(
            app,
            host=args.host,
            port=args.port,
            timeout_keep_alive=60,
            timeout_graceful_shutdown=30,
            access_log=False,
            log_level=settings.log_level.lower(),
        )


if __name__ == "__main__":
    main()
