"""MCP server exposing Google Analytics 4 reports, realtime data and metadata."""

__version__ = "1.0.0"
