"""Project and search the dimension/metric catalog of a property."""

from typing import Any, Dict, List, Mapping, Optional

METADATA_TYPES = ("dimensions", "metrics", "both")

_SEARCH_FIELDS = ("apiName", "uiName", "description")


def project_dimension(entry: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "apiName": entry.get("apiName"),
        "uiName": entry.get("uiName"),
        "description": entry.get("description"),
        "category": entry.get("category"),
        "customDefinition": entry.get("customDefinition"),
    }


def project_metric(entry: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "apiName": entry.get("apiName"),
        "uiName": entry.get("uiName"),
        "description": entry.get("description"),
        "type": entry.get("type"),
        "category": entry.get("category"),
        "customDefinition": entry.get("customDefinition"),
    }


def matches(entry: Mapping[str, Any], query: str, category: Optional[str] = None) -> bool:
    """Case-insensitive substring match on name or description, plus exact category."""
    term = query.lower()
    found = any(term in (entry.get(key) or "").lower() for key in _SEARCH_FIELDS)
    return found and (not category or entry.get("category") == category)


def _wants(kind: str, section: str) -> bool:
    return kind == section or kind == "both"


def select_metadata(metadata: Mapping[str, Any], kind: str = "both") -> Dict[str, List[Dict[str, Any]]]:
    result = {}
    if _wants(kind, "dimensions"):
        result["dimensions"] = [project_dimension(d) for d in metadata.get("dimensions") or []]
    if _wants(kind, "metrics"):
        result["metrics"] = [project_metric(m) for m in metadata.get("metrics") or []]
    return result


def search_metadata(metadata: Mapping[str, Any], query: str, kind: str = "both",
                    category: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
    result = {}
    if _wants(kind, "dimensions"):
        result["dimensions"] = [
            project_dimension(d) for d in metadata.get("dimensions") or [] if matches(d, query, category)
        ]
    if _wants(kind, "metrics"):
        result["metrics"] = [
            project_metric(m) for m in metadata.get("metrics") or [] if matches(m, query, category)
        ]
    return result
