"""
Tests for metadata projection and search.
"""

from ga4_mcp.metadata import matches, project_dimension, project_metric, search_metadata, select_metadata


def _api_names(entries):
    return [entry["apiName"] for entry in entries]


class TestProjection:
    def test_dimension_fields(self, catalog):
        projected = project_dimension(catalog["dimensions"][0])

        assert projected == {
            "apiName": "unifiedScreenName",
            "uiName": "Screen name",
            "description": "Page path of the session",
            "category": "PAGE",
            "customDefinition": False,
        }

    def test_metric_carries_type(self, catalog):
        projected = project_metric(catalog["metrics"][0])

        assert projected["type"] == "TYPE_INTEGER"
        assert "expression" not in projected

    def test_select_both(self, catalog):
        result = select_metadata(catalog)

        assert _api_names(result["dimensions"]) == ["unifiedScreenName", "country", "customEvent:plan"]
        assert _api_names(result["metrics"]) == ["screenPageViews", "activeUsers"]

    def test_select_one_kind(self, catalog):
        assert set(select_metadata(catalog, "dimensions")) == {"dimensions"}
        assert set(select_metadata(catalog, "metrics")) == {"metrics"}

    def test_missing_sections(self):
        assert select_metadata({}) == {"dimensions": [], "metrics": []}


class TestSearch:
    def test_matches_description_case_insensitively(self, catalog):
        entry = catalog["dimensions"][0]

        assert matches(entry, "page")
        assert matches(entry, "PAGE PATH")

    def test_matches_api_or_display_name(self, catalog):
        assert matches(catalog["metrics"][1], "activeusers")
        assert matches(catalog["metrics"][0], "views")

    def test_search_page(self, catalog):
        result = search_metadata(catalog, "page")

        assert _api_names(result["dimensions"]) == ["unifiedScreenName"]
        assert _api_names(result["metrics"]) == ["screenPageViews"]

    def test_category_must_also_match(self, catalog):
        result = search_metadata(catalog, "page", category="USER")

        assert result == {"dimensions": [], "metrics": []}

    def test_category_is_exact(self, catalog):
        assert search_metadata(catalog, "user", "metrics", category="user")["metrics"] == []
        assert _api_names(search_metadata(catalog, "user", "metrics", category="USER")["metrics"]) == ["activeUsers"]

    def test_search_single_kind(self, catalog):
        result = search_metadata(catalog, "plan", "dimensions")

        assert list(result) == ["dimensions"]
        assert result["dimensions"][0]["customDefinition"] is True

    def test_entries_with_missing_text_fields(self):
        catalog = {"dimensions": [{"apiName": "date", "uiName": None}], "metrics": []}

        assert _api_names(search_metadata(catalog, "date")["dimensions"]) == ["date"]
