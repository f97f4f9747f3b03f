"""스키마 검증 테스트"""
from datetime import datetime

import pytest
from pydantic import ValidationError

from eventvista.schemas import (
    EventOut,
    JobStatusResponse,
    ScrapedEvent,
    SearchFilters,
    SearchRequest,
)


class TestSearchFilters:
    def test_all_means_no_filter(self):
        filters = SearchFilters(city="all", event_type="ALL", price=" ", date=None)
        assert filters.city is None
        assert filters.event_type is None
        assert filters.price is None

    def test_platforms_from_comma_string(self):
        filters = SearchFilters(platforms="Luma, eventbrite,,")
        assert filters.platforms == ["luma", "eventbrite"]

    def test_empty_platforms_become_none(self):
        assert SearchFilters(platforms="").platforms is None

    def test_camel_case_input(self):
        request = SearchRequest.model_validate({"query": "react", "eventType": "workshop"})
        assert request.event_type == "workshop"

    def test_fingerprint_params_include_unset_keys(self):
        params = SearchFilters(city="Oakland").fingerprint_params()
        assert params == {
            "city": "Oakland",
            "eventType": None,
            "price": None,
            "date": None,
            "platforms": None,
        }


class TestEventSchemas:
    def test_scraped_event_requires_source(self):
        with pytest.raises(ValidationError):
            ScrapedEvent(title="x", event_date=datetime(2030, 1, 1), source_platform="", source_id="1")

    def test_event_out_serializes_camel_case(self, make_event):
        event = make_event(title="React Summit", tech_stack=[])
        data = EventOut.model_validate(event).model_dump(mode="json", by_alias=True)
        assert data["title"] == "React Summit"
        assert data["techStack"] == []
        assert "sourcePlatform" in data
        assert "qualityScore" in data


class TestJobStatusResponse:
    def test_optional_fields_omitted(self):
        body = JobStatusResponse(success=True, status="running", job_id="search-1-abcd")
        data = body.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert data == {"success": True, "status": "running", "jobId": "search-1-abcd"}
