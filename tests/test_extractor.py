"""
Tests for structured regulation extraction.
"""

import json

import pytest
from pydantic import ValidationError

from regwatch.core.exceptions import InferenceError, StructuredExtractionError
from regwatch.processing import LLMStructuredExtractor, RegulatoryDocument
from regwatch.utils.metrics import Metrics
from tests.fakes import FakeLLM, make_document

URL = "https://www.ftc.gov/rules/breach"


def _payload(**overrides) -> str:
    data = make_document().model_dump()
    data.update(overrides)
    return json.dumps(data)


class TestRegulatoryDocument:
    """Tests for the RegulatoryDocument model."""

    def test_valid(self):
        doc = make_document()

        assert doc.jurisdiction == "US"
        assert doc.affected_industries == ["fintech", "technology"]

    def test_blank_dates_become_none(self):
        doc = make_document(effective_date="  ", last_updated="")

        assert doc.effective_date is None
        assert doc.last_updated is None

    @pytest.mark.parametrize(
        "field, value",
        [
            ("jurisdiction", "Mars"),
            ("category", "sports"),
            ("priority", "urgent"),
            ("affected_industries", ["fintech", "aerospace"]),
            ("title", ""),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            make_document(**{field: value})

    def test_required_fields(self):
        with pytest.raises(ValidationError):
            RegulatoryDocument(title="Only a title", source_url=URL)


class TestLLMStructuredExtractor:
    """Tests for LLMStructuredExtractor."""

    @pytest.mark.asyncio
    async def test_parses_json(self):
        llm = FakeLLM(response=_payload())

        doc = await LLMStructuredExtractor(llm).extract("text", URL, "Breach Rule")

        assert doc.title == "Data Breach Notification Rule"
        assert doc.priority == "high"
        assert Metrics.get().get_counter("extraction_calls") == 1

    @pytest.mark.asyncio
    async def test_json_wrapped_in_prose(self):
        llm = FakeLLM(response=f"Here is the record:\n```json\n{_payload()}\n```\nDone.")

        doc = await LLMStructuredExtractor(llm).extract("text", URL)

        assert doc.category == "privacy"

    @pytest.mark.asyncio
    async def test_source_url_forced(self):
        llm = FakeLLM(response=_payload(source_url="https://elsewhere.example"))

        doc = await LLMStructuredExtractor(llm).extract("text", URL)

        assert doc.source_url == URL

    @pytest.mark.asyncio
    async def test_prompt_contents(self):
        llm = FakeLLM(response=_payload())

        await LLMStructuredExtractor(llm).extract("Notice body text", URL, "Breach Rule")

        prompt, system = llm.prompts[0]
        assert "Notice body text" in prompt
        assert URL in prompt
        assert "Breach Rule" in prompt
        assert "healthtech" in prompt
        assert system

    @pytest.mark.asyncio
    async def test_missing_title_uses_placeholder(self):
        llm = FakeLLM(response=_payload())

        await LLMStructuredExtractor(llm).extract("text", URL, None)

        assert "Unknown" in llm.prompts[0][0]

    @pytest.mark.asyncio
    async def test_no_json(self):
        llm = FakeLLM(response="I cannot help with that.")

        with pytest.raises(StructuredExtractionError) as exc_info:
            await LLMStructuredExtractor(llm).extract("text", URL)

        assert exc_info.value.url == URL

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        llm = FakeLLM(response='{"title": "Rule", "summary": ')

        with pytest.raises(StructuredExtractionError):
            await LLMStructuredExtractor(llm).extract("text", URL)

    @pytest.mark.asyncio
    async def test_schema_violation(self):
        llm = FakeLLM(response=_payload(priority="whenever"))

        with pytest.raises(StructuredExtractionError):
            await LLMStructuredExtractor(llm).extract("text", URL)

    @pytest.mark.asyncio
    async def test_model_failure_wrapped(self):
        llm = FakeLLM(error=InferenceError("CUDA out of memory"))

        with pytest.raises(StructuredExtractionError) as exc_info:
            await LLMStructuredExtractor(llm).extract("text", URL)

        assert isinstance(exc_info.value.__cause__, InferenceError)
