"""
Structured regulation extraction.

Defines the RegulatoryDocument record, the StructuredExtractor protocol
the pipeline depends on, and an implementation that prompts a local LLM
for JSON and validates it.
"""

import asyncio
import json
import re
from typing import Literal, Protocol, get_args

from pydantic import BaseModel, Field, ValidationError, field_validator

from regwatch.core.exceptions import LLMError, StructuredExtractionError
from regwatch.llm.messages import GenerationConfig, TextGenerator
from regwatch.llm.prompts import RegulationPrompts
from regwatch.utils.logging import get_logger
from regwatch.utils.metrics import time_extraction

logger = get_logger(__name__)

Jurisdiction = Literal["US", "EU", "UK", "Canada", "International"]
Industry = Literal[
    "fintech", "healthtech", "energy", "general", "technology", "manufacturing", "retail"
]
Category = Literal["financial", "privacy", "healthcare", "environmental", "general"]
Priority = Literal["critical", "high", "medium", "low"]

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class RegulatoryDocument(BaseModel):
    """Structured description of one regulation."""

    title: str = Field(min_length=1)
    summary: str = Field(description="A concise summary of the regulation")
    effective_date: str | None = Field(
        default=None, description="When the regulation takes effect"
    )
    jurisdiction: Jurisdiction
    affected_industries: list[Industry] = Field(
        description="Industries affected by this regulation"
    )
    category: Category
    priority: Priority
    key_requirements: list[str] = Field(description="Main compliance requirements")
    source_url: str
    last_updated: str | None = None

    @field_validator("effective_date", "last_updated", mode="before")
    @classmethod
    def blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class StructuredExtractor(Protocol):
    """Turns cleaned page text into a RegulatoryDocument."""

    async def extract(
        self, text: str, url: str, title: str | None = None
    ) -> RegulatoryDocument: ...


def _parse_json_object(text: str) -> dict:
    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        raise ValueError("no JSON object in model output")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("model output is not a JSON object")
    return data


class LLMStructuredExtractor:
    """
    StructuredExtractor backed by a local text generator.

    The blocking generate() call runs in a worker thread.

    Example:
        >>> from regwatch.llm.local_llm import LocalLLM
        >>> extractor = LLMStructuredExtractor(LocalLLM.from_settings(settings))
        >>> doc = await extractor.extract(text, url, title)
    """

    def __init__(
        self,
        llm: TextGenerator,
        config: GenerationConfig | None = None,
    ) -> None:
        self._llm = llm
        self._config = config

    def build_prompt(self, text: str, url: str, title: str | None) -> dict[str, str]:
        return RegulationPrompts.EXTRACT_REGULATION.format(
            url=url,
            title=title or "Unknown",
            content=text,
            jurisdictions=", ".join(get_args(Jurisdiction)),
            industries=", ".join(get_args(Industry)),
            categories=", ".join(get_args(Category)),
            priorities=", ".join(get_args(Priority)),
        )

    async def extract(
        self, text: str, url: str, title: str | None = None
    ) -> RegulatoryDocument:
        """
        Extract a regulation record from cleaned text.

        Raises:
            StructuredExtractionError: If generation fails or the output does
                not validate
        """
        prompt = self.build_prompt(text, url, title)

        try:
            with time_extraction():
                result = await asyncio.to_thread(
                    self._llm.generate,
                    prompt["user"],
                    self._config,
                    prompt["system"],
                )
        except LLMError as e:
            raise StructuredExtractionError(
                f"Extraction model failed: {e.message}", url=url
            ) from e

        try:
            data = _parse_json_object(result.text)
            # The source URL is always the fetched one, whatever the model says.
            data["source_url"] = url
            document = RegulatoryDocument.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Malformed extraction output for {url}: {e}")
            raise StructuredExtractionError(
                "Extraction output did not match the regulation schema",
                url=url,
                details={"error": str(e)[:500]},
            ) from e

        logger.debug(f"Extracted regulation {document.title!r} from {url}")
        return document
