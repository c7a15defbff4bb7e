"""
Prompt templates for regulation extraction.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class PromptTemplate:
    """
    A reusable prompt template with variable substitution.

    Example:
        >>> template = PromptTemplate(
        ...     name="summarize",
        ...     system="You are a helpful assistant.",
        ...     user="Summarize this text:\\n\\n{text}",
        ... )
        >>> template.format_user(text="Long notice here...")
    """

    name: str
    system: str
    user: str

    def format(self, **kwargs: Any) -> dict[str, str]:
        return {
            "system": self.system.format(**kwargs) if kwargs else self.system,
            "user": self.user.format(**kwargs) if kwargs else self.user,
        }

    def format_user(self, **kwargs: Any) -> str:
        return self.user.format(**kwargs) if kwargs else self.user


class RegulationPrompts:
    """Prompts used to turn regulator pages into structured records."""

    EXTRACT_REGULATION = PromptTemplate(
        name="extract_regulation",
        system=(
            "You are an expert at extracting structured regulatory information "
            "from legal documents. Extract the key information from the provided "
            "regulatory text. If information is not available, use reasonable "
            "defaults or omit optional fields. Respond with a single JSON object "
            "and nothing else."
        ),
        user=(
            "Extract regulatory information from this document.\n\n"
            "URL: {url}\n"
            "Title: {title}\n\n"
            "Return JSON with these keys:\n"
            '- "title": string\n'
            '- "summary": concise summary of the regulation\n'
            '- "effective_date": when the regulation takes effect (YYYY-MM-DD), optional\n'
            '- "jurisdiction": one of {jurisdictions}\n'
            '- "affected_industries": list drawn from {industries}\n'
            '- "category": one of {categories}\n'
            '- "priority": one of {priorities}\n'
            '- "key_requirements": list of main compliance requirements\n'
            '- "last_updated": date the document was last updated, optional\n\n'
            "Content:\n{content}\n\n"
            "JSON:"
        ),
    )
