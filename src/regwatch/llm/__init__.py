"""
LLM support for structured extraction.

The transformers-backed model lives in ``regwatch.llm.local_llm`` and is
imported on demand so that torch only loads when extraction is enabled.
"""

from regwatch.llm.messages import (
    GenerationConfig,
    GenerationResult,
    TextGenerator,
    chat_turns,
)
from regwatch.llm.prompts import PromptTemplate, RegulationPrompts

__all__ = [
    "GenerationConfig",
    "GenerationResult",
    "TextGenerator",
    "chat_turns",
    "PromptTemplate",
    "RegulationPrompts",
]
