"""
Generation request and result types.

No torch or transformers imports here: the extractor and the test fakes
type against these without pulling in a model stack.
"""

from dataclasses import dataclass
from typing import Literal, Protocol


def chat_turns(prompt: str, system_prompt: str | None = None) -> list[dict[str, str]]:
    """Role/content dicts in the shape tokenizer chat templates expect."""
    turns = [{"role": "system", "content": system_prompt}] if system_prompt else []
    turns.append({"role": "user", "content": prompt})
    return turns


@dataclass(frozen=True)
class GenerationConfig:
    """
    Decoding parameters for one extraction call.

    Extraction wants repeatable JSON, so decoding is greedy unless a
    positive temperature is given.
    """

    max_new_tokens: int = 1024
    temperature: float = 0.0
    top_p: float = 0.9
    repetition_penalty: float = 1.1

    @property
    def sampling(self) -> bool:
        return self.temperature > 0

    def to_generate_kwargs(self) -> dict:
        kwargs = {
            "max_new_tokens": self.max_new_tokens,
            "do_sample": self.sampling,
            "repetition_penalty": self.repetition_penalty,
        }
        if self.sampling:
            kwargs.update(temperature=self.temperature, top_p=self.top_p)
        return kwargs


@dataclass
class GenerationResult:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    finish_reason: Literal["stop", "length"] = "stop"
    model_name: str = ""

    @property
    def truncated(self) -> bool:
        """True when generation hit max_new_tokens, which usually means cut-off JSON."""
        return self.finish_reason == "length"


class TextGenerator(Protocol):
    """Blocking prompt-to-text backend used by LLMStructuredExtractor."""

    def generate(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        system_prompt: str | None = None,
    ) -> GenerationResult: ...
