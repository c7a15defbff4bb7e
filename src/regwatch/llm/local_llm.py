"""
In-process causal language model for structured extraction.

Weights are fetched and loaded on the first generate() call, so a drain
run with processing disabled never touches them.
"""

import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

from regwatch.core.exceptions import InferenceError, ModelLoadError
from regwatch.llm.messages import GenerationConfig, GenerationResult, chat_turns
from regwatch.utils.logging import get_logger
from regwatch.utils.metrics import Metrics

if TYPE_CHECKING:
    from regwatch.config.settings import Settings

logger = get_logger(__name__)

_DTYPES = {
    "float32": torch.float32,
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
}


class LocalLLM:
    """
    Transformers model behind the TextGenerator protocol.

    generate() blocks for the whole decode; the extractor calls it
    through asyncio.to_thread().

    Example:
        >>> llm = LocalLLM.from_settings(get_settings())
        >>> llm.generate(page_text, system_prompt=RegulationPrompts.SYSTEM).text
        '{"title": "Safeguards Rule", ...}'
    """

    def __init__(
        self,
        model_name: str = "Qwen/Qwen2.5-1.5B-Instruct",
        device: str = "cpu",
        torch_dtype: str = "float32",
        cache_dir: Path | None = None,
        default_config: GenerationConfig | None = None,
    ) -> None:
        if torch_dtype not in _DTYPES:
            raise ModelLoadError(f"Unsupported torch dtype {torch_dtype!r}", model_name=model_name)
        self.model_name = model_name
        self.device = device
        self.dtype = _DTYPES[torch_dtype]
        self.cache_dir = cache_dir
        self.default_config = default_config or GenerationConfig()

        self._tokenizer = None
        self._model = None
        self._load_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "LocalLLM":
        cfg = settings.local_llm
        return cls(
            model_name=cfg.model_name,
            device=cfg.device,
            torch_dtype=cfg.torch_dtype,
            cache_dir=cfg.cache_dir,
            default_config=GenerationConfig(
                max_new_tokens=cfg.max_new_tokens,
                temperature=cfg.temperature,
            ),
        )

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def _ensure_loaded(self) -> None:
        with self._load_lock:
            if self._model is not None:
                return

            started = time.perf_counter()
            cache_dir = str(self.cache_dir) if self.cache_dir else None
            try:
                tokenizer = AutoTokenizer.from_pretrained(self.model_name, cache_dir=cache_dir)
                model = AutoModelForCausalLM.from_pretrained(
                    self.model_name,
                    torch_dtype=self.dtype,
                    low_cpu_mem_usage=True,
                    cache_dir=cache_dir,
                )
            except Exception as e:
                raise ModelLoadError(
                    f"Could not load {self.model_name}",
                    model_name=self.model_name,
                    details={"error": str(e)},
                ) from e

            if tokenizer.pad_token is None:
                tokenizer.pad_token = tokenizer.eos_token
            self._tokenizer = tokenizer
            self._model = model.to(self.device).eval()
            logger.info(
                f"Loaded {self.model_name} on {self.device} "
                f"in {time.perf_counter() - started:.1f}s"
            )

    def _encode(self, prompt: str, system_prompt: str | None) -> dict:
        rendered = self._tokenizer.apply_chat_template(
            chat_turns(prompt, system_prompt),
            tokenize=False,
            add_generation_prompt=True,
        )
        encoded = self._tokenizer(rendered, return_tensors="pt", truncation=True)
        return {name: tensor.to(self.device) for name, tensor in encoded.items()}

    def generate(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        system_prompt: str | None = None,
    ) -> GenerationResult:
        """
        Complete ``prompt`` after an optional system turn.

        Raises:
            ModelLoadError: If the weights cannot be loaded
            InferenceError: If decoding fails
        """
        self._ensure_loaded()
        config = config or self.default_config
        metrics = Metrics.get()
        started = time.perf_counter()

        try:
            inputs = self._encode(prompt, system_prompt)
            prompt_tokens = int(inputs["input_ids"].shape[1])
            with torch.inference_mode():
                output = self._model.generate(
                    **inputs,
                    **config.to_generate_kwargs(),
                    pad_token_id=self._tokenizer.pad_token_id,
                    eos_token_id=self._tokenizer.eos_token_id,
                )
        except Exception as e:
            metrics.increment("llm_errors")
            raise InferenceError(
                f"Generation with {self.model_name} failed",
                details={"error": str(e)},
            ) from e

        generated = output[0, prompt_tokens:]
        metrics.increment("llm_calls")
        metrics.observe("llm_latency_ms", (time.perf_counter() - started) * 1000)
        return GenerationResult(
            text=self._tokenizer.decode(generated, skip_special_tokens=True).strip(),
            prompt_tokens=prompt_tokens,
            completion_tokens=len(generated),
            finish_reason="length" if len(generated) >= config.max_new_tokens else "stop",
            model_name=self.model_name,
        )

    def __repr__(self) -> str:
        state = "loaded" if self.is_loaded else "lazy"
        return f"LocalLLM({self.model_name!r}, device={self.device!r}, {state})"
