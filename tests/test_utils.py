"""
Tests for metrics, logging helpers, vector helpers and generation types.
"""

import logging
from pathlib import Path

import numpy as np
import pytest

from regwatch.config.loader import _parse_env_value
from regwatch.config.settings import LoggingSettings
from regwatch.embeddings import EmbeddingResult, cosine_similarities, to_vector
from regwatch.llm import GenerationConfig, GenerationResult, chat_turns
from regwatch.utils.logging import (
    ROOT_LOGGER_NAME,
    get_logger,
    get_logger_with_context,
    setup_logging,
)
from regwatch.utils.metrics import Metrics, TimingStats, record_job_outcome, time_search


class TestMetrics:
    """Tests for the Metrics registry."""

    def test_counters(self):
        metrics = Metrics.get()

        assert metrics.increment("pages_fetched") == 1
        assert metrics.increment("pages_fetched", 2) == 3
        assert metrics.get_counter("pages_fetched") == 3
        assert metrics.get_counter("never_seen") == 0

    def test_reset_starts_fresh(self):
        Metrics.get().increment("fetch_errors")

        Metrics.reset()

        assert Metrics.get().get_counter("fetch_errors") == 0

    def test_timing_stats(self):
        metrics = Metrics.get()
        for value in (30.0, 10.0, 20.0):
            metrics.observe("search_latency_ms", value)

        stats = metrics.get_timing("search_latency_ms")

        assert stats.count == 3
        assert (stats.min_ms, stats.max_ms) == (10.0, 30.0)
        assert stats.avg_ms == pytest.approx(20.0)

    def test_get_timing_returns_copy(self):
        metrics = Metrics.get()
        metrics.observe("x", 5.0)

        metrics.get_timing("x").add(100.0)

        assert metrics.get_timing("x").count == 1
        assert metrics.get_timing("missing") is None

    def test_empty_stats(self):
        assert TimingStats().to_dict()["avg_ms"] == 0.0

    def test_helpers_and_summary(self):
        record_job_outcome("retried")
        with time_search():
            pass

        summary = Metrics.get().summary()

        assert "jobs_retried" in summary
        assert "search_latency_ms" in summary
        assert Metrics.get().snapshot()["counters"] == {"jobs_retried": 1}

    def test_summary_when_empty(self):
        assert Metrics.get().summary() == "No metrics recorded"


class TestLogging:
    """Tests for logger naming and handler setup."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            (None, "regwatch"),
            ("regwatch", "regwatch"),
            ("regwatch.scheduler.jobs", "regwatch.scheduler.jobs"),
            ("tests.helpers", "regwatch.tests.helpers"),
        ],
    )
    def test_logger_names(self, name, expected):
        assert get_logger(name).name == expected

    def test_context_suffix(self):
        log = get_logger_with_context("regwatch.pipeline", job_id="j1", url="https://a.gov")

        message, _ = log.process("Job started", {})

        assert message == "Job started [job_id=j1] [url=https://a.gov]"

    def test_file_handler(self, temp_dir: Path):
        log_file = temp_dir / "logs" / "regwatch.log"
        app_logger = setup_logging(
            LoggingSettings(level="DEBUG", file_path=log_file, log_to_console=False)
        )

        get_logger("regwatch.test").debug("robots cache miss")
        for handler in app_logger.handlers:
            handler.flush()

        assert app_logger.propagate is False
        assert "robots cache miss" in log_file.read_text(encoding="utf-8")

    def test_setup_is_idempotent(self):
        settings = LoggingSettings(log_to_console=True)
        setup_logging(settings)
        setup_logging(settings)

        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1


class TestVectors:
    """Tests for the embedding helpers."""

    def test_to_vector(self):
        vector = to_vector([[1, 2], [3, 4]])

        assert vector.dtype == np.float32
        assert vector.shape == (4,)

    def test_result_dimensions(self):
        result = EmbeddingResult(embedding=to_vector([0.1] * 384), token_count=12)

        assert result.dimensions == 384

    def test_cosine(self):
        matrix = np.array([[1, 0], [0, 1], [1, 1], [0, 0]], dtype=np.float32)

        scores = cosine_similarities(np.array([1, 0]), matrix)

        assert scores[0] == pytest.approx(1.0)
        assert scores[1] == pytest.approx(0.0)
        assert scores[2] == pytest.approx(1 / np.sqrt(2))
        assert scores[3] == 0.0

    def test_cosine_empty(self):
        assert cosine_similarities(np.ones(3), np.empty((0, 3))).size == 0


class TestGenerationTypes:
    """Tests for generation config and chat turns."""

    def test_greedy_by_default(self):
        kwargs = GenerationConfig().to_generate_kwargs()

        assert kwargs["do_sample"] is False
        assert "temperature" not in kwargs

    def test_sampling_with_temperature(self):
        kwargs = GenerationConfig(temperature=0.7, top_p=0.8).to_generate_kwargs()

        assert kwargs["do_sample"] is True
        assert (kwargs["temperature"], kwargs["top_p"]) == (0.7, 0.8)

    def test_chat_turns(self):
        assert chat_turns("Extract", "Be strict") == [
            {"role": "system", "content": "Be strict"},
            {"role": "user", "content": "Extract"},
        ]
        assert chat_turns("Extract") == [{"role": "user", "content": "Extract"}]

    def test_truncated(self):
        assert GenerationResult(text="{", finish_reason="length").truncated
        assert not GenerationResult(text="{}").truncated


class TestEnvValues:
    """Tests for environment override parsing."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("7", 7),
            ("0", 0),
            ("2.5", 2.5),
            ("false", False),
            ("True", True),
            ("DEBUG", "DEBUG"),
            ("data/regwatch.db", "data/regwatch.db"),
            ("", None),
            ("null", None),
        ],
    )
    def test_parse(self, raw, expected):
        assert _parse_env_value(raw) == expected
