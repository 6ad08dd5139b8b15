"""
Observability Validation Test

This test validates the observability stack:
1. Metrics collection works (batch/outcome/timing metrics)
2. Structured logging with correlation IDs works
3. Logging can be reconfigured from settings after first use

Pass criteria: From one batch result, you can trace to the log lines of
every transaction it posted.
"""

import json
import logging

import pytest


def test_observability_imports():
    """Verify all observability modules import correctly."""
    from core.observability import (
        MetricsCollector, get_metrics,
        get_logger, configure_logging, CorrelationContext, with_correlation,
    )
    assert MetricsCollector is not None
    assert get_metrics is not None
    assert CorrelationContext is not None
    assert with_correlation is not None


class TestMetricsCollector:
    """Test the metrics collection system."""

    @pytest.fixture(autouse=True)
    def fresh(self):
        from core.observability.metrics import MetricsCollector
        MetricsCollector.reset()
        yield
        MetricsCollector.reset()

    def test_singleton_instance(self):
        """MetricsCollector returns same instance."""
        from core.observability.metrics import MetricsCollector, get_metrics
        m1 = MetricsCollector.instance()
        m2 = get_metrics()
        assert m1 is m2

    def test_batch_tracking(self):
        """Track batch started/completed and in-progress counts."""
        from core.observability.metrics import get_metrics
        mc = get_metrics()

        mc.record_batch_started(batch_size=3)
        mc.record_batch_started(batch_size=1)
        mc.record_batch_completed(duration_ms=250)

        summary = mc.get_summary()
        assert summary["batches"] == {"started": 2, "completed": 1, "in_progress": 1}
        assert "batch" in summary["timings"]["by_stage"]

    def test_outcome_tracking(self):
        """Track posted, failed and ineligible transactions."""
        from core.observability.metrics import get_metrics
        mc = get_metrics()

        mc.record_post_succeeded(duration_ms=40)
        mc.record_post_failed("timeout")
        mc.record_post_failed("timeout")
        mc.record_post_failed("LedgerConnectionError")
        mc.record_post_ineligible()

        outcomes = mc.get_summary()["outcomes"]
        assert outcomes["posted"] == 1
        assert outcomes["failed"] == 3
        assert outcomes["ineligible"] == 1
        assert outcomes["failures_by_reason"] == {"timeout": 2, "LedgerConnectionError": 1}

    def test_timing_percentile_calculation(self):
        """Calculate p95 timing correctly."""
        from core.observability.metrics import get_metrics
        mc = get_metrics()

        for i in range(1, 101):
            mc.record_post_succeeded(duration_ms=i)

        stats = mc.get_timing_stats("post")

        # Average should be ~50.5
        assert 49 <= stats["average_ms"] <= 52
        # P95 should be ~95
        assert 93 <= stats["p95_ms"] <= 97
        assert stats["sample_count"] == 100

    def test_empty_timings(self):
        """No samples reports zeros."""
        from core.observability.metrics import get_metrics
        assert get_metrics().get_timing_stats("post") == {"average_ms": 0.0, "p95_ms": 0.0, "sample_count": 0}


class TestCorrelatedLogging:
    """Test structured logging with correlation IDs."""

    def test_correlation_context_creation(self):
        """Create correlation context with posting fields."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(
            company_id="co-1",
            card_id="card-1",
            batch_id="batch-abc",
            transaction_id="tx-9",
        )

        assert ctx.to_dict() == {
            "company_id": "co-1",
            "card_id": "card-1",
            "batch_id": "batch-abc",
            "transaction_id": "tx-9",
        }

    def test_merge_ignores_none(self):
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(company_id="co-1").merge(batch_id="batch-1", card_id=None)
        assert ctx.company_id == "co-1"
        assert ctx.batch_id == "batch-1"
        assert ctx.card_id is None

    def test_context_var_nesting(self):
        """Nested with_correlation blocks stack and unwind."""
        from core.observability.logging import get_correlation_context, with_correlation

        assert get_correlation_context().batch_id is None

        with with_correlation(batch_id="batch-1", company_id="co-1"):
            with with_correlation(transaction_id="tx-1"):
                inner = get_correlation_context()
                assert (inner.batch_id, inner.transaction_id) == ("batch-1", "tx-1")
            assert get_correlation_context().transaction_id is None

        assert get_correlation_context().batch_id is None

    def test_structured_formatter_json_output(self):
        """StructuredFormatter outputs valid JSON with context and extra fields."""
        from core.observability.logging import StructuredFormatter, with_correlation

        formatter = StructuredFormatter()

        with with_correlation(batch_id="batch-1", transaction_id="tx-1"):
            record = logging.LogRecord(
                name="posting.orchestrator",
                level=logging.INFO,
                pathname="orchestrator.py",
                lineno=10,
                msg="Transaction posted",
                args=(),
                exc_info=None,
            )
            record.extra_fields = {"ledger_entry_id": "je-1"}

            data = json.loads(formatter.format(record))

        assert data["message"] == "Transaction posted"
        assert data["batch_id"] == "batch-1"
        assert data["transaction_id"] == "tx-1"
        assert data["ledger_entry_id"] == "je-1"

    def test_human_readable_formatter(self):
        """HumanReadableFormatter shows company, batch and transaction."""
        from core.observability.logging import HumanReadableFormatter, with_correlation

        formatter = HumanReadableFormatter()
        with with_correlation(company_id="co-1", batch_id="batch-0123456789abcdef", transaction_id="tx-7"):
            record = logging.LogRecord("posting", logging.WARNING, "x.py", 1, "Posting failed", (), None)
            record.extra_fields = {"reason": "timeout"}
            line = formatter.format(record)

        assert "[co-1/batch-012345/tx:tx-7]" in line
        assert line.endswith("Posting failed (reason=timeout)")

    def test_correlated_logger_emits_extra_fields(self, caplog):
        """CorrelatedLogger attaches extra_fields to the record."""
        from core.observability.logging import get_logger

        logger = get_logger("posting.test")
        with caplog.at_level(logging.INFO, logger="posting.test"):
            logger.info("Batch finished", extra_fields={"posted": 2})

        record = caplog.records[-1]
        assert record.getMessage() == "Batch finished"
        assert record.extra_fields == {"posted": 2}


class TestConfigureLogging:
    """Logging configuration."""

    def test_force_replaces_handler(self):
        """A forced reconfiguration swaps the handler instead of stacking one."""
        from core.observability import logging as obs_logging

        obs_logging.configure_logging(level=logging.INFO, force=True)
        root = logging.getLogger()
        before = len(root.handlers)

        obs_logging.configure_logging(level=logging.DEBUG, json_format=True, force=True)

        assert len(root.handlers) == before
        assert isinstance(obs_logging._handler.formatter, obs_logging.StructuredFormatter)
        assert root.level == logging.DEBUG

        obs_logging.configure_logging(level=logging.INFO, force=True)

    def test_without_force_is_noop(self):
        from core.observability import logging as obs_logging

        obs_logging.configure_logging(force=True)
        handler = obs_logging._handler
        obs_logging.configure_logging(json_format=True)
        assert obs_logging._handler is handler
