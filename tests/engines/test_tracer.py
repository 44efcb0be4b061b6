"""Tests for the EXIT_ENGINE_TRACE decorator."""

from decimal import Decimal

from exit_engines.notice_period import evaluate_notice_shortfall
from exit_engines.tracer import compute_input_fingerprint


class TestInputFingerprint:
    def test_deterministic(self):
        kwargs = {"a": Decimal("1.50"), "b": {"y": 2, "x": 1}}
        assert compute_input_fingerprint(("a", "b"), kwargs) == compute_input_fingerprint(("a", "b"), kwargs)

    def test_dict_key_order_ignored(self):
        first = compute_input_fingerprint(("b",), {"b": {"x": 1, "y": 2}})
        second = compute_input_fingerprint(("b",), {"b": {"y": 2, "x": 1}})
        assert first == second

    def test_sixteen_hex_chars(self):
        fp = compute_input_fingerprint(("a",), {"a": 1})
        assert len(fp) == 16
        int(fp, 16)

    def test_missing_field_recorded_as_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(("a",), {"a": None})


class TestTracedEngine:
    def test_trace_emitted(self, captured_logs):
        evaluate_notice_shortfall(required_days=30, served_days=10, daily_pay=Decimal("2000"))

        traces = [r for r in captured_logs() if r["message"] == "EXIT_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "notice_period"
        assert len(traces[0]["input_fingerprint"]) == 16
