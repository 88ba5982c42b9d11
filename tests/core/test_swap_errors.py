"""
Tests for the swap pipeline error hierarchy.
"""

from sniper.core.errors import (
    BundleFailed,
    NoQuoteAvailable,
    PollingTimeout,
    RelayRejected,
    SimulationRejected,
    SwapError,
    SwapStage,
    UpstreamError,
)


class TestSwapErrors:
    def test_default_stage(self):
        assert NoQuoteAvailable("no route").stage == SwapStage.QUOTE
        assert SimulationRejected().stage == SwapStage.SIMULATE
        assert RelayRejected("nope").stage == SwapStage.SUBMIT
        assert BundleFailed("b1").stage == SwapStage.POLL

    def test_upstream_error_has_no_default_stage(self):
        error = UpstreamError("boom")

        assert error.stage is None
        assert str(error) == "boom"

    def test_explicit_stage_wins(self):
        error = UpstreamError("boom", stage=SwapStage.TIP_ACCOUNT)

        assert error.stage == SwapStage.TIP_ACCOUNT
        assert str(error) == "[tip_account] boom"

    def test_to_record(self):
        record = NoQuoteAvailable("no route").to_record()

        assert record == {
            "error": "NoQuoteAvailable",
            "errorMessage": "no route",
            "failedStage": "quote",
        }

    def test_upstream_record_carries_status(self):
        error = UpstreamError("HTTP 503", stage=SwapStage.QUOTE, status_code=503, body="busy")

        record = error.to_record()

        assert record["upstreamStatus"] == 503
        assert error.details["body"] == "busy"

    def test_poll_errors_carry_bundle_id(self):
        timeout = PollingTimeout("b1", 30, last_status="Pending")

        assert timeout.details["bundle_id"] == "b1"
        assert timeout.details["last_status"] == "Pending"
        assert "30s" in timeout.message
        assert BundleFailed("b2").details["bundle_id"] == "b2"

    def test_simulation_keeps_logs(self):
        error = SimulationRejected(logs=["Program log: slippage"], err={"InstructionError": [2, "Custom"]})

        assert error.logs == ["Program log: slippage"]
        assert error.details["err"] == {"InstructionError": [2, "Custom"]}

    def test_all_are_swap_errors(self):
        for error in (NoQuoteAvailable("x"), RelayRejected("x"), UpstreamError("x")):
            assert isinstance(error, SwapError)
