"""Tests for reconciler configuration.

Covers:
- Default values match the historical boundary scripts
- Loading from environment variables
- Type coercion (string env vars -> numeric / boolean fields)
- Fail-fast range validation
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from conservation_boundaries.core.config import ConfigValidationError, ReconcilerConfig


class TestReconcilerConfigDefaults:
    """Verify default configuration values."""

    def test_default_simplify_tolerance(self) -> None:
        assert ReconcilerConfig().simplify_tolerance_deg == 0.001

    def test_default_area_tolerances(self) -> None:
        cfg = ReconcilerConfig()
        assert cfg.synthetic_area_tolerance == 0.15
        assert cfg.reference_area_tolerance == 0.5
        assert cfg.strict_area_validation is False

    def test_default_multipart_split(self) -> None:
        cfg = ReconcilerConfig()
        assert cfg.multipart_threshold_km2 == 5_000.0
        assert cfg.max_multipart_parts == 5

    def test_default_ring_limit(self) -> None:
        assert ReconcilerConfig().max_ring_points == 2_000_000

    def test_default_strategies(self) -> None:
        cfg = ReconcilerConfig()
        assert cfg.match_mode == "all"
        assert cfg.merge_strategy == "concatenate"


class TestReconcilerConfigFromEnv:
    """Verify loading from environment variables."""

    def test_loads_from_environment(self) -> None:
        """All env vars are read and coerced to correct types."""
        env = {
            "SIMPLIFY_TOLERANCE_DEG": "0.01",
            "SYNTHETIC_AREA_TOLERANCE": "0.1",
            "REFERENCE_AREA_TOLERANCE": "0.25",
            "STRICT_AREA_VALIDATION": "true",
            "MULTIPART_THRESHOLD_KM2": "8000",
            "MAX_MULTIPART_PARTS": "3",
            "MAX_RING_POINTS": "500000",
            "MATCH_MODE": "Strict",
            "MERGE_STRATEGY": " DISSOLVE ",
        }
        with patch.dict(os.environ, env, clear=False):
            cfg = ReconcilerConfig.from_env()

        assert cfg.simplify_tolerance_deg == 0.01
        assert cfg.synthetic_area_tolerance == 0.1
        assert cfg.reference_area_tolerance == 0.25
        assert cfg.strict_area_validation is True
        assert cfg.multipart_threshold_km2 == 8_000.0
        assert cfg.max_multipart_parts == 3
        assert cfg.max_ring_points == 500_000
        assert cfg.match_mode == "strict"
        assert cfg.merge_strategy == "dissolve"

    def test_defaults_when_env_missing(self) -> None:
        """Missing environment variables fall back to defaults."""
        with patch.dict(os.environ, {}, clear=True):
            cfg = ReconcilerConfig.from_env()

        assert cfg == ReconcilerConfig()

    @pytest.mark.parametrize("raw", ["1", "yes", "ON", "True"])
    def test_boolean_truthy_values(self, raw: str) -> None:
        with patch.dict(os.environ, {"STRICT_AREA_VALIDATION": raw}, clear=True):
            assert ReconcilerConfig.from_env().strict_area_validation is True

    @pytest.mark.parametrize("raw", ["0", "no", "off", "False", ""])
    def test_boolean_falsy_values(self, raw: str) -> None:
        with patch.dict(os.environ, {"STRICT_AREA_VALIDATION": raw}, clear=True):
            assert ReconcilerConfig.from_env().strict_area_validation is False

    def test_frozen_immutability(self) -> None:
        """ReconcilerConfig is frozen (immutable)."""
        cfg = ReconcilerConfig()
        with pytest.raises(AttributeError):
            cfg.simplify_tolerance_deg = 0.5  # type: ignore[misc]


class TestReconcilerConfigValidation:
    """Fail-fast range validation."""

    def test_valid_defaults_pass(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            cfg = ReconcilerConfig.from_env()
        assert cfg.simplify_tolerance_deg == 0.001

    def test_negative_tolerance_rejected(self) -> None:
        with (
            patch.dict(os.environ, {"SIMPLIFY_TOLERANCE_DEG": "-0.1"}, clear=True),
            pytest.raises(ConfigValidationError, match="SIMPLIFY_TOLERANCE_DEG"),
        ):
            ReconcilerConfig.from_env()

    def test_zero_tolerance_accepted(self) -> None:
        assert ReconcilerConfig(simplify_tolerance_deg=0.0).simplify_tolerance_deg == 0.0

    def test_infinite_tolerance_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="must be >= 0"):
            ReconcilerConfig(simplify_tolerance_deg=float("inf"))

    @pytest.mark.parametrize("value", ["0", "1", "1.5", "-0.1"])
    def test_synthetic_tolerance_out_of_range(self, value: str) -> None:
        with (
            patch.dict(os.environ, {"SYNTHETIC_AREA_TOLERANCE": value}, clear=True),
            pytest.raises(ConfigValidationError, match="SYNTHETIC_AREA_TOLERANCE"),
        ):
            ReconcilerConfig.from_env()

    def test_reference_tolerance_zero_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="must be > 0"):
            ReconcilerConfig(reference_area_tolerance=0.0)

    def test_reference_tolerance_above_one_accepted(self) -> None:
        assert ReconcilerConfig(reference_area_tolerance=2.0).reference_area_tolerance == 2.0

    def test_multipart_threshold_zero_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="MULTIPART_THRESHOLD_KM2"):
            ReconcilerConfig(multipart_threshold_km2=0.0)

    def test_max_parts_zero_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="MAX_MULTIPART_PARTS"):
            ReconcilerConfig(max_multipart_parts=0)

    def test_max_ring_points_below_ring_minimum_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="smallest closed ring"):
            ReconcilerConfig(max_ring_points=3)

    def test_unknown_match_mode_rejected(self) -> None:
        with (
            patch.dict(os.environ, {"MATCH_MODE": "fuzzy"}, clear=True),
            pytest.raises(ConfigValidationError, match="all, strict"),
        ):
            ReconcilerConfig.from_env()

    def test_unknown_merge_strategy_rejected(self) -> None:
        with pytest.raises(ConfigValidationError, match="MERGE_STRATEGY"):
            ReconcilerConfig(merge_strategy="union")

    def test_invalid_boolean_rejected(self) -> None:
        with (
            patch.dict(os.environ, {"STRICT_AREA_VALIDATION": "maybe"}, clear=True),
            pytest.raises(ConfigValidationError, match="STRICT_AREA_VALIDATION"),
        ):
            ReconcilerConfig.from_env()

    def test_non_numeric_env_raises_value_error(self) -> None:
        with (
            patch.dict(os.environ, {"SIMPLIFY_TOLERANCE_DEG": "abc"}, clear=True),
            pytest.raises(ValueError),
        ):
            ReconcilerConfig.from_env()

    def test_error_contains_key_and_value(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            ReconcilerConfig(max_multipart_parts=-2)
        exc = exc_info.value
        assert exc.key == "MAX_MULTIPART_PARTS"
        assert exc.value == -2
        assert "-2" in str(exc)
        assert exc.code == "CONFIG_VALIDATION_FAILED"
        assert exc.stage == "config"
