"""Unit tests for climatesync.core.decision_engine."""

from __future__ import annotations

import math

import pytest

from climatesync.core.decision_engine import (
    DEFAULT_RULES,
    ControlContext,
    ControlDecision,
    ControlParameters,
    DecisionEngine,
    Rule,
    decide,
)
from climatesync.models.enums import DecisionMode, OffReason

# ===================================================================
# Humidity priority
# ===================================================================


class TestHumidityPriority:
    def test_dry_preempts_heating(self) -> None:
        result = decide(20, 65, 30, 26, 60)

        assert result.mode == DecisionMode.dry
        assert result.target_temperature == 24
        assert result.rule == "humidity"
        assert result.off_reason is None

    @pytest.mark.parametrize(
        ("indoor_temp", "outdoor_temp"),
        [(30.0, 20.0), (30.0, 40.0), (26.0, 30.0), (10.0, 40.0)],
    )
    def test_dry_regardless_of_temperature(self, indoor_temp: float, outdoor_temp: float) -> None:
        result = decide(indoor_temp, 61, outdoor_temp, 26, 60)

        assert result.mode == DecisionMode.dry

    def test_equal_humidity_does_not_dehumidify(self) -> None:
        result = decide(26, 60, 30, 26, 60)

        assert result.mode == DecisionMode.off
        assert result.off_reason == OffReason.comfort

    def test_dry_target_follows_setpoint(self) -> None:
        result = decide(24, 70, 20, 22, 50)

        # heat setpoint 21, minus the dry offset
        assert result.target_temperature == 20


# ===================================================================
# Economizer / mechanical cooling
# ===================================================================


class TestCooling:
    def test_economizer_at_outdoor_threshold(self) -> None:
        result = decide(28, 50, 26, 26, 60)

        assert result.mode == DecisionMode.fan
        assert result.target_temperature is None
        assert result.rule == "economizer"

    def test_mechanical_cooling_just_above_threshold(self) -> None:
        result = decide(28, 50, 26.01, 26, 60)

        assert result.mode == DecisionMode.cool
        assert result.target_temperature == 25

    def test_cool_setpoint_itself_is_within_band(self) -> None:
        result = decide(27, 50, 30, 26, 60)

        assert result.mode == DecisionMode.off
        assert result.target_temperature is None


# ===================================================================
# Heating / lockout
# ===================================================================


class TestHeating:
    def test_heat_below_lockout(self) -> None:
        result = decide(20, 50, 34.9, 26, 60)

        assert result.mode == DecisionMode.heat
        assert result.target_temperature == 25

    def test_lockout_at_threshold(self) -> None:
        result = decide(20, 50, 35, 26, 60)

        assert result.mode == DecisionMode.off
        assert result.is_off
        assert result.off_reason == OffReason.lockout
        assert result.target_temperature == 25
        assert "Lockout" in result.reason

    def test_heat_setpoint_itself_is_within_band(self) -> None:
        result = decide(25, 50, 10, 26, 60)

        assert result.mode == DecisionMode.off
        assert result.off_reason == OffReason.comfort


# ===================================================================
# Comfort band and defaults
# ===================================================================


class TestComfort:
    def test_comfort_band(self) -> None:
        result = decide(26, 50, 30, 26, 60)

        assert result.mode == DecisionMode.off
        assert result.target_temperature is None
        assert result.off_reason == OffReason.comfort
        assert result.rule == "comfort"

    def test_missing_setpoints_default_to_26_and_60(self) -> None:
        assert decide(26, 60, 30) == decide(26, 60, 30, 26, 60)
        assert decide(28, 50, 20).mode == DecisionMode.fan
        assert decide(26, 61, 20).mode == DecisionMode.dry

    def test_decide_is_deterministic(self) -> None:
        engine = DecisionEngine()

        first = engine.decide(23.4, 55.5, 31.2, 24, 58)
        second = engine.decide(23.4, 55.5, 31.2, 24, 58)

        assert first == second


# ===================================================================
# Rule chain
# ===================================================================


class TestRuleChain:
    def test_default_rule_order(self) -> None:
        assert [rule.name for rule in DEFAULT_RULES] == [
            "humidity",
            "economizer",
            "cooling",
            "heating",
            "heating_lockout",
            "comfort",
        ]

    def test_first_matching_rule_wins(self) -> None:
        always = Rule(
            "always",
            lambda ctx: True,
            lambda ctx: ControlDecision(DecisionMode.cool, 18.0, "forced", rule="always"),
        )
        engine = DecisionEngine(rules=(always, *DEFAULT_RULES))

        result = engine.decide(20, 90, 40, 26, 60)

        assert result.rule == "always"
        assert result.target_temperature == 18.0

    def test_chain_without_catch_all_falls_back_to_comfort(self) -> None:
        engine = DecisionEngine(rules=DEFAULT_RULES[:2])

        result = engine.decide(26, 50, 30, 26, 60)

        assert result.off_reason == OffReason.comfort

    def test_empty_chain_rejected(self) -> None:
        with pytest.raises(ValueError):
            DecisionEngine(rules=())

    def test_context_derives_bounds_from_deadband(self) -> None:
        params = ControlParameters(deadband=4.0)

        ctx = ControlContext.build(22, 50, 20, 24, None, params)

        assert ctx.heat_setpoint == 22
        assert ctx.cool_setpoint == 26
        assert ctx.target_rh == 60

    def test_custom_parameters(self) -> None:
        engine = DecisionEngine(ControlParameters(economizer_max_outdoor=20.0))

        result = engine.decide(28, 50, 22, 26, 60)

        assert result.mode == DecisionMode.cool

    def test_total_over_finite_inputs(self) -> None:
        for value in (-40.0, 0.0, 1e6, -1e6, math.pi):
            assert decide(value, value, value, value, value).mode in set(DecisionMode)
