"""Deterministic ASHRAE Guideline 36 style decision engine.

The engine maps one telemetry snapshot plus the user's setpoints to a single
:class:`ControlDecision`.  Rules are held in an ordered chain of guard/action
pairs and the first guard that matches wins, so the priority of each rule is
explicit and can be exercised on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from climatesync.models.enums import DecisionMode, OffReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ControlParameters:
    """Thresholds used by the rule chain (all temperatures in °C)."""

    default_temp_setpoint: float = 26.0
    default_rh_setpoint: float = 60.0
    deadband: float = 2.0
    economizer_max_outdoor: float = 26.0
    heat_enable_outdoor: float = 35.0
    dry_offset: float = 1.0


DEFAULT_PARAMETERS = ControlParameters()


@dataclass(frozen=True, slots=True)
class ControlDecision:
    """Advisory output of the engine.

    ``off_reason`` tells a comfort-idle OFF apart from a heating lockout OFF;
    it is ``None`` for every active mode.
    """

    mode: DecisionMode
    target_temperature: float | None
    reason: str
    off_reason: OffReason | None = None
    rule: str = ""

    @property
    def is_off(self) -> bool:
        return self.mode == DecisionMode.off


@dataclass(frozen=True, slots=True)
class ControlContext:
    """Inputs of one evaluation with the derived heat/cool bounds."""

    indoor_temp: float
    indoor_rh: float
    outdoor_temp: float
    target_temp: float
    target_rh: float
    heat_setpoint: float
    cool_setpoint: float
    params: ControlParameters

    @classmethod
    def build(
        cls,
        indoor_temp: float,
        indoor_rh: float,
        outdoor_temp: float,
        target_temp: float | None,
        target_rh: float | None,
        params: ControlParameters,
    ) -> ControlContext:
        t_set = params.default_temp_setpoint if target_temp is None else float(target_temp)
        rh_set = params.default_rh_setpoint if target_rh is None else float(target_rh)
        half_band = params.deadband / 2
        return cls(
            indoor_temp=float(indoor_temp),
            indoor_rh=float(indoor_rh),
            outdoor_temp=float(outdoor_temp),
            target_temp=t_set,
            target_rh=rh_set,
            heat_setpoint=t_set - half_band,
            cool_setpoint=t_set + half_band,
            params=params,
        )


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    guard: Callable[[ControlContext], bool]
    action: Callable[[ControlContext], ControlDecision]


# ---------------------------------------------------------------------------
# Rule chain
# ---------------------------------------------------------------------------


def _dehumidify(ctx: ControlContext) -> ControlDecision:
    return ControlDecision(
        mode=DecisionMode.dry,
        target_temperature=ctx.heat_setpoint - ctx.params.dry_offset,
        reason="Humidity above setpoint (G36)",
        rule="humidity",
    )


def _economizer(ctx: ControlContext) -> ControlDecision:
    return ControlDecision(
        mode=DecisionMode.fan,
        target_temperature=None,
        reason="Economizer cooling using outdoor air (G36)",
        rule="economizer",
    )


def _mechanical_cooling(ctx: ControlContext) -> ControlDecision:
    return ControlDecision(
        mode=DecisionMode.cool,
        target_temperature=ctx.heat_setpoint,
        reason="Mechanical cooling (G36)",
        rule="cooling",
    )


def _heating(ctx: ControlContext) -> ControlDecision:
    return ControlDecision(
        mode=DecisionMode.heat,
        target_temperature=ctx.heat_setpoint,
        reason="Heating mode (G36)",
        rule="heating",
    )


def _heating_lockout(ctx: ControlContext) -> ControlDecision:
    return ControlDecision(
        mode=DecisionMode.off,
        target_temperature=ctx.heat_setpoint,
        reason="Outdoor temperature above heating enable setpoint (Lockout)",
        off_reason=OffReason.lockout,
        rule="heating_lockout",
    )


def _comfort(ctx: ControlContext) -> ControlDecision:
    return ControlDecision(
        mode=DecisionMode.off,
        target_temperature=None,
        reason="Within comfort deadband (G36)",
        off_reason=OffReason.comfort,
        rule="comfort",
    )


DEFAULT_RULES: tuple[Rule, ...] = (
    Rule("humidity", lambda c: c.indoor_rh > c.target_rh, _dehumidify),
    Rule(
        "economizer",
        lambda c: (
            c.indoor_temp > c.cool_setpoint
            and c.outdoor_temp <= c.params.economizer_max_outdoor
        ),
        _economizer,
    ),
    Rule("cooling", lambda c: c.indoor_temp > c.cool_setpoint, _mechanical_cooling),
    Rule(
        "heating",
        lambda c: (
            c.indoor_temp < c.heat_setpoint and c.outdoor_temp < c.params.heat_enable_outdoor
        ),
        _heating,
    ),
    Rule("heating_lockout", lambda c: c.indoor_temp < c.heat_setpoint, _heating_lockout),
    Rule("comfort", lambda c: True, _comfort),
)


class DecisionEngine:
    """Evaluate the rule chain top-to-bottom; the first matching rule wins."""

    def __init__(
        self,
        params: ControlParameters = DEFAULT_PARAMETERS,
        *,
        rules: Sequence[Rule] = DEFAULT_RULES,
    ) -> None:
        if not rules:
            raise ValueError("DecisionEngine needs at least one rule")
        self._params = params
        self._rules = tuple(rules)

    @property
    def params(self) -> ControlParameters:
        return self._params

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def decide(
        self,
        indoor_temp: float,
        indoor_rh: float,
        outdoor_temp: float,
        target_temp: float | None = None,
        target_rh: float | None = None,
    ) -> ControlDecision:
        ctx = ControlContext.build(
            indoor_temp, indoor_rh, outdoor_temp, target_temp, target_rh, self._params
        )
        for rule in self._rules:
            if rule.guard(ctx):
                decision = rule.action(ctx)
                logger.debug(
                    "Rule %s matched: mode=%s target=%s (T=%.2f RH=%.2f Tout=%.2f)",
                    rule.name,
                    decision.mode.value,
                    decision.target_temperature,
                    ctx.indoor_temp,
                    ctx.indoor_rh,
                    ctx.outdoor_temp,
                )
                return decision
        # Only reachable with a custom chain lacking a catch-all rule.
        return _comfort(ctx)


_default_engine = DecisionEngine()


def decide(
    indoor_temp: float,
    indoor_rh: float,
    outdoor_temp: float,
    target_temp: float | None = None,
    target_rh: float | None = None,
) -> ControlDecision:
    """Evaluate the default G36 rule chain."""
    return _default_engine.decide(indoor_temp, indoor_rh, outdoor_temp, target_temp, target_rh)


__all__ = [
    "DEFAULT_PARAMETERS",
    "DEFAULT_RULES",
    "ControlContext",
    "ControlDecision",
    "ControlParameters",
    "DecisionEngine",
    "Rule",
    "decide",
]
