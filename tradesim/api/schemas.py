"""Request schemas for the simulation handlers."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator

# Worst case ~50 trades a day: trades/day x days x months x runs.
MAX_TRADES_PER_DAY = 50
SIMULATION_BUDGET_CAP = 10_000_000


class PercentOfBaseStep(BaseModel):
    type: Literal["percentOfBase"]
    percent: float = Field(..., ge=1, le=200)


class SameAsPreviousStep(BaseModel):
    type: Literal["sameAsPrevious"]


class FixedCentsStep(BaseModel):
    type: Literal["fixedCents"]
    amount_cents: int = Field(..., gt=0)


RecoveryStepSchema = Annotated[
    Union[PercentOfBaseStep, SameAsPreviousStep, FixedCentsStep],
    Field(discriminator="type"),
]


class LossRecoverySchema(BaseModel):
    sequence: list[RecoveryStepSchema] = Field(default_factory=list, max_length=10)
    execute_all_regardless: bool = False
    stop_after_sequence: bool = True


class CompoundingGainSchema(BaseModel):
    type: Literal["compounding"]
    reinvestment_percent: float = Field(..., ge=0, le=100)
    stop_on_first_loss: bool = True
    daily_target_cents: int | None = Field(None, gt=0)


class SingleTargetGainSchema(BaseModel):
    type: Literal["singleTarget"]
    daily_target_cents: int | None = Field(None, gt=0)


GainModeSchema = Annotated[
    Union[CompoundingGainSchema, SingleTargetGainSchema],
    Field(discriminator="type"),
]


class FixedSizingSchema(BaseModel):
    type: Literal["fixed"]


class PercentOfBalanceSizingSchema(BaseModel):
    type: Literal["percentOfBalance"]
    risk_percent: float = Field(..., ge=0.1, le=10)


class FixedRatioSizingSchema(BaseModel):
    type: Literal["fixedRatio"]
    delta_cents: int = Field(..., gt=0)
    base_contract_risk_cents: int = Field(..., gt=0)


class KellyFractionalSizingSchema(BaseModel):
    type: Literal["kellyFractional"]
    divisor: float = Field(..., ge=1, le=10)


RiskSizingSchema = Annotated[
    Union[
        FixedSizingSchema,
        PercentOfBalanceSizingSchema,
        FixedRatioSizingSchema,
        KellyFractionalSizingSchema,
    ],
    Field(discriminator="type"),
]


class LimitsSchema(BaseModel):
    daily: float = Field(..., ge=0.1, le=100)
    weekly: float | None = Field(None, ge=0.1, le=100)
    monthly: float = Field(..., ge=0.1, le=100)


class DrawdownTierSchema(BaseModel):
    drawdown_percent: float = Field(..., ge=1, le=99)
    action: Literal["reduceRisk", "pause"]
    reduce_percent: float = Field(0, ge=0, le=100)


class DrawdownControlSchema(BaseModel):
    tiers: list[DrawdownTierSchema] = Field(default_factory=list, max_length=5)
    recovery_threshold_percent: float = Field(0, ge=0, le=100)


class ConsecutiveLossRuleSchema(BaseModel):
    consecutive_days: int = Field(..., ge=1, le=20)
    action: Literal["reduceRisk", "stopDay", "pauseWeek"]
    reduce_percent: float = Field(0, ge=0, le=100)


class DecisionTreeSchema(BaseModel):
    loss_recovery: LossRecoverySchema = Field(default_factory=LossRecoverySchema)
    gain_mode: GainModeSchema | None = None
    risk_sizing: RiskSizingSchema | None = None
    limit_mode: Literal["fixedCents", "percentOfInitial", "rMultiples"] | None = None
    limits_percent: LimitsSchema | None = None
    limits_r: LimitsSchema | None = None
    drawdown_control: DrawdownControlSchema | None = None
    consecutive_loss_rules: list[ConsecutiveLossRuleSchema] = Field(default_factory=list, max_length=5)


class RiskProfileRecordSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    base_risk_cents: int = Field(..., gt=0)
    daily_loss_cents: int = Field(..., gt=0)
    weekly_loss_cents: int | None = Field(None, gt=0)
    monthly_loss_cents: int = Field(..., gt=0)
    daily_profit_target_cents: int | None = Field(None, gt=0)
    decision_tree: DecisionTreeSchema = Field(default_factory=DecisionTreeSchema)


class SimulationPayload(BaseModel):
    profile: RiskProfileRecordSchema
    win_rate: float = Field(..., ge=1, le=99)
    reward_risk_ratio: float = Field(..., ge=0.1, le=20)
    breakeven_rate: float = Field(0, ge=0, le=80)
    commission_cents: int = Field(0, ge=0)
    trading_days_per_month: int = Field(22, ge=1, le=31)
    trading_days_per_week: int = Field(5, ge=1, le=7)
    simulation_count: int = Field(1000, ge=100, le=50_000)
    initial_balance_cents: int = Field(..., gt=0)
    months_per_run: int = Field(1, ge=1, le=48)
    ruin_threshold_percent: float = Field(50, ge=0, le=100)

    @model_validator(mode="after")
    def check_budget(self) -> SimulationPayload:
        iterations = (
            MAX_TRADES_PER_DAY
            * self.trading_days_per_month
            * self.months_per_run
            * self.simulation_count
        )
        if iterations > SIMULATION_BUDGET_CAP:
            raise ValueError(
                f"Estimated iterations ({iterations:,}) exceed the cap of "
                f"{SIMULATION_BUDGET_CAP:,}. Reduce simulations, months or trading days."
            )
        return self


class BacktestInformedPayload(BaseModel):
    """Same as `SimulationPayload` minus the edge, which comes from journal trades."""

    profile: RiskProfileRecordSchema
    trading_days_per_month: int = Field(22, ge=1, le=31)
    trading_days_per_week: int = Field(5, ge=1, le=7)
    simulation_count: int = Field(1000, ge=100, le=50_000)
    initial_balance_cents: int = Field(..., gt=0)
    months_per_run: int = Field(1, ge=1, le=48)
    ruin_threshold_percent: float = Field(50, ge=0, le=100)
