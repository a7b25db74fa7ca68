from __future__ import annotations

import copy
from dataclasses import dataclass


@dataclass(frozen=True)
class RiskProfileTemplate:
    id: str
    name: str
    author: str
    category: str  # sizing | drawdown | r-based | kelly
    record: dict


TEMPLATES: dict[str, RiskProfileTemplate] = {
    t.id: t
    for t in [
        RiskProfileTemplate(
            id="fixed-fractional",
            name="Fixed Fractional",
            author="Van Tharp",
            category="sizing",
            record={
                "name": "Fixed Fractional",
                "base_risk_cents": 50000,
                "daily_loss_cents": 100000,
                "weekly_loss_cents": 250000,
                "monthly_loss_cents": 500000,
                "daily_profit_target_cents": 300000,  # 6R on the base risk
                "decision_tree": {
                    "loss_recovery": {
                        "sequence": [{"type": "percentOfBase", "percent": 50}],
                        "execute_all_regardless": False,
                        "stop_after_sequence": True,
                    },
                    "gain_mode": {"type": "singleTarget", "daily_target_cents": 300000},
                    "risk_sizing": {"type": "percentOfBalance", "risk_percent": 0.75},
                    "limit_mode": "percentOfInitial",
                    "limits_percent": {"daily": 2, "weekly": 5, "monthly": 10},
                    "drawdown_control": {
                        "tiers": [
                            {"drawdown_percent": 10, "action": "reduceRisk", "reduce_percent": 50},
                        ],
                        "recovery_threshold_percent": 50,
                    },
                    "consecutive_loss_rules": [
                        {"consecutive_days": 3, "action": "reduceRisk", "reduce_percent": 50},
                        {"consecutive_days": 5, "action": "stopDay", "reduce_percent": 0},
                    ],
                },
            },
        ),
        RiskProfileTemplate(
            id="fixed-ratio",
            name="Fixed Ratio",
            author="Ralph Vince",
            category="sizing",
            record={
                "name": "Fixed Ratio",
                "base_risk_cents": 50000,
                "daily_loss_cents": 150000,
                "weekly_loss_cents": 300000,
                "monthly_loss_cents": 600000,
                "daily_profit_target_cents": None,
                "decision_tree": {
                    "loss_recovery": {
                        "sequence": [
                            {"type": "percentOfBase", "percent": 75},
                            {"type": "percentOfBase", "percent": 50},
                        ],
                        "execute_all_regardless": False,
                        "stop_after_sequence": False,
                    },
                    "gain_mode": {
                        "type": "compounding",
                        "reinvestment_percent": 30,
                        "stop_on_first_loss": True,
                        "daily_target_cents": None,
                    },
                    "risk_sizing": {
                        "type": "fixedRatio",
                        "delta_cents": 500000,
                        "base_contract_risk_cents": 50000,
                    },
                    "limit_mode": "rMultiples",
                    "limits_r": {"daily": 3, "weekly": 6, "monthly": 12},
                    "consecutive_loss_rules": [
                        {"consecutive_days": 2, "action": "reduceRisk", "reduce_percent": 33},
                        {"consecutive_days": 4, "action": "reduceRisk", "reduce_percent": 75},
                    ],
                },
            },
        ),
        RiskProfileTemplate(
            id="institutional",
            name="Institutional",
            author="CTA/Quant Funds",
            category="drawdown",
            record={
                "name": "Institutional",
                "base_risk_cents": 50000,
                "daily_loss_cents": 75000,
                "weekly_loss_cents": 200000,
                "monthly_loss_cents": 400000,
                "daily_profit_target_cents": 100000,
                "decision_tree": {
                    "loss_recovery": {
                        "sequence": [{"type": "percentOfBase", "percent": 50}],
                        "execute_all_regardless": False,
                        "stop_after_sequence": True,
                    },
                    "gain_mode": {"type": "singleTarget", "daily_target_cents": 100000},
                    "risk_sizing": {"type": "percentOfBalance", "risk_percent": 0.5},
                    "limit_mode": "percentOfInitial",
                    "limits_percent": {"daily": 1.5, "weekly": 4, "monthly": 8},
                    "drawdown_control": {
                        "tiers": [
                            {"drawdown_percent": 5, "action": "reduceRisk", "reduce_percent": 25},
                            {"drawdown_percent": 8, "action": "reduceRisk", "reduce_percent": 50},
                            {"drawdown_percent": 12, "action": "pause", "reduce_percent": 0},
                        ],
                        "recovery_threshold_percent": 50,
                    },
                },
            },
        ),
        RiskProfileTemplate(
            id="r-multiples",
            name="R-Multiples",
            author="Van Tharp / Larry Williams",
            category="r-based",
            record={
                "name": "R-Multiples",
                "base_risk_cents": 50000,
                "daily_loss_cents": 150000,
                "weekly_loss_cents": 250000,
                "monthly_loss_cents": 500000,
                "daily_profit_target_cents": 200000,
                "decision_tree": {
                    "loss_recovery": {
                        "sequence": [
                            {"type": "sameAsPrevious"},
                            {"type": "percentOfBase", "percent": 75},
                        ],
                        "execute_all_regardless": False,
                        "stop_after_sequence": False,
                    },
                    "gain_mode": {"type": "singleTarget", "daily_target_cents": 200000},
                    "risk_sizing": {"type": "fixed"},
                    "limit_mode": "rMultiples",
                    "limits_r": {"daily": 3, "weekly": 5, "monthly": 10},
                },
            },
        ),
        RiskProfileTemplate(
            id="kelly-fractional",
            name="Kelly Fractional",
            author="Kelly / Shannon",
            category="kelly",
            record={
                "name": "Kelly Fractional",
                "base_risk_cents": 50000,
                "daily_loss_cents": 150000,
                "weekly_loss_cents": 350000,
                "monthly_loss_cents": 750000,
                "daily_profit_target_cents": None,
                "decision_tree": {
                    "loss_recovery": {
                        "sequence": [{"type": "percentOfBase", "percent": 50}],
                        "execute_all_regardless": False,
                        "stop_after_sequence": True,
                    },
                    "gain_mode": {
                        "type": "compounding",
                        "reinvestment_percent": 25,
                        "stop_on_first_loss": True,
                        "daily_target_cents": None,
                    },
                    "risk_sizing": {"type": "kellyFractional", "divisor": 4},
                    "limit_mode": "percentOfInitial",
                    "limits_percent": {"daily": 3, "weekly": 7, "monthly": 15},
                    "drawdown_control": {
                        "tiers": [
                            {"drawdown_percent": 10, "action": "reduceRisk", "reduce_percent": 50},
                            {"drawdown_percent": 15, "action": "pause", "reduce_percent": 0},
                        ],
                        "recovery_threshold_percent": 50,
                    },
                },
            },
        ),
    ]
}


def get_template_record(template_id: str) -> dict:
    """A deep copy of the template's record, safe to customise."""
    if template_id not in TEMPLATES:
        raise ValueError(
            f"Unknown risk profile template: {template_id} (available: {', '.join(TEMPLATES)})"
        )
    return copy.deepcopy(TEMPLATES[template_id].record)
