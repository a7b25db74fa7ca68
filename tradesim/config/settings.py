from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from tradesim.models.profile import SimulationRequest
from tradesim.profiles.builder import build_profile_for_sim
from tradesim.profiles.templates import get_template_record


@dataclass
class SimulationConfig:
    simulation_count: int
    initial_balance_cents: int
    months_per_run: int = 1
    ruin_threshold_percent: float = 50.0
    seed: int | None = None


@dataclass
class EdgeConfig:
    win_rate: float
    reward_risk_ratio: float
    breakeven_rate: float = 0.0
    commission_cents: int = 0
    trading_days_per_month: int = 22
    trading_days_per_week: int = 5


@dataclass
class OutputConfig:
    results_dir: str = "logs"
    trace_runs: int = 1  # runs traced at debug level with --trace


@dataclass
class Settings:
    simulation: SimulationConfig
    edge: EdgeConfig
    profile: dict = field(default_factory=dict)
    template: str | None = None
    trades_file: str | None = None
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_yaml(cls, path: Path, template: str | None = None) -> Settings:
        with open(path) as f:
            raw = yaml.safe_load(f)

        sim_raw = raw["simulation"]
        edge_raw = raw["edge"]
        out_raw = raw.get("output") or {}

        simulation = SimulationConfig(
            simulation_count=sim_raw["simulation_count"],
            initial_balance_cents=sim_raw["initial_balance_cents"],
            months_per_run=sim_raw.get("months_per_run", 1),
            ruin_threshold_percent=sim_raw.get("ruin_threshold_percent", 50.0),
            seed=sim_raw.get("seed"),
        )

        edge = EdgeConfig(
            win_rate=edge_raw["win_rate"],
            reward_risk_ratio=edge_raw["reward_risk_ratio"],
            breakeven_rate=edge_raw.get("breakeven_rate", 0.0),
            commission_cents=edge_raw.get("commission_cents", 0),
            trading_days_per_month=edge_raw.get("trading_days_per_month", 22),
            trading_days_per_week=edge_raw.get("trading_days_per_week", 5),
        )

        output = OutputConfig(
            results_dir=out_raw.get("results_dir", "logs"),
            trace_runs=out_raw.get("trace_runs", 1),
        )

        settings = cls(
            simulation=simulation,
            edge=edge,
            profile=raw.get("profile") or {},
            template=template or raw.get("template"),
            trades_file=raw.get("trades_file"),
            output=output,
        )
        if not settings.profile and not settings.template:
            raise ValueError(f"{path}: either 'profile' or 'template' must be set")
        return settings

    def profile_record(self) -> dict:
        """The template's record (if any) with `profile` overrides applied.

        Top-level keys replace the template's; ``decision_tree`` is merged one
        level deep so a single branch can be overridden.
        """
        record = get_template_record(self.template) if self.template else {}
        overrides = copy.deepcopy(self.profile)
        tree_overrides = overrides.pop("decision_tree", None) or {}
        record.update(overrides)
        record["decision_tree"] = {**record.get("decision_tree", {}), **tree_overrides}
        return record

    def to_payload(self) -> dict:
        """Request payload in the shape `handle_simulation` accepts."""
        return {
            "profile": self.profile_record(),
            "win_rate": self.edge.win_rate,
            "reward_risk_ratio": self.edge.reward_risk_ratio,
            "breakeven_rate": self.edge.breakeven_rate,
            "commission_cents": self.edge.commission_cents,
            "trading_days_per_month": self.edge.trading_days_per_month,
            "trading_days_per_week": self.edge.trading_days_per_week,
            "simulation_count": self.simulation.simulation_count,
            "initial_balance_cents": self.simulation.initial_balance_cents,
            "months_per_run": self.simulation.months_per_run,
            "ruin_threshold_percent": self.simulation.ruin_threshold_percent,
        }

    def build_request(self) -> SimulationRequest:
        """Unvalidated request straight from the settings, for library use."""
        profile = build_profile_for_sim(
            self.profile_record(),
            win_rate=self.edge.win_rate,
            reward_risk_ratio=self.edge.reward_risk_ratio,
            breakeven_rate=self.edge.breakeven_rate,
            commission_cents=self.edge.commission_cents,
            trading_days_per_month=self.edge.trading_days_per_month,
            trading_days_per_week=self.edge.trading_days_per_week,
        )
        return SimulationRequest(
            profile=profile,
            simulation_count=self.simulation.simulation_count,
            initial_balance_cents=self.simulation.initial_balance_cents,
            months_per_run=self.simulation.months_per_run,
            ruin_threshold_percent=self.simulation.ruin_threshold_percent,
        )
