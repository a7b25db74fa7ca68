from __future__ import annotations

import json
import sys
from pathlib import Path

import structlog

from tradesim.api.handlers import handle_backtest_informed_simulation, handle_simulation
from tradesim.config.settings import Settings
from tradesim.data.store import load_trades, trades_from_frame, validate_trades
from tradesim.simulation.observer import StructlogObserver
from tradesim.simulation.outcome import numpy_random_source

logger = structlog.get_logger()

PROJECT_ROOT = Path(__file__).parent.parent
SETTINGS_PATH = PROJECT_ROOT / "settings.yaml"


def _configure_logging(trace: bool) -> None:
    structlog.configure(
        processors=[
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(10 if trace else 20),  # DEBUG with --trace
    )


def _flag_value(args: list[str], flag: str) -> str | None:
    if flag in args:
        idx = args.index(flag)
        if idx + 1 < len(args):
            return args[idx + 1]
        raise SystemExit(f"{flag} needs a value")
    return None


def _settings_path(args: list[str]) -> Path:
    skip = False
    for arg in args:
        if skip:
            skip = False
            continue
        if arg in ("--template", "--trades"):
            skip = True
            continue
        if not arg.startswith("--"):
            return Path(arg)
    return SETTINGS_PATH


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    trace = "--trace" in args
    _configure_logging(trace)

    # 1. Load config
    settings_path = _settings_path(args)
    logger.info("loading_settings", path=str(settings_path))
    settings = Settings.from_yaml(settings_path, template=_flag_value(args, "--template"))

    random_source = numpy_random_source(settings.simulation.seed)
    observer = StructlogObserver(max_runs=settings.output.trace_runs) if trace else None
    payload = settings.to_payload()

    # 2. Run, from historical trades if given, else from the configured edge
    trades_file = _flag_value(args, "--trades") or settings.trades_file
    if trades_file:
        df = load_trades(Path(trades_file))
        for w in validate_trades(df):
            logger.warning("data_issue", file=trades_file, warning=w)
        trades = trades_from_frame(df)
        payload.pop("win_rate")
        payload.pop("reward_risk_ratio")
        payload.pop("breakeven_rate")
        payload.pop("commission_cents")
        response = handle_backtest_informed_simulation(trades, payload, random_source, observer)
    else:
        response = handle_simulation(payload, random_source, observer)

    if response["status"] != "success":
        for err in response["errors"]:
            logger.error("simulation_rejected", code=err["code"], detail=err["detail"])
        return 1

    # 3. Output
    data = response["data"]
    results_dir = Path(settings.output.results_dir)
    if not results_dir.is_absolute():
        results_dir = PROJECT_ROOT / results_dir
    results_dir.mkdir(parents=True, exist_ok=True)
    output_path = results_dir / "simulation_results.json"
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)

    logger.info("results_saved", path=str(output_path))
    _print_summary(data)
    return 0


def _print_summary(data: dict) -> None:
    stats = data["statistics"]
    request = data["request"]
    profile = request["profile"]

    print("\n" + "=" * 60)
    print(f"  MONTE CARLO: {profile['name']}")
    print("=" * 60)
    print(
        f"  runs={request['simulation_count']}  months={request['months_per_run']}  "
        f"initial=${request['initial_balance_cents'] / 100:,.2f}"
    )
    print(
        f"  win_rate={profile['win_rate']}%  reward_risk={profile['reward_risk_ratio']}  "
        f"breakeven={profile['breakeven_rate']}%"
    )
    print("-" * 60)
    for k, v in stats.items():
        if isinstance(v, float):
            print(f"  {k}: {v:.2f}")
        else:
            print(f"  {k}: {v}")

    source = data.get("source_stats")
    if source:
        print("-" * 60)
        print("  SOURCE TRADES")
        print("-" * 60)
        for k, v in source.items():
            if k == "strategies":
                print(f"  {k}:")
                for name, s in v.items():
                    print(f"    {name}: {s['trades']} trades, {s['win_rate_pct']}% win")
            else:
                print(f"  {k}: {v}")

    print("-" * 60)
    print("  P&L DISTRIBUTION")
    print("-" * 60)
    for b in data["distribution"]:
        bar = "#" * int(round(b["percentage"]))
        print(f"  {b['range_start'] / 100:>12,.2f} .. {b['range_end'] / 100:>12,.2f}  {b['count']:5d}  {bar}")
    print("=" * 60)


if __name__ == "__main__":
    sys.exit(main())
