from __future__ import annotations

from datetime import datetime
from pathlib import Path

import polars as pl
import structlog

from tradesim.models.types import Trade, TradeOutcome

logger = structlog.get_logger()

REQUIRED_COLUMNS = ("outcome", "pnl_cents", "entry_time")
OUTCOME_VALUES = {o.value for o in TradeOutcome}


def load_trades(path: Path) -> pl.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Trade file not found: {path}")

    if path.suffix == ".parquet":
        df = pl.read_parquet(path)
    elif path.suffix == ".csv":
        df = pl.read_csv(path, try_parse_dates=True)
    else:
        raise ValueError(f"Unsupported trade file format: {path.suffix}")

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Trade file {path} is missing columns: {', '.join(missing)}")

    return df.sort("entry_time")


def validate_trades(df: pl.DataFrame) -> list[str]:
    warnings: list[str] = []

    unknown = df.filter(~pl.col("outcome").is_in(list(OUTCOME_VALUES)))
    if len(unknown) > 0:
        warnings.append(f"Found {len(unknown)} trades with unknown outcome (ignored)")

    if "r_multiple" not in df.columns:
        warnings.append("No r_multiple column; reward:risk falls back to 1.0")
    else:
        missing_r = df.filter(pl.col("r_multiple").is_null())
        if len(missing_r) > 0:
            warnings.append(f"Found {len(missing_r)} trades without r_multiple")

    if "risk_cents" in df.columns:
        zero_risk = df.filter(pl.col("risk_cents").is_null() | (pl.col("risk_cents") <= 0))
        if len(zero_risk) > 0:
            warnings.append(f"Found {len(zero_risk)} trades without a planned risk")

    return warnings


def trades_from_frame(df: pl.DataFrame) -> list[Trade]:
    trades: list[Trade] = []
    for row in df.iter_rows(named=True):
        if row["outcome"] not in OUTCOME_VALUES:
            continue
        entry_time = row["entry_time"]
        if isinstance(entry_time, str):
            entry_time = datetime.fromisoformat(entry_time)
        trades.append(Trade(
            outcome=TradeOutcome(row["outcome"]),
            r_multiple=row.get("r_multiple"),
            pnl_cents=int(row["pnl_cents"]),
            risk_cents=row.get("risk_cents"),
            commission_cents=int(row.get("commission_cents") or 0) + int(row.get("fees_cents") or 0),
            entry_time=entry_time,
            strategy_name=row.get("strategy_name") or "",
        ))
    logger.info("trades_loaded", count=len(trades), skipped=len(df) - len(trades))
    return trades
