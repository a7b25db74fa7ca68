from __future__ import annotations

from pydantic import ValidationError

from tradesim.api.schemas import BacktestInformedPayload, SimulationPayload


def format_validation_errors(exc: ValidationError) -> list[str]:
    problems: list[str] = []
    for err in exc.errors():
        where = ".".join(str(part) for part in err["loc"]) or "payload"
        problems.append(f"{where}: {err['msg']}")
    return problems


def validate_simulation_payload(payload: dict) -> list[str]:
    """Human-readable problems with a simulation payload; empty means valid."""
    try:
        SimulationPayload.model_validate(payload)
    except ValidationError as e:
        return format_validation_errors(e)
    return []


def validate_backtest_payload(payload: dict) -> list[str]:
    try:
        BacktestInformedPayload.model_validate(payload)
    except ValidationError as e:
        return format_validation_errors(e)
    return []
