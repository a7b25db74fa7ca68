import json

import pytest
import structlog
import yaml

import tradesim.main as tradesim_main
from tradesim.main import main
from tradesim.simulation.observer import StructlogObserver


@pytest.fixture
def settings_file(tmp_path):
    def _write(**simulation_overrides):
        simulation = {"simulation_count": 100, "initial_balance_cents": 5_000_000, "seed": 1}
        simulation.update(simulation_overrides)
        raw = {
            "simulation": simulation,
            "edge": {"win_rate": 55, "reward_risk_ratio": 1.5, "commission_cents": 200},
            "template": "r-multiples",
            "output": {"results_dir": str(tmp_path / "out")},
        }
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump(raw))
        return path
    return _write


class TestMain:
    def test_writes_results(self, settings_file, tmp_path, capsys):
        assert main([str(settings_file())]) == 0
        output = json.loads((tmp_path / "out" / "simulation_results.json").read_text())
        assert output["request"]["profile"]["name"] == "R-Multiples"
        assert "MONTE CARLO: R-Multiples" in capsys.readouterr().out

    def test_template_flag(self, settings_file, tmp_path):
        assert main([str(settings_file()), "--template", "institutional"]) == 0
        output = json.loads((tmp_path / "out" / "simulation_results.json").read_text())
        assert output["request"]["profile"]["name"] == "Institutional"

    def test_trades_flag(self, settings_file, tmp_path):
        rows = ["entry_time,outcome,pnl_cents,r_multiple"]
        for i in range(12):
            outcome, r = ("win", 2.0) if i % 2 else ("loss", -1.0)
            rows.append(f"2024-01-{i + 2:02d}T09:30:00,{outcome},{int(r * 10000)},{r}")
        trades = tmp_path / "trades.csv"
        trades.write_text("\n".join(rows) + "\n")

        assert main([str(settings_file()), "--trades", str(trades)]) == 0
        output = json.loads((tmp_path / "out" / "simulation_results.json").read_text())
        assert output["source_stats"]["total_trades"] == 12
        assert output["request"]["profile"]["win_rate"] == pytest.approx(50.0)

    def test_trace_flag_from_argv(self, settings_file, monkeypatch):
        created = []

        class _RecordingObserver(StructlogObserver):
            def __init__(self, max_runs=1):
                super().__init__(max_runs)
                created.append(max_runs)

        monkeypatch.setattr(tradesim_main, "StructlogObserver", _RecordingObserver)
        assert main([str(settings_file()), "--trace"]) == 0
        assert created == [1]
        assert structlog.get_config()["wrapper_class"] is structlog.make_filtering_bound_logger(10)

        assert main([str(settings_file())]) == 0
        assert created == [1]
        assert structlog.get_config()["wrapper_class"] is structlog.make_filtering_bound_logger(20)

    def test_rejected_request(self, settings_file):
        assert main([str(settings_file(simulation_count=10))]) == 1
