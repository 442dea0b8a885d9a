import json

from tradebot.ai_boundary import parse_script_output
from tradebot.cli import main


def test_cli_prints_marker_output_and_writes_files(tmp_path, capsys):
    exit_code = main(["--length", "60", "--seed", "3", "--output-dir", str(tmp_path), "--plot"])
    assert exit_code == 0

    stdout = capsys.readouterr().out
    summary, equity = parse_script_output(stdout)
    assert len(equity) == 60

    written = json.loads((tmp_path / "summary.json").read_text())
    assert written["n_trades"] == summary.n_trades
    assert (tmp_path / "equity_curve.csv").read_text().startswith("index,equity\n")
    assert (tmp_path / "equity_curve.png").stat().st_size > 0


def test_cli_reports_invalid_parameters(capsys):
    assert main(["--length", "0"]) == 1
    assert "Backtest failed" in capsys.readouterr().err


def test_cli_rejects_negative_seed(capsys):
    assert main(["--seed", "-1", "--length", "10"]) == 1
    assert "seed must be a non-negative integer" in capsys.readouterr().err
