"""
Headless Run Report - Smoke Test
"""

from bagging_line.simulation.profiles import LineProfile
from bagging_line.simulation.report import run_line, summarize, plot_weight_distribution, main


SMALL = LineProfile(
    name="small", base_weight=25.0, container_weight=0.010, giveaway=0.020,
    bagging_tolerance=0.030, sensor_accuracy=0.005, range_min=25.000,
    range_max=25.110, throughput_rate=30000.0,
)


def test_summary_adds_up():
    verdicts = run_line(SMALL, ticks=6000, seed=5, speed=3.0)
    summary = summarize(verdicts)

    assert summary["total"] == len(verdicts) > 0
    assert summary["passed"] + summary["CONTAMINANT"] + summary["RANGE"] + summary["TOLERANCE"] == summary["total"]
    assert 0.0 <= summary["pass_rate_percent"] <= 100.0


def test_empty_summary():
    assert summarize([])["pass_rate_percent"] == 0.0


def test_plot_written(tmp_path):
    verdicts = run_line(SMALL, ticks=3000, speed=3.0)
    path = plot_weight_distribution(verdicts, SMALL, str(tmp_path / "weights.png"))
    assert (tmp_path / "weights.png").stat().st_size > 0
    assert path.endswith("weights.png")


def test_cli(tmp_path, capsys):
    out = tmp_path / "report.png"
    summary = main(["--profile", "small", "--ticks", "1500", "--speed", "3", "--out", str(out)])

    assert out.exists()
    assert summary["total"] > 0
    assert "RUN REPORT" in capsys.readouterr().out
