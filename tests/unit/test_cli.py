import io

from stat_sampler.cli.stat_sampler import main, parse_args
from stat_sampler.sinks import read_trace


def test_parse_args_defaults():
    """Tests default flag values."""
    args = parse_args([])
    assert args.interval == 1000
    assert args.duration == 0
    assert args.format == "csv"
    assert args.filter == []
    assert args.compression == "none"


def test_cli_console_run():
    """Tests a short console run with a filter."""
    out = io.StringIO()
    code = main(
        ["--interval", "10", "--duration", "60", "--filter", "mem_*", "--log", "WARNING"],
        stream=out,
    )
    assert code == 0
    text = out.getvalue()
    assert "=== system (ID=0)" in text
    assert "mem_total_bytes" in text
    assert "net_rx_bytes" not in text


def test_cli_file_and_trace(tmp_path):
    """Tests CSV and trace output side by side."""
    csv_path = tmp_path / "stats.csv"
    trace_dir = tmp_path / "trace"
    code = main(
        [
            "--interval", "10",
            "--duration", "50",
            "--output", str(csv_path),
            "--trace-dir", str(trace_dir),
            "--compression", "zstd",
            "--log", "WARNING",
        ]
    )
    assert code == 0
    lines = csv_path.read_text().splitlines()
    assert lines[0].startswith("timestamp,source_name,source_id,cpu_user_ms")
    assert len(lines) >= 2
    assert (trace_dir / "metadata").exists()
    assert read_trace(trace_dir / "trace_0", compressed=True)


def test_cli_ring_summary():
    """Tests the ring buffer summary printed at exit."""
    out = io.StringIO()
    code = main(
        ["--interval", "10", "--duration", "50", "--ring-size", "2", "--log", "WARNING"],
        stream=out,
    )
    assert code == 0
    text = out.getvalue()
    assert "Ring buffer holds" in text
    assert "cpu_user_ms" in text


def test_cli_rejects_bad_configuration():
    """Tests exit status 1 on invalid settings."""
    assert main(["--interval", "0", "--log", "WARNING"]) == 1
    assert main(["--interval", "100", "--duration", "50", "--log", "WARNING"]) == 1
    assert main(["--interval", "10", "--ring-size", "0", "--log", "WARNING"]) == 1
