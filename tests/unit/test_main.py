import pytest

from forms_backend.main import parse_args, run


@pytest.mark.unit
def test_cli_returns_non_zero_for_invalid_port(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = run(["--port", "0", "--dry-run-startup"])
    captured = capsys.readouterr()

    assert exit_code == 2
    assert "ERROR: invalid port" in captured.err


@pytest.mark.unit
def test_cli_dry_run_succeeds_in_memory_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)

    exit_code = run(["--dry-run-startup"])

    assert exit_code == 0


@pytest.mark.unit
def test_cli_overrides_are_optional() -> None:
    args = parse_args(["--host", "127.0.0.1", "--port", "9000"])

    assert args.host == "127.0.0.1"
    assert args.port == 9000
    assert parse_args([]).port is None
