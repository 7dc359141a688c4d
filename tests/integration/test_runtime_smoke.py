import os
import subprocess
import sys

import pytest


@pytest.mark.integration
def test_service_starts_in_memory_mode_via_dry_run() -> None:
    env = {key: value for key, value in os.environ.items() if key != "DATABASE_URL"}
    proc = subprocess.run(
        [sys.executable, "-m", "forms_backend.main", "--dry-run-startup"],
        capture_output=True,
        text=True,
        check=False,
        env=env,
    )

    assert proc.returncode == 0, proc.stderr
    assert '"message": "dry-run startup complete"' in proc.stdout


@pytest.mark.integration
def test_invalid_port_is_reported_on_stderr() -> None:
    proc = subprocess.run(
        [sys.executable, "-m", "forms_backend.main", "--port", "-1", "--dry-run-startup"],
        capture_output=True,
        text=True,
        check=False,
    )

    assert proc.returncode == 2
    assert "ERROR: invalid port" in proc.stderr
