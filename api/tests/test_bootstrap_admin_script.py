from __future__ import annotations

import subprocess
import sys
from pathlib import Path


SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "bootstrap_admin.py"


def _run_script(*args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, str(SCRIPT_PATH), *args],
        check=False,
        capture_output=True,
        text=True,
    )


def test_bootstrap_script_emits_sql_for_user_id_target() -> None:
    user_id = "00000000-0000-0000-0000-000000000123"
    completed = _run_script("--user-id", user_id, "--role", "hr", "--actor", "cli")
    output = completed.stdout

    assert completed.returncode == 0
    assert "update users\nset role = 'hr', updated_at = now()" in output
    assert f"where id = '{user_id}'::uuid and deleted_at is null;" in output
    assert "update auth.users" in output
    assert "jsonb_build_object('role', 'hr')" in output
    assert "select 'user', id, 'role_bootstrap', 'cli'" in output


def test_bootstrap_script_emits_sql_for_email_target() -> None:
    output = _run_script("--email", "O'Neil@example.com").stdout

    assert "where lower(email) = lower('O''Neil@example.com')" in output
    assert "jsonb_build_object('email', 'O''Neil@example.com', 'role', 'admin')" in output


def test_bootstrap_script_rejects_unknown_role() -> None:
    completed = _run_script("--email", "admin@example.com", "--role", "moderator")

    assert completed.returncode != 0
    assert "invalid choice" in completed.stderr
