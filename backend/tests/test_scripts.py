"""Smoke tests for maintenance scripts."""
from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path


BACKEND_ROOT = Path(__file__).resolve().parents[1]


def _run_reset(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "scripts/reset_db.py", *args],
        cwd=str(BACKEND_ROOT),
        capture_output=True,
        text=True,
        check=False,
    )


def test_reset_db_script_seeds_every_collection(tmp_path: Path):
    data_dir = tmp_path / "db"
    proc = _run_reset("--data-dir", str(data_dir))

    assert proc.returncode == 0, f"reset failed:\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"
    for name in ("tenants", "contractors", "knowledge", "work_orders"):
        assert (data_dir / f"{name}.json").exists()
    assert len(json.loads((data_dir / "contractors.json").read_text(encoding="utf-8"))) == 6
    assert "work_orders: 1 record(s)" in proc.stdout


def test_reset_db_script_can_keep_work_orders(tmp_path: Path):
    data_dir = tmp_path / "db"
    data_dir.mkdir()
    (data_dir / "work_orders.json").write_text(json.dumps([{"id": "wo-keep"}]), encoding="utf-8")

    proc = _run_reset("--data-dir", str(data_dir), "--keep-work-orders")

    assert proc.returncode == 0, proc.stderr
    assert json.loads((data_dir / "work_orders.json").read_text(encoding="utf-8")) == [{"id": "wo-keep"}]
    assert "work_orders:" not in proc.stdout


def test_reset_db_script_rejects_missing_seed_folder(tmp_path: Path):
    proc = _run_reset("--seed-dir", str(tmp_path / "nope"), "--data-dir", str(tmp_path / "db"))
    assert proc.returncode != 0
    assert "Seed folder not found" in proc.stderr
