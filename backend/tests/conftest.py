"""Pytest configuration: every test runs against a fresh copy of the seed data."""
from __future__ import annotations

import os
import shutil
import sys
from pathlib import Path

import pytest


TESTS_DIR = Path(__file__).resolve().parent
TMP = TESTS_DIR / ".tmp_db"
SEED_DIR = TESTS_DIR.parents[1] / "sample_data" / "db"

os.environ["DATA_DIR"] = str(TMP)
os.environ["OPENAI_API_KEY"] = ""
os.environ["OPENAI_BASE_URL"] = ""
os.environ["DEFAULT_TENANT_ID"] = ""
os.environ["AGENT_MAX_LOOPS"] = "5"
os.environ["AGENT_HISTORY_MESSAGES"] = "4"
os.environ["LOG_JSON"] = "false"

sys.path.insert(0, str(TESTS_DIR.parent))


@pytest.fixture(autouse=True)
def seeded_db() -> Path:
    if TMP.exists():
        shutil.rmtree(TMP)
    TMP.mkdir(parents=True)
    for path in SEED_DIR.glob("*.json"):
        shutil.copy(path, TMP / path.name)
    return TMP
