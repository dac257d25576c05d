"""Shared fixtures for numdrill tests."""

from __future__ import annotations

import random

import pytest
import yaml

from numdrill.config.settings import Settings


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def config_file(tmp_path):
    """A config file overriding a few tuning values."""
    path = tmp_path / "config.yaml"
    data = {
        "xp": {"pipeline": "multiplier", "min_questions": 10},
        "placement": {"min_answers": 15},
        "adaptive": {"target_time_ms": 2500},
    }
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path
