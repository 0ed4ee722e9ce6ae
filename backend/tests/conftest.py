"""Shared fixtures.

Uses the sample-family.json snapshot at the repository root (the Petrov /
Ivanov family, four generations, one duplicate Olga Ivanova record).
"""

import json
import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from family_graph import load_family_graph
from record_store import InMemoryRecordStore


@pytest.fixture
def sample_snapshot_path():
    """Path to the sample family snapshot."""
    return os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
        "sample-family.json"
    )


@pytest.fixture
def sample_snapshot(sample_snapshot_path):
    with open(sample_snapshot_path, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def store(sample_snapshot_path):
    """In-memory record store loaded with the sample family."""
    return InMemoryRecordStore.from_file(sample_snapshot_path)


@pytest.fixture
def anna_graph(store):
    """Family graph rooted at Anna Petrova."""
    return load_family_graph(store, "p-anna")
