"""Shared fixtures for API route tests."""

import pytest
from fastapi.testclient import TestClient

from corral.detection.liveness import LivenessTracker
from corral.engine import StatusEngine, get_engine
from corral.server import app
from corral.services.history import HistoryStore
from corral.services.tokens import TokenUsageAggregator
from corral.services.usage import UsageService


@pytest.fixture
def api_engine(tmp_path):
    """Engine backed by temp files with every PID reported dead."""
    return StatusEngine(
        registry_path=tmp_path / 'sessions.json',
        registry_command=[],
        history=HistoryStore(tmp_path / 'history.json'),
        tokens=TokenUsageAggregator(),
        usage=UsageService(script=''),
        tracker=LivenessTracker(),
        probe=lambda pid: False,
        cleanup_command=['lasso', 'cleanup'],
    )


@pytest.fixture
def client(api_engine):
    """Create test client wired to the temp engine."""
    app.dependency_overrides[get_engine] = lambda: api_engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
