"""Tests for orchestrator action routes."""

from unittest.mock import AsyncMock

from corral.errors import CommandError
from corral.services.commands import CommandResult


class TestCleanupEndpoint:
    """Tests for POST /api/cleanup endpoint."""

    def test_success(self, client, api_engine):
        api_engine.cleanup = AsyncMock(return_value=CommandResult(
            ['lasso', 'cleanup'], 0, 'Removed 2 sessions\n', '',
        ))

        response = client.post('/api/cleanup')

        assert response.status_code == 200
        data = response.json()
        assert data['success'] is True
        assert data['stdout'] == 'Removed 2 sessions\n'

    def test_failure_is_502(self, client, api_engine):
        api_engine.cleanup = AsyncMock(side_effect=CommandError(
            'lasso exited with status 2', command=['lasso', 'cleanup'], returncode=2, stderr='locked',
        ))

        response = client.post('/api/cleanup')

        assert response.status_code == 502
        data = response.json()
        assert data['success'] is False
        assert data['stderr'] == 'locked'
        assert data['timedOut'] is False

    def test_timeout_is_504(self, client, api_engine):
        api_engine.cleanup = AsyncMock(side_effect=CommandError(
            'lasso timed out after 30s', command=['lasso', 'cleanup'], timed_out=True,
        ))

        response = client.post('/api/cleanup')

        assert response.status_code == 504
        assert response.json()['timedOut'] is True

    def test_get_not_allowed(self, client):
        assert client.get('/api/cleanup').status_code in (404, 405)
