"""End-to-end tests for the status engine pipeline."""

import json
import threading
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from corral.detection.liveness import LivenessTracker
from corral.detection.registry import load_registry_file
from corral.engine import StatusEngine, get_engine, reset_engine
from corral.errors import CommandError, RegistryError
from corral.services.commands import CommandResult
from corral.services.history import HistoryStore
from corral.services.tokens import TokenUsageAggregator
from corral.services.usage import UsageService

NOW = 1_710_000_000.0


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


def write_registry(path, doc):
    path.write_text(json.dumps(doc))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_path, clock):
    return StatusEngine(
        registry_path=tmp_path / 'sessions.json',
        registry_command=[],
        history=HistoryStore(tmp_path / 'history.json'),
        tokens=TokenUsageAggregator(clock=clock),
        usage=UsageService(script='', clock=clock),
        tracker=LivenessTracker(),
        probe=lambda pid: False,
        cleanup_command=['lasso', 'cleanup'],
        clock=clock,
    )


class TestConstruction:
    """Tests for StatusEngine collaborator injection."""

    def test_injected_collaborators_are_kept(self, tmp_path, clock):
        """Test empty collaborators are used as given, not replaced by defaults."""
        history = HistoryStore(tmp_path / 'history.json')
        tokens = TokenUsageAggregator(clock=clock)
        usage = UsageService(script='', clock=clock)
        tracker = LivenessTracker()

        engine = StatusEngine(history=history, tokens=tokens, usage=usage, tracker=tracker)

        assert engine.history is history
        assert engine.tokens is tokens
        assert engine.usage is usage
        assert engine.tracker is tracker


class TestGetSessions:
    """Tests for StatusEngine.get_sessions."""

    @pytest.mark.asyncio
    async def test_dead_working_session_end_to_end(self, engine):
        """Test a crashed agent is reported exited and recorded in history."""
        write_registry(engine.registry_path, {'sessions': {'a1': {
            'pid': 999999,
            'status': 'working',
            'createdAt': '2024-01-01T00:00:00Z',
        }}})

        sessions = await engine.get_sessions()

        assert len(sessions) == 1
        assert sessions[0]['id'] == 'a1'
        assert sessions[0]['status'] == 'exited'
        assert sessions[0]['alive'] is False

        history = json.loads((engine.history.path).read_text())['history']
        assert len(history) == 1
        entry = history[0]
        assert entry['id'] == 'a1'
        assert entry['createdAt'] == '2024-01-01T00:00:00Z'
        assert entry['endedAt'] is not None
        assert len(entry['statusHistory']) == 1
        assert entry['statusHistory'][0]['status'] == 'exited'

    @pytest.mark.asyncio
    async def test_missing_registry_is_empty(self, engine):
        assert await engine.get_sessions() == []

    @pytest.mark.asyncio
    async def test_invalid_registry_raises(self, engine):
        engine.registry_path.write_text('{oops')

        with pytest.raises(RegistryError):
            await engine.get_sessions()

    @pytest.mark.asyncio
    async def test_token_totals_annotated(self, engine, tmp_path):
        workspace = tmp_path / 'ws'
        (workspace / '.lasso' / 'logs').mkdir(parents=True)
        (workspace / '.lasso' / 'logs' / 'run.jsonl').write_text('{"tokens": 42}\n')
        write_registry(engine.registry_path, [
            {'id': 'a', 'workspacePath': str(workspace)},
            {'id': 'b'},
        ])

        sessions = {s['id']: s for s in await engine.get_sessions()}

        assert sessions['a']['tokensUsed'] == 42
        assert sessions['b']['tokensUsed'] is None

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_poll(self, engine):
        write_registry(engine.registry_path, [{'id': 'a', 'status': 'working'}])
        engine.history = MagicMock()
        engine.history.reconcile.side_effect = OSError('disk full')

        sessions = await engine.get_sessions()

        assert [s['id'] for s in sessions] == ['a']

    @pytest.mark.asyncio
    async def test_tracker_pruned_to_registry(self, engine):
        engine.tracker.mark_alive('gone', 1)
        write_registry(engine.registry_path, [{'id': 'a'}])

        await engine.get_sessions()

        assert engine.tracker.last_alive('gone') is None

    @pytest.mark.asyncio
    async def test_registry_command_preferred(self, engine):
        engine.registry_command = ['lasso', 'status', '--json']
        doc = {'sessions': {'cmd': {'status': 'pending'}}}

        with patch('corral.engine.load_registry_command', AsyncMock(return_value=doc)) as mock_load:
            sessions = await engine.snapshot_sessions()

        mock_load.assert_awaited_once()
        assert [s['id'] for s in sessions] == ['cmd']

    @pytest.mark.asyncio
    async def test_snapshot_does_not_touch_history(self, engine):
        write_registry(engine.registry_path, [{'id': 'a'}])
        await engine.snapshot_sessions()
        assert not engine.history.path.exists()


class TestBlockingWork:
    """Tests that file and process work stays off the event loop thread."""

    @pytest.mark.asyncio
    async def test_registry_pid_check_and_history_run_in_executor(self, engine):
        loop_thread = threading.get_ident()
        seen = {}

        def load(path):
            seen['registry'] = threading.get_ident()
            return load_registry_file(path)

        def probe(pid):
            seen['probe'] = threading.get_ident()
            return True

        def reconcile(sessions, now_ms):
            seen['history'] = threading.get_ident()

        engine.probe = probe
        engine.history = MagicMock()
        engine.history.reconcile.side_effect = reconcile
        write_registry(engine.registry_path, [{'id': 'a', 'pid': 4242, 'status': 'working'}])

        with patch('corral.engine.load_registry_file', side_effect=load):
            sessions = await engine.get_sessions()

        assert sessions[0]['alive'] is True
        assert set(seen) == {'registry', 'probe', 'history'}
        assert all(ident != loop_thread for ident in seen.values())


class TestGetHistory:
    @pytest.mark.asyncio
    async def test_filters_passed_through(self, engine):
        write_registry(engine.registry_path, [
            {'id': 'a', 'status': 'waiting', 'repo': 'acme/one'},
            {'id': 'b', 'status': 'merged', 'repo': 'acme/two'},
        ])
        await engine.get_sessions()

        assert [e['id'] for e in engine.get_history(active=True)] == ['a']
        assert [e['id'] for e in engine.get_history(repo='acme/two')] == ['b']


class TestGetUsage:
    @pytest.mark.asyncio
    async def test_report_uses_session_tokens(self, engine):
        report = await engine.get_usage()
        assert [p['id'] for p in report['providers']] == ['claude', 'local']


class TestCleanup:
    """Tests for StatusEngine.cleanup."""

    @pytest.mark.asyncio
    async def test_cleanup_invalidates_caches(self, engine):
        engine.tokens.tokens_for('/nonexistent/workspace')
        await engine.get_usage()
        result = CommandResult(['lasso', 'cleanup'], 0, 'done', '')

        with patch('corral.engine.run_cleanup', AsyncMock(return_value=result)) as mock_cleanup:
            assert await engine.cleanup() is result

        mock_cleanup.assert_awaited_once_with(['lasso', 'cleanup'], timeout=engine.cleanup_timeout)
        assert engine.tokens.cache_size == 0
        assert engine.usage.cache.peek() is None

    @pytest.mark.asyncio
    async def test_cleanup_failure_propagates(self, engine):
        with patch('corral.engine.run_cleanup', AsyncMock(side_effect=CommandError('lasso exited with status 1'))):
            with pytest.raises(CommandError):
                await engine.cleanup()


class TestGlobalEngine:
    def test_singleton(self):
        reset_engine()
        try:
            assert get_engine() is get_engine()
        finally:
            reset_engine()
