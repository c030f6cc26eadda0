"""Tests for canonical lifecycle states."""

import pytest

from corral.detection.lifecycle import (
    SessionState,
    combined_state,
    is_busy,
    is_in_progress,
    is_terminal,
    normalize_state,
)


class TestNormalizeState:
    """Tests for normalize_state function."""

    @pytest.mark.parametrize('text,expected', [
        ('working', SessionState.WORKING),
        ('Working on #12', SessionState.WORKING),
        ('CLONING repo', SessionState.CLONING),
        ('pending', SessionState.PENDING),
        ('waiting for review', SessionState.WAITING),
        ('merged', SessionState.MERGED),
        ('PR_CLOSED', SessionState.PR_CLOSED),
        ('archived', SessionState.ARCHIVED),
        ('exited', SessionState.EXITED),
        ('dead', SessionState.DEAD),
    ])
    def test_known_markers(self, text, expected):
        assert normalize_state(text) is expected

    def test_unknown_text(self):
        assert normalize_state('idle') is SessionState.UNKNOWN

    def test_none(self):
        assert normalize_state(None) is SessionState.UNKNOWN

    def test_terminal_marker_wins(self):
        """Test strings mentioning both progress and completion count as finished."""
        assert normalize_state('working -> merged') is SessionState.MERGED


class TestPredicates:
    """Tests for lifecycle predicates."""

    @pytest.mark.parametrize('text', ['merged', 'dead', 'exited', 'archived', 'pr_closed'])
    def test_terminal(self, text):
        assert is_terminal(text)

    @pytest.mark.parametrize('text', ['working', 'pending', 'cloning', None, 'idle'])
    def test_not_terminal(self, text):
        assert not is_terminal(text)

    def test_in_progress(self):
        assert is_in_progress('pending')
        assert is_in_progress('Cloning')
        assert not is_in_progress('waiting')

    def test_busy_excludes_pending(self):
        assert is_busy('working')
        assert is_busy('cloning')
        assert not is_busy('pending')

    def test_busy_is_textual(self):
        """Test busy matches the progress word even when a terminal word follows."""
        assert is_busy('working -> merged')
        assert is_busy('Cloning, then exited')
        assert not is_busy(None)
        assert not is_busy('merged')

    def test_combined_state_falls_back_to_activity(self):
        assert combined_state(None, 'working') is SessionState.WORKING
        assert combined_state('merged', 'working') is SessionState.MERGED
