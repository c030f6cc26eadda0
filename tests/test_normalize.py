"""Tests for timestamp and number normalization."""

import math
from datetime import datetime, timezone

import pytest

from corral.normalize import coerce_number, coerce_timestamp, to_iso

JAN_1_2024_MS = 1704067200000


class TestCoerceTimestamp:
    """Tests for coerce_timestamp function."""

    def test_epoch_seconds_scaled(self):
        """Test epoch seconds are converted to milliseconds."""
        assert coerce_timestamp(1704067200) == JAN_1_2024_MS

    def test_epoch_milliseconds_passthrough(self):
        """Test epoch milliseconds are returned unchanged."""
        assert coerce_timestamp(JAN_1_2024_MS + 123) == JAN_1_2024_MS + 123

    def test_fractional_seconds(self):
        """Test float seconds keep millisecond precision."""
        assert coerce_timestamp(1704067200.5) == JAN_1_2024_MS + 500

    @pytest.mark.parametrize('value', [0, 1, -5, 999_999_999, 1e9])
    def test_small_numbers_rejected(self, value):
        """Test numbers at or below 1e9 are treated as invalid."""
        assert coerce_timestamp(value) is None

    def test_numeric_string(self):
        """Test bare numeric strings are parsed as numbers."""
        assert coerce_timestamp('1704067200') == JAN_1_2024_MS
        assert coerce_timestamp(' 1,704,067,200 ') == JAN_1_2024_MS

    def test_iso_string_with_z(self):
        """Test ISO-8601 strings with Z suffix."""
        assert coerce_timestamp('2024-01-01T00:00:00Z') == JAN_1_2024_MS

    def test_iso_string_with_offset(self):
        """Test ISO-8601 strings with a UTC offset."""
        assert coerce_timestamp('2024-01-01T02:00:00+02:00') == JAN_1_2024_MS

    def test_iso_string_with_five_digit_fraction(self):
        """Test fractions that are neither 3 nor 6 digits still parse."""
        assert coerce_timestamp('2024-01-01T00:00:00.12345Z') == JAN_1_2024_MS + 123
        assert coerce_timestamp('2024-01-01T00:00:00.5') == JAN_1_2024_MS + 500

    def test_date_only_string_is_utc(self):
        """Test date-only strings are midnight UTC."""
        assert coerce_timestamp('2024-01-01') == JAN_1_2024_MS

    def test_slash_date_string(self):
        """Test other common date formats."""
        assert coerce_timestamp('2024/01/01') == JAN_1_2024_MS

    def test_rfc2822_string(self):
        """Test RFC 2822 style dates."""
        assert coerce_timestamp('Mon, 01 Jan 2024 00:00:00 GMT') == JAN_1_2024_MS

    def test_datetime_object(self):
        """Test aware datetime objects."""
        assert coerce_timestamp(datetime(2024, 1, 1, tzinfo=timezone.utc)) == JAN_1_2024_MS

    @pytest.mark.parametrize('value', [None, '', '   ', 'garbage', 'not a date at all',
                                       True, False, [], {}, float('nan'), float('inf')])
    def test_invalid_inputs_return_none(self, value):
        """Test garbage never raises and yields None."""
        assert coerce_timestamp(value) is None


class TestCoerceNumber:
    """Tests for coerce_number function."""

    def test_int_passthrough(self):
        assert coerce_number(5) == 5

    def test_float_passthrough(self):
        assert coerce_number(5.5) == 5.5

    def test_thousands_separators_stripped(self):
        """Test comma-formatted strings."""
        assert coerce_number('1,234') == 1234
        assert coerce_number('1,234.5') == 1234.5
        assert coerce_number('12,345,678') == 12345678

    def test_whitespace_and_sign(self):
        assert coerce_number(' 42 ') == 42
        assert coerce_number('-3') == -3

    def test_exponent(self):
        assert coerce_number('1e3') == 1000.0

    @pytest.mark.parametrize('value', [None, True, False, '', 'abc', '12abc', '1,23',
                                       float('nan'), [], {}])
    def test_invalid_inputs_return_none(self, value):
        """Test non-numeric values yield None."""
        assert coerce_number(value) is None

    def test_result_types(self):
        """Test integers stay integers and decimals become floats."""
        assert isinstance(coerce_number('10'), int)
        assert isinstance(coerce_number('10.0'), float)
        assert not math.isnan(coerce_number('0.1'))


class TestIsoHelpers:
    """Tests for to_iso."""

    def test_whole_seconds_format(self):
        """Test whole-second timestamps omit milliseconds."""
        assert to_iso(JAN_1_2024_MS) == '2024-01-01T00:00:00Z'

    def test_millisecond_format(self):
        assert to_iso(JAN_1_2024_MS + 123) == '2024-01-01T00:00:00.123Z'

    def test_none(self):
        assert to_iso(None) is None

