"""
Unit tests for the path data reader (POD1)
"""

import pytest

from panel_splitter.common.errors import ParseError
from panel_splitter.pod1_document_ingestion.path_data import (
    MAX_CURVE_SEGMENTS,
    flatten_cubic,
    parse_path_data,
)


class TestParsePathData:
    """Test path data parsing"""

    def test_closed_polyline(self):
        """Test absolute lineto and closepath"""
        subpaths = parse_path_data("M0 0 L10 0 L10 10 Z")
        assert len(subpaths) == 1
        assert subpaths[0].closed
        assert subpaths[0].points == [(0, 0), (10, 0), (10, 10)]

    def test_implicit_lineto(self):
        """Test extra pairs after moveto"""
        subpaths = parse_path_data("M0 0 10 0 10 10")
        assert subpaths[0].points == [(0, 0), (10, 0), (10, 10)]
        assert not subpaths[0].closed

    def test_relative_commands(self):
        """Test relative moveto, lineto and closepath"""
        subpaths = parse_path_data("m10 10 l5 0 l0 5 z")
        assert subpaths[0].points == [(10, 10), (15, 10), (15, 15)]
        assert subpaths[0].closed

    def test_horizontal_vertical(self):
        """Test H and V"""
        subpaths = parse_path_data("M0 0 H10 V10 H0 Z")
        assert subpaths[0].points == [(0, 0), (10, 0), (10, 10), (0, 10)]

    def test_multiple_subpaths(self):
        """Test several movetos"""
        subpaths = parse_path_data("M0 0 L1 1 M5 5 L6 6")
        assert len(subpaths) == 2
        assert subpaths[1].points[0] == (5, 5)

    def test_compact_numbers(self):
        """Test numbers separated only by signs and dots"""
        subpaths = parse_path_data("M0,0L10-5L.5.5")
        assert subpaths[0].points == [(0, 0), (10, -5), (0.5, 0.5)]

    def test_cubic_ends_at_endpoint(self):
        """Test cubic curves are flattened"""
        subpaths = parse_path_data("M0 0 C0 10 10 10 10 0")
        points = subpaths[0].points
        assert len(points) > 2
        assert points[-1] == (10, 0)
        assert max(y for _, y in points) == pytest.approx(7.5, abs=0.1)

    def test_smooth_quadratic(self):
        """Test Q followed by T"""
        subpaths = parse_path_data("M0 0 Q5 10 10 0 T20 0")
        points = subpaths[0].points
        assert points[-1] == (20, 0)
        assert min(y for _, y in points) == pytest.approx(-5, abs=0.1)

    def test_arc_with_packed_flags(self):
        """Test arc flags written without separators"""
        subpaths = parse_path_data("M0 0 A5 5 0 1010 0")
        points = subpaths[0].points
        assert points[-1] == (10, 0)
        assert max(abs(y) for _, y in points) == pytest.approx(5, abs=0.1)

    def test_single_point_dropped(self):
        """Test subpaths without a segment"""
        assert parse_path_data("M5 5") == []
        assert parse_path_data("") == []

    def test_missing_moveto(self):
        """Test data that does not start with moveto"""
        with pytest.raises(ParseError):
            parse_path_data("10 10 L 20 20")

    def test_truncated_command(self):
        """Test a command missing parameters"""
        with pytest.raises(ParseError):
            parse_path_data("M0 0 L10")

    def test_invalid_arc_flag(self):
        """Test arc flags other than 0 and 1"""
        with pytest.raises(ParseError):
            parse_path_data("M0 0 A5 5 0 2 0 10 0")


class TestFlattening:
    """Test curve flattening"""

    def test_segment_limit(self):
        """Test huge curves are capped"""
        points = flatten_cubic((0, 0), (0, 1e9), (1e9, 1e9), (1e9, 0), 0.01)
        assert len(points) <= MAX_CURVE_SEGMENTS

    def test_straight_cubic(self):
        """Test a degenerate cubic collapses to one segment"""
        assert flatten_cubic((0, 0), (1, 0), (2, 0), (3, 0), 0.1) == [(3, 0)]
