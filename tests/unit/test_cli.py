"""
Unit tests for the command line entry point
"""

import pytest

from panel_splitter.cli import EXIT_FAILED, EXIT_INVALID_SETTINGS, EXIT_OK, build_layout, build_parser, main
from panel_splitter.pod2_grid_planning import ClipStrategy, MarkKind
from tests.conftest import make_svg


@pytest.fixture
def design_file(tmp_path):
    path = tmp_path / "poster.svg"
    path.write_text(make_svg('<rect x="0" y="0" width="600" height="400" fill="#333"/>'), encoding="utf-8")
    return path


class TestBuildLayout:
    """Test option mapping"""

    def test_defaults(self):
        layout = build_layout(build_parser().parse_args(["in.svg"]))
        assert layout.bed_width == 300
        assert layout.clip_strategy == ClipStrategy.EXACT_TRIM
        assert not layout.registration_marks.enabled
        assert layout.assembly_map.enabled

    def test_marks_and_strategy(self):
        args = build_parser().parse_args(["in.svg", "--marks", "pinhole", "--strategy", "fast-mask", "--start-at-zero"])
        layout = build_layout(args)
        assert layout.registration_marks.enabled
        assert layout.registration_marks.kind == MarkKind.PINHOLE
        assert layout.clip_strategy == ClipStrategy.FAST_MASK
        assert not layout.start_index_at_one


class TestMain:
    """Test end-to-end export"""

    def test_export(self, design_file, tmp_path):
        """Test tile files, assembly map and summary are written"""
        out = tmp_path / "out"
        assert main([str(design_file), "-o", str(out), "-q", "--marks", "crosshair"]) == EXIT_OK

        tiles = sorted(p.name for p in out.glob("poster_*.svg"))
        assert len(tiles) == 9
        assert tiles[0] == "poster_R01C01.svg"
        assert (out / "assembly_map.svg").exists()
        summary = (out / "summary.txt").read_text(encoding="utf-8")
        assert "Exported tiles: 9" in summary
        assert 'id="registration-marks"' in (out / "poster_R01C01.svg").read_text(encoding="utf-8")

    def test_default_output_dir(self, design_file):
        """Test output lands next to the input"""
        assert main([str(design_file), "-q", "--no-assembly-map"]) == EXIT_OK
        out = design_file.with_name("poster_tiles")
        assert len(list(out.glob("poster_*.svg"))) == 9
        assert not (out / "assembly_map.svg").exists()

    def test_invalid_settings(self, design_file, tmp_path):
        """Test invalid layouts exit before reading"""
        assert main([str(design_file), "-o", str(tmp_path / "out"), "--margin", "150"]) == EXIT_INVALID_SETTINGS
        assert not (tmp_path / "out").exists()

    def test_invalid_mark_size(self, design_file):
        """Test field validation errors are settings errors"""
        assert main([str(design_file), "--marks", "crosshair", "--mark-size", "0"]) == EXIT_INVALID_SETTINGS

    def test_missing_file(self, tmp_path):
        """Test unreadable input"""
        assert main([str(tmp_path / "missing.svg")]) == EXIT_FAILED

    def test_malformed_file(self, tmp_path):
        """Test unparsable input"""
        path = tmp_path / "broken.svg"
        path.write_text("<svg><rect></svg", encoding="utf-8")
        assert main([str(path), "-q"]) == EXIT_FAILED
