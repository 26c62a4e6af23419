"""Tests for inline source map lookup."""

import pytest

from inlinefn.sourcemap import (
    SourceLocation,
    SourceMap,
    decode_vlq,
    extract_inline_source_map,
)


class TestDecodeVlq:
    """Tests for decode_vlq."""

    @pytest.mark.parametrize(
        "segment, expected",
        [
            ("A", [0]),
            ("C", [1]),
            ("D", [-1]),
            ("AACA", [0, 0, 1, 0]),
            ("gB", [16]),
        ],
    )
    def test_values(self, segment, expected):
        assert decode_vlq(segment) == expected

    def test_invalid_character(self):
        with pytest.raises(ValueError, match="Invalid VLQ character"):
            decode_vlq("A!")

    def test_truncated(self):
        with pytest.raises(ValueError, match="Truncated"):
            decode_vlq("g")


class TestExtractInlineSourceMap:
    """Tests for extract_inline_source_map."""

    def test_finds_map(self, source_map_comment):
        code = "var a = 1;\n" + source_map_comment(["src/index.js"], "AAAA")
        data = extract_inline_source_map(code)
        assert data["sources"] == ["src/index.js"]

    def test_uses_last_map(self, source_map_comment):
        code = source_map_comment(["first.js"], "AAAA") + "var a;\n" + source_map_comment(["second.js"], "AAAA")
        assert extract_inline_source_map(code)["sources"] == ["second.js"]

    def test_no_map(self):
        assert extract_inline_source_map("var a = 1;\n") is None


class TestSourceMap:
    """Tests for SourceMap.original_location."""

    @pytest.fixture
    def source_map(self, source_map_comment):
        return SourceMap.from_source("x\n" + source_map_comment(["src/index.js"], "AAAA;AACA;AAEA"))

    def test_maps_lines(self, source_map):
        assert source_map.original_location(1) == SourceLocation("src/index.js", 1, 0)
        assert source_map.original_location(2) == SourceLocation("src/index.js", 2, 0)
        assert source_map.original_location(3) == SourceLocation("src/index.js", 4, 0)

    def test_unmapped_line(self, source_map):
        assert source_map.original_location(10) is None
        assert source_map.original_location(0) is None

    def test_source_root(self):
        source_map = SourceMap({"sources": ["index.js"], "sourceRoot": "src/", "mappings": "AAAA"})
        assert source_map.original_location(1).file == "src/index.js"

    def test_picks_segment_by_column(self):
        # column 0 -> original line 1, column 10 -> original line 2
        source_map = SourceMap({"sources": ["a.js"], "mappings": "AAAA,UACA"})
        assert source_map.original_location(1, 0).line == 1
        assert source_map.original_location(1, 12).line == 2

    def test_from_source_without_map(self):
        assert SourceMap.from_source("var a;\n") is None

    def test_location_str(self):
        assert str(SourceLocation("src/index.js", 4, 2)) == "src/index.js:4:2"
        assert str(SourceLocation(None)) == "<unknown>"
