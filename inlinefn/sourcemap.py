"""
Inline source map lookup.

The bundler and the downgrader both append a base64 data-URL source map to
their output. When the downgrader rejects the bundled source it reports a
position inside the bundle; this module maps that position back to the
module and line the user actually wrote.

Only the subset of Source Map v3 needed for position lookup is handled:
`sources`, `sourceRoot` and `mappings`.
"""

import base64
import binascii
import bisect
import json
import re
from dataclasses import dataclass
from typing import Any, Optional


_BASE64_DIGITS = {c: i for i, c in enumerate(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
)}

INLINE_MAP_PATTERN = re.compile(
    r"//[#@]\s*sourceMappingURL=data:application/json(?:;charset=[^;,]+)?;base64,([A-Za-z0-9+/=]+)\s*$",
    re.MULTILINE,
)


@dataclass(frozen=True)
class SourceLocation:
    """A 1-based line and 0-based column inside a named source."""
    file: Optional[str]
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self) -> str:
        parts = [self.file or "<unknown>"]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)


def decode_vlq(segment: str) -> list[int]:
    """
    Decode one base64 VLQ mapping segment into its integer fields.

    Raises:
        ValueError: If the segment contains a non-base64 character or ends
                    in the middle of a value
    """
    values = []
    value = 0
    shift = 0
    for char in segment:
        try:
            digit = _BASE64_DIGITS[char]
        except KeyError:
            raise ValueError(f"Invalid VLQ character: {char!r}")
        continuation = digit & 32
        value += (digit & 31) << shift
        if continuation:
            shift += 5
            continue
        negative = value & 1
        value >>= 1
        values.append(-value if negative else value)
        value = 0
        shift = 0

    if shift:
        raise ValueError(f"Truncated VLQ segment: {segment!r}")
    return values


def extract_inline_source_map(code: str) -> Optional[dict[str, Any]]:
    """Return the last inline source map in `code`, or None if there is none."""
    matches = INLINE_MAP_PATTERN.findall(code)
    if not matches:
        return None
    try:
        return json.loads(base64.b64decode(matches[-1]).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
        return None


class SourceMap:
    """
    Decoded source map supporting generated -> original position lookup.

    Usage:
        source_map = SourceMap.from_source(bundled_code)
        if source_map:
            location = source_map.original_location(line=12, column=4)
    """

    def __init__(self, data: dict[str, Any]):
        self.sources: list[str] = list(data.get("sources", []))
        self.source_root: str = data.get("sourceRoot") or ""
        self._lines = self._decode_mappings(data.get("mappings", ""))

    @classmethod
    def from_source(cls, code: str) -> Optional["SourceMap"]:
        """Build a SourceMap from the inline map embedded in `code`."""
        data = extract_inline_source_map(code)
        if data is None:
            return None
        try:
            return cls(data)
        except ValueError:
            return None

    @staticmethod
    def _decode_mappings(mappings: str) -> list[list[tuple[int, ...]]]:
        """
        Decode the `mappings` string into absolute segments per generated line.

        Each segment is (generated_column,) or
        (generated_column, source_index, original_line, original_column).
        Source index, original line and original column are relative to the
        previous segment across lines; the generated column resets per line.
        """
        lines: list[list[tuple[int, ...]]] = []
        source_index = original_line = original_column = 0

        for line in mappings.split(";"):
            segments: list[tuple[int, ...]] = []
            generated_column = 0
            for raw in line.split(","):
                if not raw:
                    continue
                fields = decode_vlq(raw)
                generated_column += fields[0]
                if len(fields) >= 4:
                    source_index += fields[1]
                    original_line += fields[2]
                    original_column += fields[3]
                    segments.append((generated_column, source_index, original_line, original_column))
                else:
                    segments.append((generated_column,))
            segments.sort(key=lambda s: s[0])
            lines.append(segments)

        return lines

    def original_location(self, line: int, column: int = 0) -> Optional[SourceLocation]:
        """
        Map a generated position to its original position.

        Args:
            line: 1-based generated line
            column: 0-based generated column

        Returns:
            SourceLocation with a 1-based original line, or None when the
            position has no mapping
        """
        if line < 1 or line > len(self._lines):
            return None

        segments = self._lines[line - 1]
        if not segments:
            return None

        columns = [s[0] for s in segments]
        index = bisect.bisect_right(columns, column) - 1
        segment = segments[max(index, 0)]
        if len(segment) < 4:
            return None

        _, source_index, original_line, original_column = segment
        if source_index >= len(self.sources):
            return None

        source = self.sources[source_index]
        if self.source_root:
            source = f"{self.source_root.rstrip('/')}/{source}"
        return SourceLocation(file=source, line=original_line + 1, column=original_column)
