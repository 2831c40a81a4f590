"""Order-preserving ``server.properties`` document.

The document keeps every line it was parsed from. Comments, blank lines,
unknown keys and key order survive a parse/serialize cycle byte-for-byte;
only lines whose value was changed through ``set()`` are re-rendered.

Values use Java-properties escaping, the format the game server writes:
``resource-pack=https\\://example.com/pack.zip``.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

_HEX4 = re.compile(r"[0-9a-fA-F]{4}")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_BLANKS = " \t\f"

_DECODE = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_ENCODE = {
    "\\": "\\\\",
    "\t": "\\t",
    "\n": "\\n",
    "\r": "\\r",
    "\f": "\\f",
    ":": "\\:",
    "=": "\\=",
}


def unescape(raw: str) -> str:
    """Decode Java-properties backslash escapes."""
    out: list[str] = []
    i = 0
    while i < len(raw):
        ch = raw[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        nxt = raw[i + 1 : i + 2]
        if nxt == "u" and _HEX4.fullmatch(raw[i + 2 : i + 6]):
            out.append(chr(int(raw[i + 2 : i + 6], 16)))
            i += 6
            continue
        out.append(_DECODE.get(nxt, nxt))
        i += 2
    return "".join(out)


def escape(value: str, *, is_key: bool = False) -> str:
    """Encode a value (or key) with Java-properties backslash escapes."""
    out = "".join(_ENCODE.get(ch, ch) for ch in value)
    if is_key:
        out = out.replace(" ", "\\ ")
    elif out.startswith(" "):
        out = "\\" + out
    return out


@dataclass
class _Line:
    raw: str
    key: str | None = None
    value: str | None = None
    dirty: bool = False

    def render(self) -> str:
        if self.key is None or not self.dirty:
            return self.raw
        return f"{escape(self.key, is_key=True)}={escape(self.value or '')}"


class ConfigDocument:
    """An ordered key/value document with comment and layout preservation.

    Option names are unique from the reader's point of view: when a key
    occurs more than once, the last occurrence wins and is the one
    ``set()`` rewrites.
    """

    def __init__(self, lines: list[_Line] | None = None, *, newline: str = "\n") -> None:
        self._lines: list[_Line] = lines or []
        self._newline = newline
        self._trailing_newline = True

    # ------------------------------------------------------------------
    # Parse / serialize
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, text: str) -> ConfigDocument:
        """Parse ``server.properties`` text."""
        if "\r\n" in text:
            newline = "\r\n"
        elif "\r" in text and "\n" not in text:
            newline = "\r"
        else:
            newline = "\n"
        # Only \n, \r and \r\n end a line; other Unicode breaks are value text
        physical = _LINE_BREAK.split(text)
        if physical[-1] == "":
            physical.pop()
        lines: list[_Line] = []
        i = 0
        while i < len(physical):
            raw = physical[i]
            stripped = raw.lstrip(_BLANKS)
            if not stripped or stripped[0] in "#!":
                lines.append(_Line(raw))
                i += 1
                continue
            # Join continuation lines (odd number of trailing backslashes)
            logical = stripped
            raw_parts = [raw]
            while _continues(logical) and i + 1 < len(physical):
                i += 1
                raw_parts.append(physical[i])
                logical = logical[:-1] + physical[i].lstrip(_BLANKS)
            key, value = _split(logical)
            lines.append(_Line(newline.join(raw_parts), key=key, value=value))
            i += 1
        doc = cls(lines, newline=newline)
        doc._trailing_newline = not text or text.endswith(("\n", "\r"))
        return doc

    def to_text(self) -> str:
        """Serialize back to text; untouched lines are emitted verbatim."""
        body = self._newline.join(line.render() for line in self._lines)
        if self._lines and self._trailing_newline:
            body += self._newline
        return body

    # ------------------------------------------------------------------
    # Mapping access
    # ------------------------------------------------------------------

    def _find(self, key: str) -> _Line | None:
        for line in reversed(self._lines):
            if line.key == key:
                return line
        return None

    def get(self, key: str) -> str | None:
        """Return the value for *key*, or ``None`` if the key is absent."""
        line = self._find(key)
        return None if line is None else line.value

    def set(self, key: str, value: str) -> None:
        """Set *key* in place, or append it if the key is new."""
        line = self._find(key)
        if line is None:
            self._lines.append(_Line("", key=key, value=value, dirty=True))
            return
        if line.value != value:
            line.value = value
            line.dirty = True

    def keys(self) -> list[str]:
        """Unique option names in document order (first occurrence)."""
        seen: dict[str, None] = {}
        for line in self._lines:
            if line.key is not None:
                seen.setdefault(line.key, None)
        return list(seen)

    def items(self) -> Iterator[tuple[str, str]]:
        for key in self.keys():
            yield key, self.get(key) or ""

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._find(key) is not None

    def __len__(self) -> int:
        return len(self.keys())

    def copy(self) -> ConfigDocument:
        """Return an independent copy (used to stage mutations)."""
        doc = ConfigDocument(
            [_Line(line.raw, line.key, line.value, line.dirty) for line in self._lines],
            newline=self._newline,
        )
        doc._trailing_newline = self._trailing_newline
        return doc

    @classmethod
    def from_mapping(cls, values: dict[str, str]) -> ConfigDocument:
        """Build a document from a plain mapping, preserving its order."""
        doc = cls()
        for key, value in values.items():
            doc._lines.append(
                _Line(f"{escape(key, is_key=True)}={escape(value)}", key=key, value=value)
            )
        return doc


def _continues(line: str) -> bool:
    trailing = len(line) - len(line.rstrip("\\"))
    return trailing % 2 == 1


def _split(logical: str) -> tuple[str, str]:
    """Split a logical line into ``(key, value)``.

    The key ends at the first unescaped ``=``, ``:`` or whitespace; one
    separator and the blanks around it are skipped.
    """
    i = 0
    while i < len(logical):
        ch = logical[i]
        if ch == "\\":
            i += 2
            continue
        if ch in "=:" or ch in _BLANKS:
            break
        i += 1
    key_raw = logical[:i]
    rest = logical[i:].lstrip(_BLANKS)
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(_BLANKS)
    return unescape(key_raw), unescape(rest)
