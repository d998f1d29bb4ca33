"""Glyph remapping for the vendor's custom title font.

The menu PDFs set dish titles in a font whose character codes do not
correspond to real letters.  A small substitution table maps each such
code back to the letter it draws.  The table is stored as plain text, one
pair per line, code and letter separated by a single space (codes shown
here by their code point)::

    <U+E001> a
    <U+E002> b
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

log = logging.getLogger(__name__)

DEFAULT_ENCODING = "latin-1"


def is_encodable(text: str, encoding: str = DEFAULT_ENCODING) -> bool:
    """Return True if *text* fits into *encoding* without loss."""
    try:
        text.encode(encoding)
    except UnicodeEncodeError:
        return False
    return True


class GlyphRemapper:
    """Character-for-character substitution table.

    Loaded once at startup and read-only afterwards, so one instance can
    be shared between worker threads.
    """

    def __init__(
        self,
        pairs: Optional[Dict[str, str]] = None,
        encoding: str = DEFAULT_ENCODING,
    ) -> None:
        self.encoding = encoding
        self._map: Dict[str, str] = {}
        for code, letter in (pairs or {}).items():
            self.add_char_pair(code, letter)

    # ── Loading / saving ──────────────────────────────────────────────

    @classmethod
    def from_file(
        cls, path: Path | str, encoding: str = DEFAULT_ENCODING
    ) -> "GlyphRemapper":
        """Load a table from *path*; a missing file yields an empty table."""
        remapper = cls(encoding=encoding)
        path = Path(path)
        if not path.is_file():
            log.warning("Glyph map %s not found; continuing with empty table", path)
            return remapper
        remapper.load_map(path.read_text(encoding="utf-8"))
        return remapper

    def load_map(self, text: str) -> int:
        """Add every ``"<code> <letter>"`` line of *text*; return pairs added.

        Malformed lines are logged and skipped.
        """
        added = 0
        for lineno, line in enumerate(text.split("\n"), start=1):
            line = line.rstrip("\r")
            if not line:
                continue
            if len(line) != 3 or line[1] != " ":
                log.warning("Glyph map line %d malformed: %r", lineno, line)
                continue
            if self.add_char_pair(line[0], line[2]):
                added += 1
        log.debug("Loaded glyph map holding %d characters", len(self._map))
        return added

    def save_map(self) -> str:
        """Serialise the table, sorted by target letter."""
        return "".join(
            f"{code} {letter}\n"
            for code, letter in sorted(self._map.items(), key=lambda kv: (kv[1], kv[0]))
        )

    def save_file(self, path: Path | str) -> None:
        Path(path).write_text(self.save_map(), encoding="utf-8")

    # ── Building ──────────────────────────────────────────────────────

    def add_char_pair(self, code: str, letter: str) -> bool:
        """Map *code* to *letter* unless *code* is already mapped."""
        if len(code) != 1 or len(letter) != 1:
            raise ValueError(f"expected single characters, got {code!r} -> {letter!r}")
        if code in self._map:
            return False
        self._map[code] = letter
        return True

    def learn_phrase(self, encoded: str, plain: str) -> int:
        """Learn pairs from a phrase and its known plain-text reading.

        Only characters of *encoded* that fall outside the narrow encoding
        are recorded.  Returns the number of new pairs.
        """
        if len(encoded) != len(plain):
            raise ValueError("encoded and plain phrase must have the same length")
        added = 0
        for code, letter in zip(encoded, plain):
            if self.qualifies_as_unicode(code) and self.add_char_pair(code, letter):
                added += 1
        return added

    # ── Queries ───────────────────────────────────────────────────────

    def qualifies_as_unicode(self, char: str) -> bool:
        """True if *char* cannot be represented in the narrow encoding."""
        return not is_encodable(char, self.encoding)

    def contains_unicode(self, text: str) -> bool:
        return not is_encodable(text, self.encoding)

    def last_unicode_index(self, text: str) -> Optional[int]:
        """Index of the last non-encodable character, or None."""
        for i in range(len(text) - 1, -1, -1):
            if self.qualifies_as_unicode(text[i]):
                return i
        return None

    def process(self, text: str) -> str:
        """Replace every mapped code in *text* with its letter."""
        if self._map:
            text = text.translate(str.maketrans(self._map))
        if self.contains_unicode(text):
            log.warning("Remapped text %r still contains unmapped glyphs", text)
        return text

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._map.items())

    def __contains__(self, code: object) -> bool:
        return code in self._map

    def __len__(self) -> int:
        return len(self._map)
