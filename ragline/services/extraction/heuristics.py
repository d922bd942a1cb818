"""Text extraction heuristics for malformed and oddly encoded PDFs.

Each heuristic reads the same pre-parsed :class:`PdfSource` and returns
raw candidate text; :class:`~ragline.services.extraction.text_extractor.TextExtractor`
normalizes every candidate, scores it by cleaned length times the
heuristic's ``weight`` and keeps the best one.

Heuristics, in the order they run:

1. :class:`TextObjectHeuristic` -- literal strings inside ``BT ... ET`` blocks.
2. :class:`RawStreamHeuristic` -- printable residue of non-text streams.
3. :class:`ParentheticalHeuristic` -- every literal string in the file.
4. :class:`ByteEncodingSweepHeuristic` -- a sweep of character encodings
   over the raw bytes (weighted x1.2).
5. :class:`DocumentModelHeuristic` -- PyMuPDF's own text layer.
"""

from __future__ import annotations

import re
import time
import zlib
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field

import fitz  # PyMuPDF
import structlog

from ragline.services.extraction.text_cleaning import (
    decode_pdf_string,
    is_pdf_command,
    is_readable_text,
    is_word_token,
    join_fragments,
)
from ragline.utils.errors import ExtractionTimeoutError

logger = structlog.get_logger(logger_name=__name__)

_STREAM_RE = re.compile(rb"(?<!end)stream\r?\n(.*?)\r?\n?endstream", re.DOTALL)
_TEXT_OBJECT_RE = re.compile(r"\bBT\b(.*?)\bET\b", re.DOTALL)
_LITERAL_RE = re.compile(r"\(((?:\\.|[^\\()])*)\)", re.DOTALL)
_SHORT_LITERAL_RE = re.compile(r"\(((?:\\.|[^\\()]){3,200})\)", re.DOTALL)
_HEX_STRING_RE = re.compile(r"<([0-9A-Fa-f\s]{4,})>")
_PAGE_RE = re.compile(rb"/Type\s*/Page\b")
_NON_PRINTABLE_RE = re.compile(rb"[^\x20-\x7e\n\r\t]+")

MIN_STREAM_LENGTH = 50
MAX_RAW_STREAMS = 10
MIN_STREAM_TOKENS = 20
MIN_SWEEP_TOKENS = 50
FREQUENCY_WHITELIST_SIZE = 75


class Deadline:
    """Monotonic deadline checked between units of extraction work."""

    def __init__(self, timeout: float | None) -> None:
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def check(self) -> None:
        if self.expired:
            raise ExtractionTimeoutError()


@dataclass
class PdfSource:
    """Raw PDF bytes plus the views every heuristic shares.

    ``streams`` holds each stream body, inflated when it was
    Flate-compressed.  ``text`` is the Latin-1 view of the file followed
    by every inflated stream, so regexes see text operators that were
    compressed on disk.
    """

    data: bytes
    streams: list[bytes] = field(default_factory=list)
    binary_spans: list[tuple[int, int]] = field(default_factory=list)
    text: str = ""

    @classmethod
    def parse(cls, data: bytes, deadline: Deadline | None = None) -> PdfSource:
        streams: list[bytes] = []
        inflated: list[bytes] = []
        spans: list[tuple[int, int]] = []
        for match in _STREAM_RE.finditer(data):
            if deadline is not None:
                deadline.check()
            body = match.group(1)
            spans.append(match.span(1))
            try:
                expanded = zlib.decompress(body)
            except zlib.error:
                streams.append(body)
                continue
            streams.append(expanded)
            inflated.append(expanded)

        text = data.decode("latin-1")
        if inflated:
            text = text + "\n" + "\n".join(chunk.decode("latin-1") for chunk in inflated)
        return cls(data=data, streams=streams, binary_spans=spans, text=text)

    @property
    def page_count(self) -> int:
        return max(1, len(_PAGE_RE.findall(self.data)))

    def bytes_outside_streams(self) -> bytes:
        """The file with every stream body blanked out."""
        if not self.binary_spans:
            return self.data
        pieces: list[bytes] = []
        cursor = 0
        for start, end in self.binary_spans:
            pieces.append(self.data[cursor:start])
            pieces.append(b" ")
            cursor = end
        pieces.append(self.data[cursor:])
        return b"".join(pieces)


class ExtractionHeuristic(ABC):
    """One way of recovering text from a PDF."""

    name: str = ""
    weight: float = 1.0

    @abstractmethod
    def extract(self, source: PdfSource, deadline: Deadline) -> str:
        """Return raw candidate text, or ``""`` when nothing was found."""


class TextObjectHeuristic(ExtractionHeuristic):
    """Literal and hex strings shown inside ``BT ... ET`` text objects."""

    name = "text_objects"

    def extract(self, source: PdfSource, deadline: Deadline) -> str:
        fragments: list[str] = []
        for block in _TEXT_OBJECT_RE.finditer(source.text):
            deadline.check()
            body = block.group(1)
            for literal in _LITERAL_RE.finditer(body):
                decoded = decode_pdf_string(literal.group(1))
                if decoded:
                    fragments.append(decoded)
            for hex_match in _HEX_STRING_RE.finditer(body):
                decoded = _decode_hex_string(hex_match.group(1))
                if decoded and is_readable_text(decoded):
                    fragments.append(decoded)
        return join_fragments(fragments)


class RawStreamHeuristic(ExtractionHeuristic):
    """Printable residue of the longest streams that are not text objects.

    Content streams with ``BT``/``ET`` operators are left to
    :class:`TextObjectHeuristic`; what remains here is plain text embedded
    in other stream types.
    """

    name = "raw_streams"

    def extract(self, source: PdfSource, deadline: Deadline) -> str:
        candidates = [s for s in source.streams if len(s) > MIN_STREAM_LENGTH]
        candidates.sort(key=len, reverse=True)

        kept: list[str] = []
        for stream in candidates[:MAX_RAW_STREAMS]:
            deadline.check()
            printable = _NON_PRINTABLE_RE.sub(b" ", stream).decode("ascii")
            if re.search(r"\bBT\b", printable) and re.search(r"\bET\b", printable):
                continue
            tokens = printable.split()
            if len(tokens) < MIN_STREAM_TOKENS:
                continue
            words = sum(1 for t in tokens if is_word_token(t))
            if words < len(tokens) / 2:
                continue
            kept.append(printable)
        return "\n\n".join(kept)


class ParentheticalHeuristic(ExtractionHeuristic):
    """Every literal string in the file, without requiring ``BT``/``ET`` markers."""

    name = "parenthetical"

    def extract(self, source: PdfSource, deadline: Deadline) -> str:
        tokens: list[str] = []
        for index, literal in enumerate(_SHORT_LITERAL_RE.finditer(source.text)):
            if index % 500 == 0:
                deadline.check()
            raw = literal.group(1)
            if is_pdf_command(raw):
                continue
            for token in decode_pdf_string(raw).split():
                if len(token) >= 3 and any(c.isalnum() for c in token):
                    tokens.append(token)
        return " ".join(tokens)


class ByteEncodingSweepHeuristic(ExtractionHeuristic):
    """Try a sequence of byte encodings until one yields enough words.

    Sub-attempts, first acceptable one wins:

    1. UTF-16BE runs and ``<FEFF...>`` hex strings anywhere in the file.
    2. Latin-1 with a whitelist of letters, digits and punctuation.
    3. The most frequent text-like bytes as a whitelist.
    4. UTF-8 restricted to Latin, Greek and Cyrillic ranges.

    Sub-attempts 2-4 read the file with stream bodies blanked, since
    those are covered by the structural heuristics.  A sub-attempt is
    accepted when it yields at least 50 word tokens.  Multi-byte text that
    survives this sweep is usually clean, so it scores x1.2.
    """

    name = "byte_encoding_sweep"
    weight = 1.2

    _UTF16_RUN_RE = re.compile(rb"(?:\x00[\x20-\x7e]|[\x01-\x04][\x00-\xff]){4,}")
    _UTF16_HEX_RE = re.compile(rb"<FEFF((?:[0-9A-Fa-f]{4})+)>")
    _LATIN1_KEEP_RE = re.compile(r"[^A-Za-z0-9À-ÖØ-öø-ÿ\s.,;:!?'\"\-]+")
    _UNICODE_KEEP_RE = re.compile(r"[^ -~À-ɏͰ-ϿЀ-ӿ\s]+")
    _TEXT_LIKE_BYTES = frozenset(
        [*range(0x30, 0x3A), *range(0x41, 0x5B), *range(0x61, 0x7B), *range(0xC0, 0x100)]
    ) - {0xD7, 0xF7}

    def extract(self, source: PdfSource, deadline: Deadline) -> str:
        outside = source.bytes_outside_streams()
        attempts = (
            ("utf16be", lambda: self._utf16(source.data)),
            ("latin1_whitelist", lambda: self._LATIN1_KEEP_RE.sub(" ", outside.decode("latin-1"))),
            ("frequency_whitelist", lambda: self._frequency(outside)),
            ("unicode_ranges", lambda: self._UNICODE_KEEP_RE.sub(" ", outside.decode("utf-8", errors="ignore"))),
        )
        for label, attempt in attempts:
            deadline.check()
            words = [
                token.strip("\"'()")
                for token in attempt().split()
            ]
            words = [w for w in words if is_word_token(w) and not is_pdf_command(w)]
            if len(words) >= MIN_SWEEP_TOKENS:
                logger.debug("byte_sweep_accepted", attempt=label, tokens=len(words))
                return " ".join(words)
        return ""

    def _utf16(self, data: bytes) -> str:
        pieces: list[str] = []
        for match in self._UTF16_HEX_RE.finditer(data):
            pieces.append(bytes.fromhex(match.group(1).decode("ascii")).decode("utf-16-be", errors="ignore"))
        for match in self._UTF16_RUN_RE.finditer(data):
            run = match.group(0)
            pieces.append(run[: len(run) - len(run) % 2].decode("utf-16-be", errors="ignore"))
        return " ".join(pieces)

    def _frequency(self, data: bytes) -> str:
        counts = Counter(b for b in data if b in self._TEXT_LIKE_BYTES)
        allowed = {byte for byte, _ in counts.most_common(FREQUENCY_WHITELIST_SIZE)}
        allowed.update(b" \n")
        table = bytes(b if b in allowed else 0x20 for b in range(256))
        return data.translate(table).decode("latin-1")


class DocumentModelHeuristic(ExtractionHeuristic):
    """Text layer as PyMuPDF renders it, page by page.

    PyMuPDF repairs many broken cross-reference tables on open; input it
    cannot parse at all yields an empty candidate.
    """

    name = "document_model"

    def extract(self, source: PdfSource, deadline: Deadline) -> str:
        try:
            doc = fitz.open(stream=source.data, filetype="pdf")
        except Exception as exc:  # noqa: BLE001
            logger.debug("document_model_open_failed", error=str(exc))
            return ""

        pages: list[str] = []
        try:
            for page in doc:
                deadline.check()
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        finally:
            doc.close()
        return "\n\n".join(pages)


def _decode_hex_string(body: str) -> str:
    digits = re.sub(r"\s+", "", body)
    if len(digits) % 2:
        digits += "0"
    raw = bytes.fromhex(digits)
    if raw.startswith(b"\xfe\xff"):
        return raw[2:].decode("utf-16-be", errors="ignore")
    return raw.decode("latin-1")


DEFAULT_HEURISTICS: tuple[type[ExtractionHeuristic], ...] = (
    TextObjectHeuristic,
    RawStreamHeuristic,
    ParentheticalHeuristic,
    ByteEncodingSweepHeuristic,
    DocumentModelHeuristic,
)
