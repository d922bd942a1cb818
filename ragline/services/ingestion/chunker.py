"""Text chunking with configurable strategies and offset tracking.

Splits cleaned document text into :class:`~ragline.models.chunk.Chunk`
objects sized for embedding models.  Sizes are measured in characters.

Strategies (:class:`~ragline.models.chunk.ChunkStrategy`):

* ``fixed_size`` -- windows of ``chunk_size`` stepping by
  ``chunk_size - overlap``.  When sentence boundaries are preserved, a
  window end is pushed forward to the next sentence terminator if one is
  close.  Window content is the raw slice, so with ``overlap=0`` the
  chunks concatenate back to the cleaned text.
* ``sentence`` / ``paragraph`` -- the text is partitioned into sentence or
  blank-line separated units which are packed greedily up to
  ``chunk_size``; a unit that alone exceeds it is re-split by
  ``fixed_size``.
* ``recursive`` -- split on the coarsest separator present (blank line,
  newline, sentence end, space), recursing into pieces that are still too
  large.
* ``semantic`` -- accepted for stored configurations; runs ``fixed_size``.

Every strategy yields spans that together cover the whole cleaned text,
so ``start_offset``/``end_offset`` skip no character.
"""

from __future__ import annotations

import re
import uuid

import structlog

from ragline.models.chunk import Chunk, ChunkingConfig, ChunkStrategy

logger = structlog.get_logger(logger_name=__name__)

# Common abbreviations that should NOT trigger a sentence split.
_ABBREVIATIONS = frozenset(
    {
        "Dr", "Mr", "Mrs", "Ms", "Prof", "Jr", "Sr", "St", "Vol", "No",
        "vs", "etc", "approx", "dept", "est", "inc", "ltd", "co", "ca", "bl.a", "t.ex",
    }
)

_PAGE_MARKER_RE = re.compile(r"^[ \t]*-{3}\s*Page\s+\d+\s*-{3}[ \t]*$", re.MULTILINE | re.IGNORECASE)
_HORIZONTAL_WS_RE = re.compile(r"[ \t\f\v]+")
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")
_SENTENCE_END_RE = re.compile(r"[.!?]+(?:\s+|$)")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_SNAP_RE = re.compile(r"[.!?]\s")

# How far past a window end to look for a sentence terminator, and how
# much a snapped window may exceed chunk_size.
SNAP_LOOKAHEAD = 200
SNAP_MAX_RATIO = 1.2

_RECURSIVE_SEPARATORS = ("\n\n", "\n", ". ", " ")

Span = tuple[int, int]


def clean_text(text: str) -> str:
    """Normalize extracted text before chunking.

    Normalizes line endings, removes ``--- Page N ---`` markers, collapses
    horizontal whitespace, trims every line and collapses three or more
    newlines to exactly two.
    """
    if not text:
        return ""
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _PAGE_MARKER_RE.sub("", cleaned)
    cleaned = _HORIZONTAL_WS_RE.sub(" ", cleaned)
    cleaned = "\n".join(line.strip() for line in cleaned.split("\n"))
    cleaned = _MANY_NEWLINES_RE.sub("\n\n", cleaned)
    return cleaned.strip()


class Chunker:
    """Splits text into :class:`Chunk` objects according to a :class:`ChunkingConfig`.

    Parameters
    ----------
    config:
        Default configuration; each call may pass its own instead.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, config: ChunkingConfig | None = None) -> list[str]:
        """Return the chunk contents for *text*, in document order."""
        return [c.content for c in self.chunk_detailed(text, config)]

    def chunk_detailed(
        self,
        text: str,
        config: ChunkingConfig | None = None,
        document_id: str = "",
    ) -> list[Chunk]:
        """Split *text* into :class:`Chunk` objects with offsets and metadata.

        Parameters
        ----------
        text:
            Extracted document text; cleaned with :func:`clean_text` first.
        config:
            Overrides the chunker's default configuration for this call.
        document_id:
            Copied into every chunk.

        Returns
        -------
        list[Chunk]
            Chunks ordered by index.  Empty or whitespace-only input returns
            an empty list.  If size filtering would drop every chunk, a
            single chunk holding the whole cleaned text is returned.
        """
        cfg = config or self._config
        cleaned = clean_text(text)
        if not cleaned:
            return []

        spans = self._split(cleaned, cfg)
        metadata = {
            "strategy": cfg.strategy.value,
            "chunk_size": cfg.chunk_size,
            "overlap": cfg.overlap,
        }

        kept: list[tuple[str, int, int]] = []
        dropped = 0
        for start, end in spans:
            content = self._content(cleaned, start, end, cfg.strategy)
            if len(content.strip()) < max(cfg.min_chunk_size, 1):
                dropped += 1
                continue
            kept.append((content, start, end))

        if not kept:
            # Everything was too small: the whole text becomes one chunk.
            kept = [(cleaned, 0, len(cleaned))]

        chunks = [
            Chunk(
                chunk_id=str(uuid.uuid4()),
                document_id=document_id,
                index=index,
                content=content,
                start_offset=start,
                end_offset=end,
                metadata=dict(metadata),
            )
            for index, (content, start, end) in enumerate(kept)
        ]

        logger.debug(
            "chunking_complete",
            document_id=document_id or None,
            strategy=cfg.strategy.value,
            num_chunks=len(chunks),
            dropped=dropped,
            avg_chars=sum(c.size for c in chunks) // len(chunks),
        )
        return chunks

    # ------------------------------------------------------------------
    # Strategy dispatch
    # ------------------------------------------------------------------

    def _split(self, text: str, cfg: ChunkingConfig) -> list[Span]:
        if cfg.strategy is ChunkStrategy.SENTENCE:
            return self._pack(text, self._sentence_units(text), cfg)
        if cfg.strategy is ChunkStrategy.PARAGRAPH:
            return self._pack(text, self._paragraph_units(text), cfg)
        if cfg.strategy is ChunkStrategy.RECURSIVE:
            return self._recursive(text, 0, len(text), _RECURSIVE_SEPARATORS, cfg)
        if cfg.strategy is ChunkStrategy.SEMANTIC:
            logger.warning("semantic_chunking_unsupported", fallback=ChunkStrategy.FIXED_SIZE.value)
        return self._fixed_size(text, 0, len(text), cfg)

    @staticmethod
    def _content(text: str, start: int, end: int, strategy: ChunkStrategy) -> str:
        if strategy in (ChunkStrategy.FIXED_SIZE, ChunkStrategy.SEMANTIC):
            return text[start:end]
        return text[start:end].strip()

    # ------------------------------------------------------------------
    # fixed_size
    # ------------------------------------------------------------------

    def _fixed_size(self, text: str, lo: int, hi: int, cfg: ChunkingConfig) -> list[Span]:
        """Windows over ``text[lo:hi]``, returned as absolute spans."""
        spans: list[Span] = []
        start = lo
        while start < hi:
            end = min(start + cfg.chunk_size, hi)
            if cfg.preserve_sentence_boundaries and end < hi:
                end = self._snap_to_sentence(text, start, end, hi, cfg.chunk_size)
            spans.append((start, end))
            if end >= hi:
                break
            start = max(end - cfg.overlap, start + 1)
        return spans

    @staticmethod
    def _snap_to_sentence(text: str, start: int, end: int, hi: int, chunk_size: int) -> int:
        """Move *end* just past a nearby sentence terminator when cheap."""
        match = _SNAP_RE.search(text, end, min(end + SNAP_LOOKAHEAD, hi))
        if match is None:
            return end
        snapped = match.start() + 1
        if snapped - start <= chunk_size * SNAP_MAX_RATIO:
            return snapped
        return end

    # ------------------------------------------------------------------
    # sentence / paragraph
    # ------------------------------------------------------------------

    @staticmethod
    def _sentence_units(text: str) -> list[Span]:
        """Partition *text* into sentences, respecting common abbreviations.

        Periods after known abbreviations are masked with ``\\x00`` (same
        length, so indices stay aligned with the original text).
        """
        masked = text
        for abbr in _ABBREVIATIONS:
            masked = re.sub(rf"\b{re.escape(abbr)}\.", f"{abbr}\x00", masked)
        return _partition(text, (m.end() for m in _SENTENCE_END_RE.finditer(masked)))

    @staticmethod
    def _paragraph_units(text: str) -> list[Span]:
        return _partition(text, (m.end() for m in _PARAGRAPH_BREAK_RE.finditer(text)))

    def _pack(self, text: str, units: list[Span], cfg: ChunkingConfig) -> list[Span]:
        """Greedily pack contiguous units into spans of at most ``chunk_size``."""
        spans: list[Span] = []
        current: Span | None = None

        for unit_start, unit_end in units:
            if len(text[unit_start:unit_end].strip()) > cfg.chunk_size:
                # A single oversize unit: flush and re-split it by windows.
                if current is not None:
                    spans.append(current)
                    current = None
                spans.extend(self._fixed_size(text, unit_start, unit_end, cfg))
                continue

            if current is None:
                current = (unit_start, unit_end)
            elif len(text[current[0]:unit_end].strip()) > cfg.chunk_size:
                spans.append(current)
                current = (unit_start, unit_end)
            else:
                current = (current[0], unit_end)

        if current is not None:
            spans.append(current)
        return spans

    # ------------------------------------------------------------------
    # recursive
    # ------------------------------------------------------------------

    def _recursive(
        self,
        text: str,
        lo: int,
        hi: int,
        separators: tuple[str, ...],
        cfg: ChunkingConfig,
    ) -> list[Span]:
        if hi - lo <= cfg.chunk_size:
            return [(lo, hi)]
        segment = text[lo:hi]
        remaining = separators
        while remaining and remaining[0] not in segment:
            remaining = remaining[1:]
        if not remaining:
            return self._fixed_size(text, lo, hi, cfg)

        separator = remaining[0]
        boundaries: list[int] = []
        cursor = 0
        while True:
            found = segment.find(separator, cursor)
            if found == -1:
                break
            cursor = found + len(separator)
            boundaries.append(lo + cursor)
        pieces = _partition_range(lo, hi, boundaries)

        spans: list[Span] = []
        current: Span | None = None
        for piece_start, piece_end in pieces:
            if piece_end - piece_start > cfg.chunk_size:
                if current is not None:
                    spans.append(current)
                    current = None
                spans.extend(self._recursive(text, piece_start, piece_end, remaining[1:], cfg))
            elif current is None:
                current = (piece_start, piece_end)
            elif piece_end - current[0] > cfg.chunk_size:
                spans.append(current)
                current = (piece_start, piece_end)
            else:
                current = (current[0], piece_end)
        if current is not None:
            spans.append(current)
        return spans


def _partition(text: str, boundaries) -> list[Span]:  # noqa: ANN001
    return _partition_range(0, len(text), boundaries)


def _partition_range(lo: int, hi: int, boundaries) -> list[Span]:  # noqa: ANN001
    """Turn cut positions into contiguous spans covering ``[lo, hi)``."""
    spans: list[Span] = []
    start = lo
    for boundary in boundaries:
        if start < boundary <= hi:
            spans.append((start, boundary))
            start = boundary
    if start < hi:
        spans.append((start, hi))
    return spans
