"""String-level helpers shared by the extraction heuristics.

PDF literal strings use backslash escapes, content streams leak operator
names into naive decodes, and mis-decoded binary shows up as runs of
C1 controls and Latin-1 symbols.  The helpers here decode, filter and
normalize those fragments so every heuristic's candidate is scored on
comparable, cleaned text.
"""

from __future__ import annotations

import re

# Operators and keywords that show up as bare words in decoded content.
PDF_COMMANDS = frozenset(
    {
        "BT", "ET", "Tf", "Td", "TD", "Tm", "Tj", "TJ", "Tc", "Tw", "Tz", "TL", "Tr", "Ts",
        "cm", "re", "rg", "RG", "gs", "Do", "BDC", "EMC", "BMC",
        "obj", "endobj", "stream", "endstream", "xref", "trailer", "startxref",
        "FlateDecode", "DCTDecode", "ASCIIHexDecode", "ASCII85Decode", "LZWDecode",
        "Type", "Subtype", "Filter", "Length", "Length1", "Length2", "Length3",
        "Font", "FontDescriptor", "BaseFont", "Encoding", "WinAnsiEncoding",
        "MacRomanEncoding", "Identity-H", "ToUnicode", "Widths", "FirstChar", "LastChar",
        "Page", "Pages", "Parent", "Kids", "Count", "MediaBox", "CropBox", "Resources",
        "Contents", "ProcSet", "PDF", "Text", "ImageB", "ImageC", "ImageI", "XObject",
        "ExtGState", "Catalog", "Root", "Info", "Size", "Prev", "Annots", "Metadata",
        "XRef", "ObjStm", "Width", "Height", "BitsPerComponent", "ColorSpace",
        "DeviceRGB", "DeviceGray", "DeviceCMYK", "Image", "Producer", "Creator",
        "CreationDate", "ModDate", "Linearized", "DecodeParms", "Predictor", "Columns",
    }
)

# Operator residue removed from every candidate after decoding.
_ARTIFACT_RE = re.compile(
    r"\b(?:obj|endobj|stream|endstream|xref|trailer|startxref|BT|ET|Tj|TJ|Tf|Td|TD|Tm)\b"
    r"|\b\d+\s+\d+\s+R\b"
)

# C1 controls, Latin-1 symbols and a handful of letters that almost only
# appear when binary data was decoded as Latin-1.  Letters used by
# Western European languages (å, ä, ö, é, ü, ...) are not part of it.
NOISE_CHARS = "\u0080-\u009f\u00a1-\u00bf\u00d7\u00f7\u00de\u00fe\u00d0\u00f0\ufffd"
_NOISE_RUN_RE = re.compile(f"[{NOISE_CHARS}]+")
_NOISE_CHAR_RE = re.compile(f"[{NOISE_CHARS}]")

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HORIZONTAL_WS_RE = re.compile(r"[ \t\u00a0]+")
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")

_ESCAPE_RE = re.compile(r"\\(?:(\r\n|\r|\n)|([0-7]{1,3})|(.))", re.DOTALL)
_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "(": "(",
    ")": ")",
    "\\": "\\",
}

_PDF_SYNTAX_CHARS = frozenset("<>{}[]/\\")


def decode_pdf_string(raw: str) -> str:
    """Decode the body of a PDF literal string (without the parentheses).

    Octal escapes for bytes outside printable ASCII and the Latin-1 letter
    range become a space.  A backslash before a line break is a line
    continuation and disappears.
    """

    def _replace(match: re.Match[str]) -> str:
        continuation, octal, char = match.groups()
        if continuation is not None:
            return ""
        if octal is not None:
            code = int(octal, 8) & 0xFF
            if 32 <= code <= 126 or 192 <= code <= 255:
                return chr(code)
            return " "
        return _SIMPLE_ESCAPES.get(char, char)

    return _ESCAPE_RE.sub(_replace, raw)


def join_fragments(fragments: list[str]) -> str:
    """Join text fragments, inserting one space only where neither side has whitespace."""
    parts: list[str] = []
    for fragment in fragments:
        if not fragment:
            continue
        if parts and not parts[-1][-1].isspace() and not fragment[0].isspace():
            parts.append(" ")
        parts.append(fragment)
    return "".join(parts)


def is_pdf_command(content: str) -> bool:
    """Return True when *content* looks like PDF syntax rather than prose."""
    stripped = content.strip()
    if not stripped:
        return True
    words = stripped.split()
    if len(words) == 1:
        return words[0].lstrip("/") in PDF_COMMANDS or stripped.startswith("/")
    command_words = sum(1 for w in words if w.lstrip("/") in PDF_COMMANDS)
    return command_words / len(words) > 0.5


def is_readable_text(text: str) -> bool:
    """Heuristic check that *text* is human-readable rather than binary residue."""
    letters = sum(1 for c in text if c.isalpha())
    if letters < 2:
        return False
    others = sum(1 for c in text if not c.isalpha() and not c.isspace())
    if others > letters * 2:
        return False
    syntax = sum(1 for c in text if c in _PDF_SYNTAX_CHARS)
    return syntax <= len(text) * 0.3


def is_word_token(token: str) -> bool:
    """A token of at least three characters containing at least two letters."""
    return len(token) >= 3 and sum(1 for c in token if c.isalpha()) >= 2


def count_word_tokens(text: str) -> int:
    return sum(1 for token in text.split() if is_word_token(token))


def normalize_candidate(text: str) -> str:
    """Clean one heuristic's raw output so candidates can be compared by length.

    Steps: strip control characters, collapse runs of noise characters,
    drop tokens that still contain noise, remove PDF operator artifacts,
    then collapse whitespace while keeping paragraph breaks.
    """
    if not text:
        return ""

    cleaned = _CONTROL_RE.sub(" ", text.replace("\r\n", "\n").replace("\r", "\n"))
    cleaned = _NOISE_RUN_RE.sub(lambda m: m.group(0)[0], cleaned)

    if _NOISE_CHAR_RE.search(cleaned):
        lines = []
        for line in cleaned.split("\n"):
            tokens = [t for t in line.split() if not _NOISE_CHAR_RE.search(t)]
            lines.append(" ".join(tokens))
        cleaned = "\n".join(lines)

    cleaned = _ARTIFACT_RE.sub(" ", cleaned)
    cleaned = _HORIZONTAL_WS_RE.sub(" ", cleaned)
    cleaned = "\n".join(line.strip() for line in cleaned.split("\n"))
    cleaned = _MANY_NEWLINES_RE.sub("\n\n", cleaned)
    return cleaned.strip()
