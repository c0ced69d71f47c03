import base64
import binascii
import re
import unicodedata

_BASE64_RE = re.compile(r"[A-Za-z0-9+/=]+")
_QUOTED_BASE64_RE = re.compile(r'"([A-Za-z0-9+/=]+)"')
# C0 controls other than tab, newline and carriage return
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_COMBINING_MARKS_RE = re.compile(r"[\u0300-\u036f]")
_LINE_BREAKS_RE = re.compile(r"[\r\n]+")


def decode_if_encoded(value: str) -> str:
    """
    Decode ``value`` if it looks like Base64, otherwise return it unchanged.

    A value is treated as Base64 when it is made only of Base64 alphabet
    characters and its length is a multiple of 4. The decoded text is only
    accepted if it is valid UTF-8 free of control characters.

    Note that this is a heuristic: an ordinary word that happens to be valid
    Base64 and decodes to clean UTF-8 will be decoded as well.
    """
    if not value or len(value) % 4 != 0 or not _BASE64_RE.fullmatch(value):
        return value
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return value
    if _CONTROL_RE.search(decoded):
        return value
    return decoded


def escape_literal(value: str) -> str:
    """Escape a string for use inside a double-quoted Turtle literal."""
    escaped = (value or "").replace("\\", "\\\\").replace('"', '\\"')
    return _LINE_BREAKS_RE.sub(" ", escaped).replace("\t", " ")


def decode_quoted_segments(triple_text: str) -> str:
    """Replace every Base64-looking quoted segment with its decoded, re-escaped text."""

    def _replace(match: re.Match) -> str:
        raw = match.group(1)
        decoded = decode_if_encoded(raw)
        if decoded == raw:
            return match.group(0)
        return f'"{escape_literal(decoded)}"'

    return _QUOTED_BASE64_RE.sub(_replace, triple_text)


def normalize_for_search(value: str) -> str:
    """Lowercase, trim and strip diacritics so "Bolívar" compares equal to "bolivar"."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    return _COMBINING_MARKS_RE.sub("", decomposed).lower().strip()
