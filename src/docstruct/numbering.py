"""Numbering codecs for hierarchy ordinals.

Bidirectional conversion between the textual ordinal printed in front of a
heading ("IV", "c", "AA", "12") and its integer rank, plus format checks.

Numbering schemes:
  roman       - I, II, III, IV, ... (decode is case-insensitive)
  romanLower  - i, ii, iii, iv, ...
  numeric     - 1, 2, 3, ...
  alpha       - A, B, ..., Z, AA, AB, ... (bijective base-26)
  alphaLower  - a, b, ..., z, aa, ab, ...

``decode`` never raises: 0 is the failure sentinel, mirroring how the
detector treats an unparseable ordinal as "no rank".
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Scheme names (used in LevelDefinition.numbering)
# ---------------------------------------------------------------------------

SCHEME_ROMAN = "roman"
SCHEME_ROMAN_LOWER = "romanLower"
SCHEME_NUMERIC = "numeric"
SCHEME_ALPHA = "alpha"
SCHEME_ALPHA_LOWER = "alphaLower"

SUPPORTED_SCHEMES: tuple[str, ...] = (
    SCHEME_ROMAN,
    SCHEME_ROMAN_LOWER,
    SCHEME_NUMERIC,
    SCHEME_ALPHA,
    SCHEME_ALPHA_LOWER,
)

ROMAN_MAX = 3999

# ---------------------------------------------------------------------------
# Roman numerals
# ---------------------------------------------------------------------------

_ROMAN_PAIRS: tuple[tuple[int, str], ...] = (
    (1000, "M"), (900, "CM"), (500, "D"), (400, "CD"),
    (100, "C"), (90, "XC"), (50, "L"), (40, "XL"),
    (10, "X"), (9, "IX"), (5, "V"), (4, "IV"),
    (1, "I"),
)

_ROMAN_LETTERS: dict[str, int] = {
    "I": 1, "V": 5, "X": 10, "L": 50, "C": 100, "D": 500, "M": 1000,
}


def to_roman(n: int, *, lowercase: bool = False) -> str:
    """Encode 1..3999 as a roman numeral. Raises ValueError out of range."""
    if n <= 0 or n > ROMAN_MAX:
        raise ValueError(f"roman numerals cover 1..{ROMAN_MAX}, got {n}")
    parts: list[str] = []
    remaining = n
    for value, numeral in _ROMAN_PAIRS:
        while remaining >= value:
            parts.append(numeral)
            remaining -= value
    result = "".join(parts)
    return result.lower() if lowercase else result


def from_roman(s: str) -> int:
    """Decode a roman numeral (any case), scanning right to left.

    Returns 0 when the text is empty or contains a non-roman letter.
    """
    if not s:
        return 0
    total = 0
    prev = 0
    for ch in reversed(s.strip().upper()):
        value = _ROMAN_LETTERS.get(ch)
        if value is None:
            return 0
        if value < prev:
            total -= value
        else:
            total += value
        prev = value
    return total


# ---------------------------------------------------------------------------
# Alphabetic (bijective base-26)
# ---------------------------------------------------------------------------


def to_alpha(n: int, *, lowercase: bool = False) -> str:
    """Encode n >= 1 as A..Z, AA..ZZ, AAA... Raises ValueError for n < 1."""
    if n <= 0:
        raise ValueError(f"alphabetic ordinals start at 1, got {n}")
    base = ord("a") if lowercase else ord("A")
    chars: list[str] = []
    remaining = n
    while remaining > 0:
        remaining, rem = divmod(remaining - 1, 26)
        chars.append(chr(base + rem))
    return "".join(reversed(chars))


def from_alpha(s: str, *, lowercase: bool = False) -> int:
    """Decode a bijective base-26 label.

    Characters outside the requested case range make the whole label
    invalid (returns 0): ``from_alpha("a")`` is 0, ``from_alpha("A")`` is 1.
    """
    if not s:
        return 0
    low, high = ("a", "z") if lowercase else ("A", "Z")
    total = 0
    for ch in s.strip():
        if not (low <= ch <= high):
            return 0
        total = total * 26 + (ord(ch) - ord(low) + 1)
    return total


# ---------------------------------------------------------------------------
# Format checks
# ---------------------------------------------------------------------------

_FORMAT_RE: dict[str, re.Pattern[str]] = {
    SCHEME_ROMAN: re.compile(r"^[IVXLCDMivxlcdm]+$"),
    SCHEME_ROMAN_LOWER: re.compile(r"^[ivxlcdm]+$"),
    SCHEME_NUMERIC: re.compile(r"^\d+$"),
    SCHEME_ALPHA: re.compile(r"^[A-Z]+$"),
    SCHEME_ALPHA_LOWER: re.compile(r"^[a-z]+$"),
}


def matches_format(text: str, scheme: str) -> bool:
    """Character-class check only. Unknown schemes always pass."""
    pattern = _FORMAT_RE.get(scheme)
    if pattern is None:
        return True
    return bool(pattern.match(str(text).strip()))


# ---------------------------------------------------------------------------
# Public codec
# ---------------------------------------------------------------------------


def encode(rank: int, scheme: str) -> str:
    """Render a positive rank in the given scheme."""
    if rank <= 0:
        raise ValueError(f"rank must be positive, got {rank}")
    if scheme == SCHEME_ROMAN:
        return to_roman(rank)
    if scheme == SCHEME_ROMAN_LOWER:
        return to_roman(rank, lowercase=True)
    if scheme == SCHEME_ALPHA:
        return to_alpha(rank)
    if scheme == SCHEME_ALPHA_LOWER:
        return to_alpha(rank, lowercase=True)
    if scheme == SCHEME_NUMERIC:
        return str(rank)
    raise ValueError(f"unknown numbering scheme: {scheme!r}")


def decode(text: str, scheme: str) -> int:
    """Parse an ordinal in the given scheme. Returns 0 on failure."""
    raw = str(text).strip()
    if not raw:
        return 0
    if scheme == SCHEME_ROMAN:
        return from_roman(raw)
    if scheme == SCHEME_ROMAN_LOWER:
        return from_roman(raw) if raw.islower() else 0
    if scheme == SCHEME_ALPHA:
        return from_alpha(raw)
    if scheme == SCHEME_ALPHA_LOWER:
        return from_alpha(raw, lowercase=True)
    if scheme == SCHEME_NUMERIC:
        return int(raw) if raw.isascii() and raw.isdigit() else 0
    return 0


def validate(text: str, scheme: str) -> bool:
    """True only if *text* matches the scheme's characters and decodes > 0."""
    if scheme not in _FORMAT_RE:
        return False
    return matches_format(text, scheme) and decode(text, scheme) > 0


def format_number(rank: int, scheme: str, prefix: str = "") -> str:
    """Render a full label such as ``"Article IV"`` from a rank."""
    return f"{prefix}{encode(rank, scheme)}"


def increment(current: str, scheme: str) -> str:
    """Return the ordinal following *current* in the same scheme."""
    return encode(decode(current, scheme) + 1, scheme)


def compare(a: str, b: str, scheme: str) -> int:
    """Negative, zero or positive as *a* ranks before, with or after *b*."""
    return decode(a, scheme) - decode(b, scheme)


def detect_scheme(examples: list[str]) -> str:
    """Guess the numbering scheme from sample ordinals (first one decides).

    Roman letters win over alphabetic ones, so ``"I"`` and ``"C"`` are read
    as roman numerals. Defaults to numeric.
    """
    if not examples:
        return SCHEME_NUMERIC
    first = str(examples[0]).strip()
    if _FORMAT_RE[SCHEME_ROMAN_LOWER].match(first):
        return SCHEME_ROMAN_LOWER
    if _FORMAT_RE[SCHEME_ROMAN].match(first):
        return SCHEME_ROMAN
    if _FORMAT_RE[SCHEME_ALPHA].match(first):
        return SCHEME_ALPHA
    if _FORMAT_RE[SCHEME_ALPHA_LOWER].match(first):
        return SCHEME_ALPHA_LOWER
    return SCHEME_NUMERIC
