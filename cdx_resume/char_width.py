"""Display-width helpers for laying out text in a fixed terminal grid.

Wide glyphs (CJK, fullwidth forms, emoji) take two terminal columns. Session
logs may also carry raw UTF-16 surrogate code points, so a high surrogate
followed by a low surrogate is measured as a single two-column unit and is
never split when truncating.
"""

from typing import Optional, Tuple

ELLIPSIS = "..."
ELLIPSIS_WIDTH = 3

HIGH_SURROGATE = (0xD800, 0xDBFF)
LOW_SURROGATE = (0xDC00, 0xDFFF)

# Single code point emoji and symbol blocks
EMOJI_RANGES = (
    (0x2100, 0x214F),  # Letterlike Symbols
    (0x2190, 0x21FF),  # Arrows
    (0x2300, 0x23FF),  # Miscellaneous Technical
    (0x25A0, 0x25FF),  # Geometric Shapes
    (0x2600, 0x27BF),  # Miscellaneous Symbols and Dingbats
    (0x2B00, 0x2BFF),  # Miscellaneous Symbols and Arrows
)

WIDE_RANGES = (
    (0x3000, 0x303F),  # CJK punctuation
    (0x3040, 0x309F),  # Hiragana
    (0x30A0, 0x30FF),  # Katakana
    (0x3200, 0x32FF),  # Enclosed CJK Letters and Months
    (0x3300, 0x33FF),  # CJK Compatibility
    (0x3400, 0x4DBF),  # CJK Extension A
    (0x4E00, 0x9FFF),  # CJK Unified Ideographs
    (0xAC00, 0xD7AF),  # Hangul Syllables
    (0xFE30, 0xFE4F),  # CJK Compatibility Forms
    (0xFE50, 0xFE6F),  # Small Form Variants
    (0xFF00, 0xFFEF),  # Full-width forms
)


def _in_ranges(code: int, ranges) -> bool:
    for start, end in ranges:
        if start <= code <= end:
            return True
    return False


def _is_high_surrogate(code: int) -> bool:
    return HIGH_SURROGATE[0] <= code <= HIGH_SURROGATE[1]


def _is_low_surrogate(code: int) -> bool:
    return LOW_SURROGATE[0] <= code <= LOW_SURROGATE[1]


def char_width(char: Optional[str]) -> int:
    """
    Return the terminal width of the first unit of ``char``.

    Returns:
        0 for empty input or an orphaned low surrogate, 2 for wide
        characters (CJK, fullwidth, emoji, surrogate pairs and a lone high
        surrogate), 1 for everything else.
    """
    if not char:
        return 0

    code = ord(char[0])

    if code <= 0x7F:
        return 1

    # A lone high surrogate is counted as wide; so is a complete pair
    if _is_high_surrogate(code):
        return 2

    if _is_low_surrogate(code):
        return 0

    # Astral code points: the already-decoded form of a surrogate pair
    if code >= 0x10000:
        return 2

    if _in_ranges(code, EMOJI_RANGES) or _in_ranges(code, WIDE_RANGES):
        return 2

    return 1


def decode_unit(text: str, index: int) -> Tuple[int, int]:
    """
    Decode one display unit of ``text`` starting at ``index``.

    A high surrogate immediately followed by a low surrogate forms a single
    unit. Every other code point is a unit on its own.

    Args:
        text: String being measured
        index: Position of the unit to decode (must be < len(text))

    Returns:
        Tuple of (width, code points consumed)
    """
    code = ord(text[index])
    if _is_high_surrogate(code) and index + 1 < len(text):
        if _is_low_surrogate(ord(text[index + 1])):
            return 2, 2
    return char_width(text[index]), 1


def iter_units(text: str):
    """Yield (unit, width) pairs for ``text`` without splitting pairs."""
    i = 0
    while i < len(text):
        width, consumed = decode_unit(text, i)
        yield text[i:i + consumed], width
        i += consumed


def string_width(text: Optional[str]) -> int:
    """Return the total terminal width of ``text`` (0 for empty/None)."""
    if not text:
        return 0
    return sum(width for _, width in iter_units(text))


def _take_prefix(text: str, budget: int) -> str:
    """Longest unit-aligned prefix of ``text`` whose width fits ``budget``."""
    used = 0
    end = 0
    for unit, width in iter_units(text):
        if used + width > budget:
            break
        used += width
        end += len(unit)
    return text[:end]


def truncate_by_width(text: Optional[str], max_width: int) -> str:
    """
    Truncate ``text`` so that it fits ``max_width`` columns.

    Text that already fits is returned unchanged. Otherwise the longest
    prefix leaving room for a three-column ellipsis is returned, followed by
    the ellipsis. If not even the first unit fits, only the ellipsis is
    returned (which may itself exceed a very small ``max_width``; use
    :func:`strict_truncate_by_width` when that matters).

    Args:
        text: String to truncate
        max_width: Available terminal columns

    Returns:
        The possibly truncated string
    """
    if not text:
        return ""
    if string_width(text) <= max_width:
        return text
    return _take_prefix(text, max_width - ELLIPSIS_WIDTH) + ELLIPSIS


def strict_truncate_by_width(text: Optional[str], max_width: int) -> str:
    """
    Truncate ``text`` so that the result never exceeds ``max_width``.

    Behaves like :func:`truncate_by_width`, except that when fewer than
    three columns are available the ellipsis is shortened to ``max_width``
    dots.
    """
    if not text or max_width <= 0:
        return ""
    if string_width(text) <= max_width:
        return text
    if max_width <= ELLIPSIS_WIDTH:
        return "." * max_width
    return _take_prefix(text, max_width - ELLIPSIS_WIDTH) + ELLIPSIS


def strict_truncate_lines(text: str, max_width: int) -> str:
    """Strictly truncate each line of a multi-line string."""
    return "\n".join(
        strict_truncate_by_width(line, max_width) for line in text.split("\n")
    )


def pad_to_width(text: Optional[str], width: int) -> str:
    """Truncate and right-pad ``text`` to exactly ``width`` columns."""
    clipped = strict_truncate_by_width(text, width)
    return clipped + " " * (width - string_width(clipped))


def replace_lone_surrogates(text: Optional[str]) -> str:
    """
    Make ``text`` encodable as UTF-8.

    Surrogate pairs are joined into the code point they encode; unpaired
    surrogates become U+FFFD.
    """
    if not text:
        return ""
    return text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")
