"""Large 16x32 glyphs for numeric readouts on the SSD1306 frame buffer."""

from __future__ import annotations

from .ssd1306 import WIDTH, set_pixel

GLYPH_ROWS = 32
GLYPH_COLUMNS = 16
GLYPH_BYTES = GLYPH_ROWS * GLYPH_COLUMNS // 8

NARROW_WIDTH = 8
WIDE_WIDTH = 16

# Longest text the readout formatter keeps (a 16-byte buffer with its terminator).
MAX_VALUE_TEXT = 15


def _glyph(*rows: int) -> bytes:
    """Build a 64-byte glyph from the left byte of each leading row; the rest is blank."""
    data = bytearray(GLYPH_BYTES)
    for row, value in enumerate(rows):
        data[row * 2] = value
    return bytes(data)


BIG_DIGITS: tuple[bytes, ...] = (
    _glyph(0x3C, 0x42, 0x81, 0x81, 0x81, 0x81, 0x81, 0x81, 0x81, 0x81, 0x42, 0x3C),
    _glyph(0x10, 0x30, 0x50, 0x10, 0x10, 0x10, 0x10, 0x10, 0x10, 0x10, 0x10, 0x10,
           0x10, 0x10),
    _glyph(0x3C, 0x42, 0x01, 0x01, 0x02, 0x04, 0x08, 0x10, 0x20, 0x40, 0x40, 0x7F),
    _glyph(0x3C, 0x42, 0x01, 0x06, 0x18, 0x06, 0x01, 0x01, 0x01, 0x42, 0x3C),
    _glyph(0x04, 0x0C, 0x14, 0x24, 0x44, 0x84, 0xFF, 0x04, 0x04, 0x04, 0x04, 0x04),
    _glyph(0x7E, 0x40, 0x40, 0x40, 0x7C, 0x02, 0x01, 0x01, 0x01, 0x42, 0x3C),
    _glyph(0x3C, 0x42, 0x80, 0x80, 0xFC, 0xC2, 0x81, 0x81, 0x81, 0x42, 0x3C),
    _glyph(0x7F, 0x02, 0x04, 0x08, 0x10, 0x20, 0x20, 0x40, 0x40, 0x40, 0x40, 0x40),
    _glyph(0x3C, 0x42, 0x81, 0x81, 0x42, 0x3C, 0x42, 0x81, 0x81, 0x42, 0x3C),
    _glyph(0x3C, 0x42, 0x81, 0x81, 0x81, 0x43, 0x3D, 0x01, 0x01, 0x42, 0x3C),
)

BIG_PLUS = _glyph(0x00, 0x00, 0x08, 0x08, 0x08, 0xFF, 0x08, 0x08, 0x08)
BIG_MINUS = _glyph(0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0xFF)
BIG_DOT = _glyph(0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
                 0x00, 0xC0, 0xC0, 0xC0)
BIG_DEGREE = _glyph(0x0E, 0x11, 0x11, 0x0E)
BIG_C = _glyph(0x3C, 0x42, 0x81, 0x80, 0x80, 0x80, 0x80, 0x81, 0x42, 0x3C)

_BIG_GLYPHS: dict[str, bytes] = {
    **{str(digit): glyph for digit, glyph in enumerate(BIG_DIGITS)},
    "+": BIG_PLUS,
    "-": BIG_MINUS,
    ".": BIG_DOT,
    "o": BIG_DEGREE,
    "C": BIG_C,
}

_NARROW = frozenset(".o")

# Small 8x8 column-major logo glyphs.
LOGO_DIGITS: tuple[bytes, ...] = (
    bytes((0x3E, 0x41, 0x41, 0x41, 0x41, 0x41, 0x3E, 0x00)),
    bytes((0x00, 0x42, 0x7F, 0x40, 0x00, 0x00, 0x00, 0x00)),
    bytes((0x62, 0x51, 0x49, 0x49, 0x49, 0x49, 0x46, 0x00)),
    bytes((0x22, 0x49, 0x49, 0x49, 0x49, 0x49, 0x36, 0x00)),
    bytes((0x18, 0x14, 0x12, 0x7F, 0x10, 0x10, 0x10, 0x00)),
    bytes((0x4F, 0x49, 0x49, 0x49, 0x49, 0x49, 0x31, 0x00)),
    bytes((0x3E, 0x49, 0x49, 0x49, 0x49, 0x49, 0x32, 0x00)),
    bytes((0x01, 0x01, 0x01, 0x7F, 0x09, 0x05, 0x03, 0x00)),
    bytes((0x36, 0x49, 0x49, 0x49, 0x49, 0x49, 0x36, 0x00)),
    bytes((0x26, 0x49, 0x49, 0x49, 0x49, 0x49, 0x3E, 0x00)),
)
LOGO_PLUS = bytes((0x08, 0x08, 0x08, 0x7F, 0x08, 0x08, 0x08, 0x00))
LOGO_DOT = bytes((0x00, 0x00, 0x00, 0x00, 0x00, 0x0C, 0x0C, 0x00))
LOGO_DEGREE = bytes((0x06, 0x09, 0x09, 0x06, 0x00, 0x00, 0x00, 0x00))
LOGO_C = bytes((0x3E, 0x41, 0x40, 0x40, 0x40, 0x41, 0x22, 0x00))


def glyph_for(character: str) -> bytes | None:
    """The 64-byte big glyph for a character, or None if it has none."""
    return _BIG_GLYPHS.get(character)


def char_width(character: str) -> int:
    """Horizontal advance of a character: 8 for '.' and 'o', 16 otherwise."""
    return NARROW_WIDTH if character in _NARROW else WIDE_WIDTH


def string_width(text: str) -> int:
    """Total horizontal advance of a string."""
    return sum(char_width(ch) for ch in text)


def draw_big_char(buffer: bytearray, x: int, y: int, bitmap: bytes) -> None:
    """Paint a 16x32 bitmap (two bytes per row, MSB leftmost) with its top-left at (x, y)."""
    if len(bitmap) < GLYPH_BYTES:
        raise ValueError(f"bitmap needs {GLYPH_BYTES} bytes, got {len(bitmap)}")
    for row in range(GLYPH_ROWS):
        for col in range(GLYPH_COLUMNS):
            byte = bitmap[row * 2 + col // 8]
            on = bool((byte >> (7 - col % 8)) & 0x01)
            set_pixel(buffer, x + col, y + row, on)


def draw_big_string_aligned_right(buffer: bytearray, y: int, text: str) -> None:
    """Draw text in big glyphs so that it ends at the right edge of the display."""
    x = WIDTH - string_width(text)
    for ch in text:
        bitmap = glyph_for(ch)
        if bitmap is not None:
            draw_big_char(buffer, x, y, bitmap)
        x += char_width(ch)


def _format_value(value: float) -> str:
    return f"{value:+.1f}oC"[:MAX_VALUE_TEXT]


def show_big_value(buffer: bytearray, value: float, y: int) -> None:
    """Draw a signed temperature reading with one decimal, right-aligned."""
    draw_big_string_aligned_right(buffer, y, _format_value(value))