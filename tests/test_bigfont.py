import pytest

from alarmpoint.bigfont import (
    BIG_DIGITS,
    draw_big_char,
    draw_big_string_aligned_right,
    glyph_for,
    char_width,
    show_big_value,
    string_width,
)
from alarmpoint.ssd1306 import WIDTH, new_buffer


def _pixel(buffer, x, y):
    return (buffer[(y // 8) * WIDTH + x] >> (y % 8)) & 1


@pytest.mark.parametrize("ch", list("0123456789+-.oC"))
def test_known_characters_have_full_glyphs(ch):
    glyph = glyph_for(ch)
    assert glyph is not None
    assert len(glyph) == 64


@pytest.mark.parametrize("ch", ["A", "c", " ", "x"])
def test_unknown_characters_have_no_glyph(ch):
    assert glyph_for(ch) is None


def test_digit_zero_first_row_matches_font_data():
    assert glyph_for("0")[:2] == bytes((0x3C, 0x00))
    assert glyph_for("0") == BIG_DIGITS[0]


def test_char_widths():
    assert char_width(".") == 8
    assert char_width("o") == 8
    assert char_width("5") == 16
    assert char_width("?") == 16


def test_string_width_empty_is_zero():
    assert string_width("") == 0


@pytest.mark.parametrize("a,b", [("12", ".5"), ("+", "oC"), ("", "-9")])
def test_string_width_is_additive(a, b):
    assert string_width(a + b) == string_width(a) + string_width(b)


def test_draw_big_char_sets_and_clears_pixels():
    buffer = bytearray(b"\xff" * len(new_buffer()))
    draw_big_char(buffer, 0, 0, glyph_for("0"))
    # Row 0 is 0x3C: columns 2..5 lit, 0,1,6,7 dark.
    assert _pixel(buffer, 2, 0) == 1
    assert _pixel(buffer, 5, 0) == 1
    assert _pixel(buffer, 0, 0) == 0
    assert _pixel(buffer, 7, 0) == 0
    # Blank lower half of the glyph is cleared.
    assert _pixel(buffer, 3, 31) == 0
    # Outside the glyph the buffer is untouched.
    assert _pixel(buffer, 16, 0) == 1


def test_draw_big_char_rejects_short_bitmap():
    with pytest.raises(ValueError):
        draw_big_char(new_buffer(), 0, 0, b"\x00" * 10)


def test_draw_big_char_off_screen_raises():
    with pytest.raises(ValueError):
        draw_big_char(new_buffer(), WIDTH - 8, 0, glyph_for("1"))


def test_aligned_right_places_last_glyph_at_edge():
    buffer = new_buffer()
    draw_big_string_aligned_right(buffer, 0, "C")
    expected = new_buffer()
    draw_big_char(expected, WIDTH - 16, 0, glyph_for("C"))
    assert buffer == expected


def test_aligned_right_skips_unknown_characters_but_advances():
    buffer = new_buffer()
    draw_big_string_aligned_right(buffer, 0, "1 ")
    expected = new_buffer()
    draw_big_char(expected, WIDTH - 32, 0, glyph_for("1"))
    assert buffer == expected


def test_aligned_right_too_wide_raises():
    with pytest.raises(ValueError):
        draw_big_string_aligned_right(new_buffer(), 0, "1234567890")


def test_show_big_value_positive():
    buffer = new_buffer()
    show_big_value(buffer, 1.5, 0)
    expected = new_buffer()
    draw_big_string_aligned_right(expected, 0, "+1.5oC")
    assert buffer == expected
    assert any(buffer)


def test_show_big_value_negative():
    buffer = new_buffer()
    show_big_value(buffer, -2.0, 32)
    expected = new_buffer()
    draw_big_string_aligned_right(expected, 32, "-2.0oC")
    assert buffer == expected


def test_show_big_value_too_large_raises():
    with pytest.raises(ValueError):
        show_big_value(new_buffer(), 1e10, 0)