"""Frame-buffer drawing and command framing for an SSD1306 128x64 OLED over I2C."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

WIDTH = 128
HEIGHT = 64
PAGE_HEIGHT = 8
N_PAGES = HEIGHT // PAGE_HEIGHT
BUFFER_LENGTH = N_PAGES * WIDTH

I2C_ADDRESS = 0x3C
I2C_CLOCK_KHZ = 400

CONTROL_COMMAND = 0x80
CONTROL_DATA = 0x40

SET_MEMORY_MODE = 0x20
SET_COLUMN_ADDRESS = 0x21
SET_PAGE_ADDRESS = 0x22
SET_HORIZONTAL_SCROLL = 0x26
SET_SCROLL = 0x2E
SET_DISPLAY_START_LINE = 0x40
SET_CONTRAST = 0x81
SET_CHARGE_PUMP = 0x8D
SET_SEGMENT_REMAP = 0xA0
SET_ENTIRE_ON = 0xA4
SET_ALL_ON = 0xA5
SET_NORMAL_DISPLAY = 0xA6
SET_INVERSE_DISPLAY = 0xA7
SET_MUX_RATIO = 0xA8
SET_DISPLAY = 0xAE
SET_COMMON_OUTPUT_DIRECTION = 0xC0
SET_COMMON_OUTPUT_DIRECTION_FLIP = 0xC0
SET_DISPLAY_OFFSET = 0xD3
SET_DISPLAY_CLOCK_DIVIDE_RATIO = 0xD5
SET_PRECHARGE = 0xD9
SET_COMMON_PIN_CONFIGURATION = 0xDA
SET_VCOMH_DESELECT_LEVEL = 0xDB

WRITE_MODE = 0xFE
READ_MODE = 0xFF

# 8x8 column-major glyphs: blank, A-Z, 0-9.
FONT = bytes((
    0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
    0x78, 0x14, 0x12, 0x11, 0x12, 0x14, 0x78, 0x00,
    0x7F, 0x49, 0x49, 0x49, 0x49, 0x49, 0x7F, 0x00,
    0x7E, 0x41, 0x41, 0x41, 0x41, 0x41, 0x41, 0x00,
    0x7F, 0x41, 0x41, 0x41, 0x41, 0x41, 0x7E, 0x00,
    0x7F, 0x49, 0x49, 0x49, 0x49, 0x49, 0x49, 0x00,
    0x7F, 0x09, 0x09, 0x09, 0x09, 0x01, 0x01, 0x00,
    0x7F, 0x41, 0x41, 0x41, 0x51, 0x51, 0x73, 0x00,
    0x7F, 0x08, 0x08, 0x08, 0x08, 0x08, 0x7F, 0x00,
    0x00, 0x00, 0x00, 0x7F, 0x00, 0x00, 0x00, 0x00,
    0x21, 0x41, 0x41, 0x3F, 0x01, 0x01, 0x01, 0x00,
    0x00, 0x7F, 0x08, 0x08, 0x14, 0x22, 0x41, 0x00,
    0x7F, 0x40, 0x40, 0x40, 0x40, 0x40, 0x40, 0x00,
    0x7F, 0x02, 0x04, 0x08, 0x04, 0x02, 0x7F, 0x00,
    0x7F, 0x02, 0x04, 0x08, 0x10, 0x20, 0x7F, 0x00,
    0x3E, 0x41, 0x41, 0x41, 0x41, 0x41, 0x3E, 0x00,
    0x7F, 0x11, 0x11, 0x11, 0x11, 0x11, 0x0E, 0x00,
    0x3E, 0x41, 0x41, 0x49, 0x51, 0x61, 0x7E, 0x00,
    0x7F, 0x11, 0x11, 0x11, 0x31, 0x51, 0x0E, 0x00,
    0x46, 0x49, 0x49, 0x49, 0x49, 0x30, 0x00, 0x00,
    0x01, 0x01, 0x01, 0x7F, 0x01, 0x01, 0x01, 0x00,
    0x3F, 0x40, 0x40, 0x40, 0x40, 0x40, 0x3F, 0x00,
    0x0F, 0x10, 0x20, 0x40, 0x20, 0x10, 0x0F, 0x00,
    0x7F, 0x20, 0x10, 0x08, 0x10, 0x20, 0x7F, 0x00,
    0x00, 0x41, 0x22, 0x14, 0x14, 0x22, 0x41, 0x00,
    0x01, 0x02, 0x04, 0x78, 0x04, 0x02, 0x01, 0x00,
    0x41, 0x61, 0x59, 0x45, 0x43, 0x41, 0x00, 0x00,
    0x3E, 0x41, 0x41, 0x49, 0x41, 0x41, 0x3E, 0x00,
    0x00, 0x00, 0x42, 0x7F, 0x40, 0x00, 0x00, 0x00,
    0x30, 0x49, 0x49, 0x49, 0x49, 0x46, 0x00, 0x00,
    0x49, 0x49, 0x49, 0x49, 0x49, 0x49, 0x36, 0x00,
    0x3F, 0x20, 0x20, 0x78, 0x20, 0x20, 0x00, 0x00,
    0x4F, 0x49, 0x49, 0x49, 0x49, 0x30, 0x00, 0x00,
    0x3F, 0x48, 0x48, 0x48, 0x48, 0x48, 0x30, 0x00,
    0x01, 0x01, 0x01, 0x61, 0x31, 0x0D, 0x03, 0x00,
    0x36, 0x49, 0x49, 0x49, 0x49, 0x49, 0x36, 0x00,
    0x06, 0x09, 0x09, 0x09, 0x09, 0x09, 0x7F, 0x00,
))

Writer = Callable[[int, bytes], None]


@dataclass
class RenderArea:
    """A rectangle of columns and pages to be sent to the display."""

    start_column: int = 0
    end_column: int = WIDTH - 1
    start_page: int = 0
    end_page: int = N_PAGES - 1

    def buffer_length(self) -> int:
        """Number of frame-buffer bytes this area covers."""
        return (self.end_column - self.start_column + 1) * (self.end_page - self.start_page + 1)


def new_buffer() -> bytearray:
    """Return a blank frame buffer for the whole display."""
    return bytearray(BUFFER_LENGTH)


def _as_str(character: str | int) -> str:
    if isinstance(character, int):
        return chr(character)
    if len(character) != 1:
        raise ValueError(f"expected a single character, got {character!r}")
    return character


def font_index(character: str | int) -> int:
    """Glyph index in FONT: 1-26 for A-Z, 27-36 for 0-9, 0 for anything else."""
    ch = _as_str(character)
    if "A" <= ch <= "Z":
        return ord(ch) - ord("A") + 1
    if "0" <= ch <= "9":
        return ord(ch) - ord("0") + 27
    return 0


def set_pixel(buffer: bytearray, x: int, y: int, on: bool) -> None:
    """Set or clear one pixel in the frame buffer."""
    if not (0 <= x < WIDTH and 0 <= y < HEIGHT):
        raise ValueError(f"pixel ({x}, {y}) is outside the {WIDTH}x{HEIGHT} display")
    index = (y // PAGE_HEIGHT) * WIDTH + x
    mask = 1 << (y % PAGE_HEIGHT)
    if on:
        buffer[index] |= mask
    else:
        buffer[index] &= ~mask & 0xFF


def draw_line(buffer: bytearray, x0: int, y0: int, x1: int, y1: int, on: bool) -> None:
    """Draw a straight line with Bresenham's algorithm, endpoints included."""
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    error = dx + dy
    while True:
        set_pixel(buffer, x0, y0, on)
        if x0 == x1 and y0 == y1:
            break
        error2 = 2 * error
        if error2 >= dy:
            error += dy
            x0 += sx
        if error2 <= dx:
            error += dx
            y0 += sy


def _fits(x: int, y: int) -> bool:
    return 0 <= x <= WIDTH - 8 and 0 <= y <= HEIGHT - 8


def draw_char(buffer: bytearray, x: int, y: int, character: str | int) -> None:
    """Draw an 8x8 glyph at column x on the page containing y; off-screen glyphs are skipped."""
    if not _fits(x, y):
        return
    glyph = font_index(_as_str(character).upper()) * 8
    start = (y // PAGE_HEIGHT) * WIDTH + x
    buffer[start:start + 8] = FONT[glyph:glyph + 8]


def draw_string(buffer: bytearray, x: int, y: int, text: str) -> None:
    """Draw text left to right, 8 pixels per character."""
    if not _fits(x, y):
        return
    for ch in text:
        draw_char(buffer, x, y, ch)
        x += 8


class Display:
    """Page-addressed SSD1306 driven through a write(address, data) callable."""

    def __init__(self, write: Writer, address: int = I2C_ADDRESS) -> None:
        self.write = write
        self.address = address

    def send_command(self, command: int) -> None:
        self.write(self.address, bytes((CONTROL_COMMAND, command & 0xFF)))

    def send_command_list(self, commands: Iterable[int]) -> None:
        for command in commands:
            self.send_command(command)

    def send_buffer(self, data: bytes | bytearray) -> None:
        self.write(self.address, bytes((CONTROL_DATA,)) + bytes(data))

    def init(self) -> None:
        """Send the power-up configuration sequence."""
        pin_config = 0x12 if (WIDTH, HEIGHT) == (128, 64) else 0x02
        self.send_command_list((
            SET_DISPLAY, SET_MEMORY_MODE, 0x00,
            SET_DISPLAY_START_LINE, SET_SEGMENT_REMAP | 0x01,
            SET_MUX_RATIO, HEIGHT - 1,
            SET_COMMON_OUTPUT_DIRECTION | 0x08, SET_DISPLAY_OFFSET, 0x00,
            SET_COMMON_PIN_CONFIGURATION, pin_config,
            SET_DISPLAY_CLOCK_DIVIDE_RATIO, 0x80,
            SET_PRECHARGE, 0xF1,
            SET_VCOMH_DESELECT_LEVEL, 0x30,
            SET_CONTRAST, 0xFF,
            SET_ENTIRE_ON, SET_NORMAL_DISPLAY,
            SET_CHARGE_PUMP, 0x14,
            SET_SCROLL | 0x00,
            SET_DISPLAY | 0x01,
        ))

    def scroll(self, enabled: bool) -> None:
        self.send_command_list((
            SET_HORIZONTAL_SCROLL | 0x00, 0x00, 0x00, 0x00, 0x03,
            0x00, 0xFF, SET_SCROLL | (0x01 if enabled else 0x00),
        ))

    def render(self, buffer: bytes | bytearray, area: RenderArea) -> None:
        """Address the area and send the first buffer_length() bytes of buffer."""
        self.send_command_list((
            SET_COLUMN_ADDRESS, area.start_column, area.end_column,
            SET_PAGE_ADDRESS, area.start_page, area.end_page,
        ))
        self.send_buffer(buffer[:area.buffer_length()])

    def clear(self, buffer: bytearray) -> None:
        """Blank the frame buffer and push it to the whole display."""
        buffer[:BUFFER_LENGTH] = bytes(BUFFER_LENGTH)
        self.render(buffer, RenderArea())


class BitmapDisplay:
    """Horizontally addressed SSD1306 holding its own RAM image."""

    def __init__(self, write: Writer, width: int = WIDTH, height: int = HEIGHT,
                 address: int = I2C_ADDRESS) -> None:
        self.write = write
        self.width = width
        self.height = height
        self.pages = height // PAGE_HEIGHT
        self.address = address
        self.bufsize = self.pages * width + 1
        self.ram_buffer = bytearray(self.bufsize)
        self.ram_buffer[0] = CONTROL_DATA

    def command(self, command: int) -> None:
        self.write(self.address, bytes((CONTROL_COMMAND, command & 0xFF)))

    def config(self) -> None:
        for command in (
            SET_DISPLAY | 0x00, SET_MEMORY_MODE, 0x01,
            SET_DISPLAY_START_LINE | 0x00, SET_SEGMENT_REMAP | 0x01,
            SET_MUX_RATIO, HEIGHT - 1,
            SET_COMMON_OUTPUT_DIRECTION | 0x08, SET_DISPLAY_OFFSET, 0x00,
            SET_COMMON_PIN_CONFIGURATION, 0x12,
            SET_DISPLAY_CLOCK_DIVIDE_RATIO, 0x80,
            SET_PRECHARGE, 0xF1,
            SET_VCOMH_DESELECT_LEVEL, 0x30,
            SET_CONTRAST, 0xFF,
            SET_ENTIRE_ON, SET_NORMAL_DISPLAY,
            SET_CHARGE_PUMP, 0x14,
            SET_DISPLAY | 0x01,
        ):
            self.command(command)

    def send_data(self) -> None:
        for command in (SET_COLUMN_ADDRESS, 0, self.width - 1,
                        SET_PAGE_ADDRESS, 0, self.pages - 1):
            self.command(command)
        self.write(self.address, bytes(self.ram_buffer))

    def draw_bitmap(self, bitmap: bytes | bytearray) -> None:
        """Copy the bitmap into RAM, pushing the image after every byte."""
        size = self.bufsize - 1
        if len(bitmap) < size:
            raise ValueError(f"bitmap needs {size} bytes, got {len(bitmap)}")
        for i, value in enumerate(bitmap[:size], start=1):
            self.ram_buffer[i] = value
            self.send_data()