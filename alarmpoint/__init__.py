"""Home alarm with a web control page, captive DHCP/DNS servers and an SSD1306 renderer."""

__version__ = "0.1.0"
__all__ = ["app", "bigfont", "dhcp", "dns", "ssd1306"]