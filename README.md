# alarmpoint

A small home alarm controlled from a web page. The package contains:

- `alarmpoint.app`: the alarm controller (`AlarmController`), the HTTP
  request handling (`handle_request`, `alarm_control_content`), a
  single-threaded server (`AlarmServer`) and the `alarmpoint` command;
- `alarmpoint.dhcp`: a minimal DHCP server (`DhcpServer`) that hands out
  leases from a pool of eight addresses starting at `.16` of the server's
  network;
- `alarmpoint.dns`: a captive DNS server (`DnsServer`) that answers every
  standard query with a single A record holding its own address;
- `alarmpoint.ssd1306`: an SSD1306 128x64 OLED frame buffer with pixel,
  line, 8x8 character and string drawing, plus the command framing for the
  display (`Display`, `BitmapDisplay`, `RenderArea`);
- `alarmpoint.bigfont`: a 16x32 font for right-aligned numeric readouts
  (`draw_big_string_aligned_right`, `show_big_value`).

No third-party libraries are needed.

## Installation

```
pip install .
```

## Running

```
alarmpoint
```

Options:

- `--port N` – TCP port for the web page (default 80, which usually needs
  elevated privileges; use e.g. `--port 8080` otherwise);
- `--gateway ADDR` – address used in redirects and handed out by the DHCP
  and DNS servers (default `192.168.4.1`);
- `--netmask MASK` – subnet mask given to DHCP clients (default
  `255.255.255.0`);
- `--dhcp` – also run the DHCP server on UDP port 67;
- `--dns` – also run the captive DNS server on UDP port 53.

Open `http://<host>:<port>/alarm` in a browser. The page shows whether
the alarm is `ATIVADO` or `DESATIVADO` and offers a button that requests
`?alarm=1` or `?alarm=0`. Any other path is answered with a `302`
redirect to `http://<gateway>/alarm`.

While the alarm is active the LED toggles every 100 ms and the buzzer
sounds while the LED is lit; the display reads `ALARME` / `EVACUAR`. At
rest the LED and buzzer are off and the display reads `Sistema` /
`em repouso`.

Type `d` and Enter on standard input, or press Ctrl-C, to stop. The
alarm is switched off on the way out.

## Library use

```python
from alarmpoint.ssd1306 import new_buffer, draw_string, draw_line
from alarmpoint.bigfont import show_big_value
from alarmpoint.dns import DnsServer

buffer = new_buffer()                     # 1024-byte frame buffer
draw_string(buffer, 0, 0, "HELLO")
draw_line(buffer, 0, 63, 127, 0, True)
show_big_value(buffer, 21.5, 32)          # draws "+21.5oC" right-aligned

query = (bytes.fromhex("1234 0100 0001 0000 0000 0000")
         + b"\x07example\x03com\x00" + b"\x00\x01\x00\x01")
reply = DnsServer("192.168.4.1").handle(query)   # None when ignored
```

`DhcpServer.handle` and `DnsServer.handle` take a raw datagram and
return the reply bytes, or `None` when the request is ignored. `bind`,
`serve_once` and `close` drive them over a real UDP socket, and both
work as context managers. `DhcpServer` accepts a `clock` callable
returning milliseconds, which makes lease expiry testable.

`Display` and `BitmapDisplay` send their bytes through a
`write(address, data)` callable that you supply, so they can be connected
to any I2C bus library or to a recorder in tests.

`AlarmController` takes callables for the LED (`led(bool)`), buzzer
(`buzzer(level)`), display (`display(line1, line2)`) and an optional
clock; `render_message` draws two centred lines into a frame buffer.

## What it does not do

- It does not create a Wi-Fi access point; run it on a host that already
  serves the network.
- It does not drive any hardware itself. The `alarmpoint` command logs
  LED, buzzer and display changes instead of switching pins or writing
  to an OLED.

## Tests

```
pip install .[test]
pytest
```