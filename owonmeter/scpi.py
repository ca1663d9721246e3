"""SCPI conversation with an OWON XDM-1041 multimeter over a serial port."""

from __future__ import annotations

import logging
import re
import time

from .settings import Rate

log = logging.getLogger(__name__)

_READY_TIMEOUT = 0.5
_LINE_TIMEOUT = 0.1
_POLL_INTERVAL = 0.01

_BYTE_GLYPHS = (
    (b"\xa6\xb8", "Ω".encode()),
    (b"\xa6\xcc", "µ".encode()),
    (b"\xa1\xe6", "°C".encode()),
    (b"\xa8\x48", "°F".encode()),
)

_TEXT_GLYPHS = (
    ("\u00a6\u00b8", "Ω Ohm"),
    ("\u00aa\u00cc", "µ"),
    ("\u00a1\u00e6", "°C"),
    ("\u00a8\u0048", "°F"),
)

_NUMBER_UNIT = re.compile(r"([-+]?[0-9]*\.?[0-9]+)([^0-9.]+)")

_RATE_CODES = {Rate.SLOW: "S", Rate.MEDIUM: "M", Rate.FAST: "F"}


class MeterError(Exception):
    """Raised when the meter cannot be talked to."""


def rate_to_serial(rate) -> str:
    """Return the one-letter code the RATE command takes."""
    return _RATE_CODES.get(rate, "F")


def decode_response(data: bytes) -> str:
    """Turn a raw meter reply into text, separating number and unit."""
    for raw, glyph in _BYTE_GLYPHS:
        data = data.replace(raw, glyph)
    text = data.decode("utf-8", errors="replace")
    text = _NUMBER_UNIT.sub(r"\1 \2", text)
    return text.replace("  ", " ")


def format_display(reading: str) -> str:
    """Replace the meter's remaining code-page glyphs for display."""
    for raw, glyph in _TEXT_GLYPHS:
        reading = reading.replace(raw, glyph)
    return reading


class Meter:
    """A multimeter reached through an open serial port."""

    def __init__(self, port, *, settle: float = _POLL_INTERVAL) -> None:
        self._port = port
        self._settle = settle
        self.unit = ""

    def __enter__(self) -> "Meter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def port(self):
        return self._port

    @property
    def is_open(self) -> bool:
        return self._port is not None and bool(self._port.is_open)

    def _require_port(self):
        if self._port is None:
            raise MeterError("no port open")
        return self._port

    def write_statement(self, command: str) -> None:
        """Send a command that has no reply."""
        port = self._require_port()
        port.write((command + "\r\n").encode("utf-8"))
        port.flush()
        if self._settle:
            time.sleep(self._settle)

    def query(self, command: str) -> str:
        """Send a command and return its decoded reply."""
        self.write_statement(command)
        return self.read_response()

    def _wait_for_data(self, timeout: float) -> bool:
        port = self._port
        deadline = time.monotonic() + timeout
        while not port.in_waiting:
            if time.monotonic() > deadline:
                return False
            time.sleep(_POLL_INTERVAL)
        return True

    def read_response(self) -> str:
        """Read one reply line from the meter."""
        if not self.is_open:
            raise MeterError("serial port not open")
        if not self._wait_for_data(_READY_TIMEOUT):
            raise MeterError("serial port not ready")
        data = bytearray()
        start = time.monotonic()
        while b"\n" not in data:
            if time.monotonic() - start > _LINE_TIMEOUT:
                raise MeterError("read timeout")
            waiting = self._port.in_waiting
            if waiting:
                data += self._port.read(waiting)
            else:
                time.sleep(_POLL_INTERVAL)
        return decode_response(bytes(data))

    def configure(self, settings) -> None:
        """Apply the start-up configuration after connecting."""
        self.write_statement("RATE " + rate_to_serial(settings.rate))
        self.write_statement("SYST:BEEP:STAT OFF")
        self.voltage_50v()

    def voltage_50v(self) -> None:
        self.unit = "V"
        self.write_statement("CONF:VOLT:DC 50")

    def voltage_auto(self) -> None:
        self.unit = "V"
        self.write_statement("CONF:VOLT:DC AUTO")

    def short(self, settings) -> None:
        """Continuity mode, beeping below the configured threshold if enabled."""
        self.unit = "Ω"
        self.write_statement("CONF:CONT")
        if settings.beep_short:
            log.debug("Beep resistance: %s", settings.beep_resistance)
            self.write_statement(f"CONT:THRE {settings.beep_resistance}")
            self.write_statement("SYST:BEEP:STAT ON")
        else:
            self.write_statement("SYST:BEEP:STAT OFF")

    def diode(self, settings) -> None:
        """Diode test mode, beeping if enabled."""
        state = "ON" if settings.beep_diode else "OFF"
        self.write_statement(f"SYST:BEEP:STAT {state}")
        self.write_statement("CONF:DIOD")

    def resistance_50k(self) -> None:
        self.write_statement("CONF:RES 50E3")

    def resistance_auto(self) -> None:
        self.unit = "Ω"
        self.write_statement("CONF:RES AUTO")

    def capacitance_50uf(self) -> None:
        self.unit = "F"
        self.write_statement("CONF:CAP 50E-6")

    def capacitance_auto(self) -> None:
        self.unit = "F"
        self.write_statement("CONF:CAP AUTO")

    def frequency(self) -> None:
        self.unit = "Hz"
        self.write_statement("CONF:FREQ")

    def period(self) -> None:
        self.unit = "%"
        self.write_statement("CONF:PER")

    def measure(self) -> str:
        """Return the current reading, ready for display."""
        return format_display(self.query("MEAS1:SHOW?"))

    def close(self) -> None:
        """Close the port; further commands raise MeterError."""
        if self._port is not None:
            if self._port.is_open:
                self._port.close()
            self._port = None