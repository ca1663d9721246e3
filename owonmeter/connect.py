"""Finding, opening and identifying the meter's serial port."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import serial
from serial.tools import list_ports as _serial_ports

log = logging.getLogger(__name__)

BAUD_RATE = 115200
IDENTIFY_COMMAND = b"*IDN?\n"

_WRITE_TIMEOUT = 1.0
_READ_TIMEOUT = 2.0
_POLL_INTERVAL = 0.01
_MAX_LINE = 1023
_UNKNOWN_DESCRIPTIONS = {"", "n/a"}


class ConnectError(Exception):
    """Raised when a port cannot be opened or the meter does not answer."""


@dataclass(frozen=True)
class Identity:
    """The meter's answer to an identification query."""

    manufacturer: str
    model: str
    serial: str
    firmware: str

    @property
    def status(self) -> str:
        return f"Connected: {self.model} (FW: {self.firmware})"

    def __str__(self) -> str:
        return self.status


@dataclass(frozen=True)
class PortEntry:
    """A serial port that can be offered to the user."""

    device: str
    label: str


def describe_port(name, description, manufacturer) -> str:
    """Return a one-line label for a port."""
    label = name
    if description:
        label += " - " + description
    if manufacturer:
        label += " (" + manufacturer + ")"
    return label


def list_ports() -> list[PortEntry]:
    """Return the serial ports present on this machine."""
    entries = []
    for info in _serial_ports.comports():
        description = info.description or ""
        if description.strip().lower() in _UNKNOWN_DESCRIPTIONS:
            description = ""
        name = info.name or info.device
        entries.append(
            PortEntry(info.device, describe_port(name, description, info.manufacturer))
        )
    return entries


def open_port(device: str):
    """Open *device* at 115200 baud, 8N1, without flow control."""
    try:
        return serial.Serial(
            port=device,
            baudrate=BAUD_RATE,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
            timeout=_READ_TIMEOUT,
            write_timeout=_WRITE_TIMEOUT,
        )
    except (serial.SerialException, OSError, ValueError) as exc:
        log.debug("Failed to open serial port: %s", exc)
        raise ConnectError(f"Could not open: {exc}") from exc


def parse_identity(line: str) -> Identity:
    """Parse a ``manufacturer,model,serial,firmware`` reply."""
    parts = line.strip().split(",")
    if len(parts) < 2:
        raise ConnectError("Invalid response: " + line[:50])
    serial_number = parts[2].strip() if len(parts) > 2 else ""
    firmware = parts[3].strip() if len(parts) > 3 else "Unknown Fw"
    return Identity(parts[0].strip(), parts[1].strip(), serial_number, firmware)


def _port_name(port) -> str:
    return str(getattr(port, "name", None) or getattr(port, "port", ""))


def _wait_for_data(port, timeout: float) -> bool:
    deadline = time.monotonic() + timeout
    while not port.in_waiting:
        if time.monotonic() > deadline:
            return False
        time.sleep(_POLL_INTERVAL)
    return True


def probe(port) -> Identity:
    """Ask the device on *port* to identify itself; the port is left open."""
    name = _port_name(port)
    if not port.is_open:
        try:
            port.open()
        except (serial.SerialException, OSError) as exc:
            raise ConnectError(f"Could not open: {exc}") from exc
    try:
        port.write(IDENTIFY_COMMAND)
        port.flush()
    except serial.SerialTimeoutException as exc:
        port.close()
        raise ConnectError("Write timeout to " + name) from exc
    if not _wait_for_data(port, _READ_TIMEOUT):
        port.close()
        raise ConnectError("Read timeout from " + name)
    data = port.readline(_MAX_LINE)
    if not data:
        port.close()
        raise ConnectError("No response from " + name)
    try:
        return parse_identity(data.decode("utf-8", errors="replace"))
    except ConnectError:
        port.close()
        raise


def connect(device: str, settings=None):
    """Open *device*, save *settings* and identify the meter.

    Returns the open port and the meter's identity. On failure the port is
    closed and ConnectError is raised.
    """
    if not device:
        raise ConnectError("No serial port selected.")
    port = open_port(device)
    if settings is not None:
        settings.save()
    try:
        identity = probe(port)
    except ConnectError:
        if port.is_open:
            port.close()
        raise
    log.info("%s", identity.status)
    return port, identity