from types import SimpleNamespace
from unittest import mock

import pytest
import serial

from owonmeter import connect as connect_module
from owonmeter.connect import (
    ConnectError,
    Identity,
    PortEntry,
    connect,
    describe_port,
    list_ports,
    open_port,
    parse_identity,
    probe,
)
from owonmeter.settings import Settings


class FakePort:
    def __init__(self, reply=b"", name="ttyFAKE0", write_error=None):
        self.name = name
        self.is_open = True
        self.written = []
        self._reply = reply
        self._write_error = write_error

    def open(self):
        self.is_open = True

    def close(self):
        self.is_open = False

    def write(self, data):
        if self._write_error is not None:
            raise self._write_error
        self.written.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    @property
    def in_waiting(self):
        return len(self._reply)

    def readline(self, size=-1):
        end = self._reply.find(b"\n")
        end = len(self._reply) if end < 0 else end + 1
        if size >= 0:
            end = min(end, size)
        line, self._reply = self._reply[:end], self._reply[end:]
        return line


IDN_REPLY = b"OWON,XDM1041,SN0000,V1.0\n"


def test_describe_port_full():
    assert describe_port("ttyUSB0", "USB Serial", "Maker") == "ttyUSB0 - USB Serial (Maker)"


def test_describe_port_name_only():
    assert describe_port("COM3", "", None) == "COM3"


def test_describe_port_manufacturer_only():
    assert describe_port("ttyS1", None, "Maker") == "ttyS1 (Maker)"


def test_parse_identity_full():
    identity = parse_identity("OWON, XDM1041 ,SN0000, V1.0\r\n")
    assert identity == Identity("OWON", "XDM1041", "SN0000", "V1.0")
    assert identity.status == "Connected: XDM1041 (FW: V1.0)"
    assert str(identity) == identity.status


def test_parse_identity_without_firmware():
    identity = parse_identity("OWON,XDM1041")
    assert identity.model == "XDM1041"
    assert identity.firmware == "Unknown Fw"


def test_parse_identity_invalid():
    with pytest.raises(ConnectError, match="Invalid response: garbage"):
        parse_identity("garbage")


def test_parse_identity_invalid_truncates_to_50():
    line = "x" * 80
    with pytest.raises(ConnectError) as info:
        parse_identity(line)
    assert str(info.value) == "Invalid response: " + "x" * 50


def test_probe_sends_idn_and_keeps_port_open():
    port = FakePort(IDN_REPLY)
    identity = probe(port)
    assert port.written == [b"*IDN?\n"]
    assert identity.model == "XDM1041"
    assert port.is_open


def test_probe_reopens_closed_port():
    port = FakePort(IDN_REPLY)
    port.is_open = False
    assert probe(port).firmware == "V1.0"
    assert port.is_open


def test_probe_read_timeout(monkeypatch):
    monkeypatch.setattr(connect_module, "_READ_TIMEOUT", 0.02)
    port = FakePort(b"")
    with pytest.raises(ConnectError, match="Read timeout from ttyFAKE0"):
        probe(port)
    assert not port.is_open


def test_probe_write_timeout():
    port = FakePort(IDN_REPLY, write_error=serial.SerialTimeoutException("slow"))
    with pytest.raises(ConnectError, match="Write timeout to ttyFAKE0"):
        probe(port)
    assert not port.is_open


def test_probe_invalid_reply_closes_port():
    port = FakePort(b"hello\n")
    with pytest.raises(ConnectError, match="Invalid response"):
        probe(port)
    assert not port.is_open


def test_list_ports_builds_entries():
    infos = [
        SimpleNamespace(device="/dev/ttyUSB0", name="ttyUSB0",
                        description="USB Serial", manufacturer="Maker"),
        SimpleNamespace(device="/dev/ttyS0", name="ttyS0",
                        description="n/a", manufacturer=None),
    ]
    with mock.patch("serial.tools.list_ports.comports", return_value=infos):
        entries = list_ports()
    assert entries == [
        PortEntry("/dev/ttyUSB0", "ttyUSB0 - USB Serial (Maker)"),
        PortEntry("/dev/ttyS0", "ttyS0"),
    ]


def test_list_ports_empty():
    with mock.patch("serial.tools.list_ports.comports", return_value=[]):
        assert list_ports() == []


def test_open_port_missing_device_raises():
    with pytest.raises(ConnectError, match="Could not open"):
        open_port("/nonexistent/owonmeter-port")


def test_open_port_settings():
    fake = FakePort(IDN_REPLY)
    with mock.patch("serial.Serial", return_value=fake) as factory:
        assert open_port("/dev/ttyUSB0") is fake
    kwargs = factory.call_args.kwargs
    assert kwargs["port"] == "/dev/ttyUSB0"
    assert kwargs["baudrate"] == 115200
    assert kwargs["parity"] == serial.PARITY_NONE
    assert kwargs["rtscts"] is False


def test_connect_saves_settings_and_identifies(tmp_path):
    settings = Settings(path=tmp_path / "cfg" / "owon.ini")
    fake = FakePort(IDN_REPLY)
    with mock.patch("serial.Serial", return_value=fake):
        port, identity = connect("/dev/ttyUSB0", settings)
    assert port is fake
    assert identity.model == "XDM1041"
    assert settings.path.exists()


def test_connect_failure_closes_port():
    fake = FakePort(b"nonsense\n")
    with mock.patch("serial.Serial", return_value=fake):
        with pytest.raises(ConnectError, match="Invalid response"):
            connect("/dev/ttyUSB0")
    assert not fake.is_open


def test_connect_requires_device():
    with pytest.raises(ConnectError, match="No serial port selected"):
        connect("")