import pytest

from owonmeter.scpi import (
    Meter,
    MeterError,
    decode_response,
    format_display,
    rate_to_serial,
)
from owonmeter.settings import Rate, Settings


class FakePort:
    def __init__(self, incoming=b""):
        self.written = []
        self.incoming = bytearray(incoming)
        self.is_open = True
        self.flushes = 0

    @property
    def in_waiting(self):
        return len(self.incoming)

    def read(self, size=1):
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        return chunk

    def write(self, data):
        self.written.append(bytes(data))
        return len(data)

    def flush(self):
        self.flushes += 1

    def close(self):
        self.is_open = False


@pytest.fixture
def settings(tmp_path):
    return Settings(path=tmp_path / "s.ini")


def test_rate_to_serial():
    assert rate_to_serial(Rate.SLOW) == "S"
    assert rate_to_serial(Rate.MEDIUM) == "M"
    assert rate_to_serial(Rate.FAST) == "F"


def test_decode_response_separates_number_and_unit():
    assert decode_response(b"0.123V\n") == "0.123 V\n"


def test_decode_response_replaces_ohm_bytes():
    text = decode_response(b"1.5k\xa6\xb8\n")
    assert "Ω" in text
    assert "\xa6" not in text
    assert text.startswith("1.5 ")


@pytest.mark.parametrize(
    "raw, glyph",
    [(b"\xa6\xcc", "µ"), (b"\xa1\xe6", "°C"), (b"\xa8\x48", "°F")],
)
def test_decode_response_replaces_glyphs(raw, glyph):
    assert glyph in decode_response(b"7" + raw + b"\n")


def test_decode_response_no_double_spaces():
    assert "  " not in decode_response(b"12 mV\n")


def test_format_display_ohm():
    text = format_display("12\u00a6\u00b8")
    assert text.endswith("Ω Ohm")
    assert text.startswith("12")


def test_format_display_plain_text_unchanged():
    assert format_display("1.000 V") == "1.000 V"


def test_write_statement_wire_bytes():
    port = FakePort()
    meter = Meter(port, settle=0)
    meter.write_statement("CONF:VOLT:DC 50")
    assert port.written == [b"CONF:VOLT:DC 50\r\n"]
    assert port.flushes == 1


def test_configure_sequence(settings):
    settings.rate = Rate.SLOW
    port = FakePort()
    meter = Meter(port, settle=0)
    meter.configure(settings)
    assert port.written == [
        b"RATE S\r\n",
        b"SYST:BEEP:STAT OFF\r\n",
        b"CONF:VOLT:DC 50\r\n",
    ]
    assert meter.unit == "V"


def test_short_with_beep(settings):
    port = FakePort()
    meter = Meter(port, settle=0)
    meter.short(settings)
    assert port.written == [
        b"CONF:CONT\r\n",
        b"CONT:THRE 50\r\n",
        b"SYST:BEEP:STAT ON\r\n",
    ]
    assert meter.unit == "Ω"


def test_short_without_beep(settings):
    settings.beep_short = False
    port = FakePort()
    Meter(port, settle=0).short(settings)
    assert port.written == [b"CONF:CONT\r\n", b"SYST:BEEP:STAT OFF\r\n"]


def test_diode_beep_setting(settings):
    settings.beep_diode = False
    port = FakePort()
    Meter(port, settle=0).diode(settings)
    assert port.written == [b"SYST:BEEP:STAT OFF\r\n", b"CONF:DIOD\r\n"]


@pytest.mark.parametrize(
    "method, wire, unit",
    [
        ("voltage_auto", b"CONF:VOLT:DC AUTO\r\n", "V"),
        ("resistance_auto", b"CONF:RES AUTO\r\n", "Ω"),
        ("capacitance_50uf", b"CONF:CAP 50E-6\r\n", "F"),
        ("capacitance_auto", b"CONF:CAP AUTO\r\n", "F"),
        ("frequency", b"CONF:FREQ\r\n", "Hz"),
        ("period", b"CONF:PER\r\n", "%"),
    ],
)
def test_mode_commands(method, wire, unit):
    port = FakePort()
    meter = Meter(port, settle=0)
    getattr(meter, method)()
    assert port.written == [wire]
    assert meter.unit == unit


def test_resistance_50k_command():
    port = FakePort()
    Meter(port, settle=0).resistance_50k()
    assert port.written == [b"CONF:RES 50E3\r\n"]


def test_measure_queries_and_decodes():
    port = FakePort(b"3.3V\r\n")
    meter = Meter(port, settle=0)
    reading = meter.measure()
    assert port.written == [b"MEAS1:SHOW?\r\n"]
    assert reading.startswith("3.3 V")
    assert port.in_waiting == 0


def test_query_returns_decode_of_reply():
    port = FakePort(b"0.5mV\n")
    assert Meter(port, settle=0).query("MEAS1:SHOW?") == decode_response(b"0.5mV\n")


def test_read_without_newline_times_out():
    port = FakePort(b"123")
    with pytest.raises(MeterError):
        Meter(port, settle=0).read_response()


def test_read_without_data_not_ready():
    with pytest.raises(MeterError):
        Meter(FakePort(), settle=0).read_response()


def test_close_closes_port_and_blocks_writes():
    port = FakePort()
    meter = Meter(port, settle=0)
    meter.close()
    assert port.is_open is False
    assert meter.is_open is False
    with pytest.raises(MeterError):
        meter.write_statement("CONF:FREQ")


def test_context_manager_closes():
    port = FakePort()
    with Meter(port, settle=0) as meter:
        meter.frequency()
    assert port.is_open is False


def test_read_on_closed_port_raises():
    port = FakePort(b"1V\n")
    port.is_open = False
    with pytest.raises(MeterError):
        Meter(port, settle=0).read_response()