# owonmeter

Read and control an OWON XDM-1041 bench multimeter from your computer over
its USB serial port.

The meter speaks SCPI at 115200 baud, 8 data bits, no parity, one stop bit.
`owonmeter` opens that port, checks that the meter answers `*IDN?`, applies
your preferred measurement rate, turns the beeper off, selects the 50 V DC
range and then polls the current reading every 100 ms.

## Installation

```
pip install owonmeter
```

The window is built with `tkinter`, which must be available in your Python
installation.

## Running the application

```
owonmeter
owonmeter --settings path/to/owonmeter.ini
```

About two seconds after start the program connects to the serial device
remembered from the last session. If none is remembered, a dialog lists the
serial ports found on the system; there you can also set the beeper defaults
and the measurement rate, test a port ("Test") or connect to it ("Connect").
Clicking the large reading opens that dialog again.

The reading is shown with its unit, with Ω, µ, °C and °F displayed properly.
The mode buttons switch the meter between:

| Button  | Command sent            |
|---------|-------------------------|
| 50 V    | `CONF:VOLT:DC 50`       |
| Auto V  | `CONF:VOLT:DC AUTO`     |
| Short   | `CONF:CONT`, then the beeper and `CONT:THRE <threshold>` as set |
| Diode   | beeper as set, then `CONF:DIOD` |
| 50 kΩ   | `CONF:RES 50E3`         |
| Auto Ω  | `CONF:RES AUTO`         |
| 50 µF   | `CONF:CAP 50E-6`        |
| Auto F  | `CONF:CAP AUTO`         |
| Hz      | `CONF:FREQ`             |
| Period  | `CONF:PER`              |

Closing the window closes the port and saves the settings.

## Settings

`owonmeter.settings.Settings` holds the preferences and reads and writes them
as an INI file with `load()` and `save()`. Unless another path is given, the
file is the one returned by `owonmeter.settings.default_settings_path()`
(under `APPDATA` on Windows, `~/Library/Preferences` on macOS, and
`XDG_CONFIG_HOME` or `~/.config` elsewhere). It stores:

- window size and position (`[window]`: `width`, `height`, `x`, `y`;
  defaults 580 × 162 at 100, 100)
- the serial device last used (`[hardware]`: `device`)
- the measurement rate (`[General]`: `rate` = `slow`, `medium` or `fast`,
  default `fast`)
- whether to beep in continuity mode (`beep_short`, default on) and at what
  threshold in ohms (`beep_threshold`, default 50)
- whether to beep in diode mode (`beep_diode`, default on)

Keys missing from the file keep their current values.

## Using it from Python

```python
from owonmeter.connect import connect, list_ports
from owonmeter.scpi import Meter
from owonmeter.settings import Settings

for entry in list_ports():
    print(entry.device, entry.label)

settings = Settings()
settings.load()

port, identity = connect("/dev/ttyUSB0", settings)
print(identity.status)          # e.g. "Connected: XDM1041 (FW: ...)"

with Meter(port) as meter:
    meter.configure(settings)
    meter.resistance_auto()
    print(meter.measure())
```

- `owonmeter.connect`: `list_ports()` returns `PortEntry` items;
  `open_port()` opens a device with the meter's line settings; `probe()` asks
  an open port for its `Identity`; `parse_identity()` parses an `*IDN?`
  reply; `connect()` does all of it, saving the settings first if given.
  Failures raise `ConnectError`.
- `owonmeter.scpi`: `Meter` sends statements (`write_statement()`), queries
  (`query()`, `measure()`) and the mode commands listed above; its `unit`
  attribute follows the selected mode. A missing port or a reply that does
  not arrive in time raises `MeterError`. `decode_response()` and
  `format_display()` turn raw replies into display text.
- `owonmeter.app`: `MeterController` drives an attached port for any front
  end (`attach()`, `select_mode()` with a `Mode`, `poll()`, `close()`);
  `button_layout()` computes where the mode buttons go; `MainWindow` is the
  window started by `main()`.

## Limitations

Readings are only shown on screen; they are not logged or recorded. Only DC
voltage, continuity, diode, resistance, capacitance, frequency and period
modes can be selected.

## Running the tests

```
pip install "owonmeter[test]"
pytest
```