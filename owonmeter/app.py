"""Main window and measurement loop for the meter front end."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import serial

from .connect import ConnectError, connect, list_ports
from .scpi import Meter, MeterError
from .settings import Rate, Settings

log = logging.getLogger(__name__)

NOT_CONNECTED = "not connected"
WINDOW_TITLE = "OWON XDM-1041"
MIN_WIDTH = 580
MIN_HEIGHT = 162
POLL_INTERVAL_MS = 100
AUTO_CONNECT_DELAY_MS = 2000

BUTTON_WIDTH = 70
BUTTON_HEIGHT = 32
BUTTON_BAR_WIDTH = 350
_BUTTON_ROW_GAP = 1
_MEASUREMENT_MARGIN = 2
_FONT_SIZE = 72

_SERIAL_FAILURES = (serial.SerialException, OSError)


class Mode(Enum):
    """A measurement function, with its button label and grid position."""

    VOLTAGE_50V = ("50 V", 0, 0)
    VOLTAGE_AUTO = ("Auto V", 0, 1)
    SHORT = ("Short", 1, 0)
    DIODE = ("Diode", 1, 1)
    RESISTANCE_50K = ("50 kΩ", 2, 0)
    RESISTANCE_AUTO = ("Auto Ω", 2, 1)
    CAPACITANCE_50UF = ("50 µF", 3, 0)
    CAPACITANCE_AUTO = ("Auto F", 3, 1)
    FREQUENCY = ("Hz", 4, 0)
    PERIOD = ("Period", 4, 1)

    def __init__(self, label: str, column: int, row: int) -> None:
        self.label = label
        self.column = column
        self.row = row


_ACTIONS = {
    Mode.VOLTAGE_50V: lambda meter, settings: meter.voltage_50v(),
    Mode.VOLTAGE_AUTO: lambda meter, settings: meter.voltage_auto(),
    Mode.SHORT: lambda meter, settings: meter.short(settings),
    Mode.DIODE: lambda meter, settings: meter.diode(settings),
    Mode.RESISTANCE_50K: lambda meter, settings: meter.resistance_50k(),
    Mode.RESISTANCE_AUTO: lambda meter, settings: meter.resistance_auto(),
    Mode.CAPACITANCE_50UF: lambda meter, settings: meter.capacitance_50uf(),
    Mode.CAPACITANCE_AUTO: lambda meter, settings: meter.capacitance_auto(),
    Mode.FREQUENCY: lambda meter, settings: meter.frequency(),
    Mode.PERIOD: lambda meter, settings: meter.period(),
}


@dataclass(frozen=True)
class ButtonPlacement:
    """Where one mode button goes in the window."""

    mode: Mode
    x: int
    y: int
    width: int
    height: int


def button_layout(width, height, measure_height) -> list[ButtonPlacement]:
    """Place the mode buttons in two rows, centred, below the reading.

    Only the window width matters; *height* is accepted so callers can pass
    the full window size.
    """
    left = int((width - BUTTON_BAR_WIDTH) / 2)
    top = measure_height + _MEASUREMENT_MARGIN
    rows = (top, top + BUTTON_HEIGHT + _BUTTON_ROW_GAP)
    return [
        ButtonPlacement(
            mode,
            left + mode.column * BUTTON_WIDTH,
            rows[mode.row],
            BUTTON_WIDTH,
            BUTTON_HEIGHT,
        )
        for mode in Mode
    ]


class MeterController:
    """Drives an attached meter: mode changes and periodic readings."""

    def __init__(self, settings: Settings, *, settle: float = 0.01) -> None:
        self.settings = settings
        self.display = NOT_CONNECTED
        self._settle = settle
        self._meter: Meter | None = None

    @property
    def connected(self) -> bool:
        return self._meter is not None

    @property
    def unit(self) -> str:
        return self._meter.unit if self._meter is not None else ""

    def attach(self, port) -> bool:
        """Take over an open port and apply the start-up configuration."""
        self.close()
        self._meter = Meter(port, settle=self._settle)
        try:
            self._meter.configure(self.settings)
        except _SERIAL_FAILURES as exc:
            self.handle_error(str(exc))
            return False
        return True

    def select_mode(self, mode: Mode) -> bool:
        """Switch the meter to *mode*; return False if nothing was sent."""
        if self._meter is None:
            log.warning("No port open, refusing %s", mode.label)
            return False
        try:
            _ACTIONS[mode](self._meter, self.settings)
        except _SERIAL_FAILURES as exc:
            self.handle_error(str(exc))
            return False
        return True

    def poll(self) -> str | None:
        """Fetch a reading; None means there is no meter and polling should stop."""
        if self._meter is None:
            log.info("Port is closed, stopping updates")
            return None
        try:
            reading = self._meter.measure()
        except MeterError as exc:
            log.debug("%s", exc)
            reading = ""
        except _SERIAL_FAILURES as exc:
            self.handle_error(str(exc))
            return None
        self.display = reading
        return reading

    def handle_error(self, message: str) -> None:
        """Report a serial failure and drop the port."""
        log.error("Serial port error, closing: %s", message)
        self.close()

    def close(self) -> None:
        """Close the port if one is attached."""
        if self._meter is not None:
            self._meter.close()
            self._meter = None


def _monospace_family() -> str:
    if sys.platform.startswith("win"):
        return "Consolas"
    if sys.platform == "darwin":
        return "Menlo"
    return "Liberation Mono"


def _parse_int(text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        return 0


_RATE_LABELS = ((Rate.SLOW, "Slow"), (Rate.MEDIUM, "Medium"), (Rate.FAST, "Fast"))
_STATUS_COLOURS = {"idle": "gray", "error": "red", "busy": "blue", "ok": "green"}


class _ConnectDialog:
    """Modal dialog that picks a port, edits the defaults and tests the meter."""

    def __init__(self, parent, settings: Settings) -> None:
        import tkinter as tk
        from tkinter import ttk

        self._settings = settings
        self._parent = parent
        self._entries = []
        self._port = None
        self._device = ""
        self._accepted = False

        top = self._top = tk.Toplevel(parent)
        top.title("Serial Port Connection")
        top.transient(parent)
        top.protocol("WM_DELETE_WINDOW", self._cancel)

        defaults = ttk.LabelFrame(top, text="Defaults")
        defaults.pack(fill="x", padx=8, pady=4)
        self._beep_short = tk.BooleanVar(master=top, value=settings.beep_short)
        ttk.Checkbutton(
            defaults, text="Beep in SHORT mode", variable=self._beep_short
        ).grid(row=0, column=0, columnspan=2, sticky="w")
        ttk.Label(defaults, text="Threshold (Ω):").grid(row=1, column=0, sticky="w")
        self._threshold = tk.StringVar(master=top, value=str(settings.beep_resistance))
        ttk.Entry(defaults, textvariable=self._threshold, width=6).grid(
            row=1, column=1, sticky="w"
        )
        self._beep_diode = tk.BooleanVar(master=top, value=settings.beep_diode)
        ttk.Checkbutton(
            defaults, text="Beep in DIODE mode", variable=self._beep_diode
        ).grid(row=2, column=0, columnspan=2, sticky="w")

        rate_box = ttk.LabelFrame(defaults, text="Measurement Rate")
        rate_box.grid(row=3, column=0, columnspan=2, sticky="we", pady=4)
        current = settings.rate if settings.rate in (Rate.SLOW, Rate.MEDIUM) else Rate.FAST
        self._rate = tk.StringVar(master=top, value=current.name)
        for rate, label in _RATE_LABELS:
            ttk.Radiobutton(
                rate_box, text=label, value=rate.name, variable=self._rate
            ).pack(side="left", padx=4)

        ports = ttk.LabelFrame(top, text="Port Selection")
        ports.pack(fill="x", padx=8, pady=4)
        self._combo = ttk.Combobox(ports, state="readonly", width=40)
        self._combo.pack(side="left", fill="x", expand=True)
        ttk.Button(ports, text="Refresh", command=self._populate).pack(side="left")

        self._status = ttk.Label(top, text="Select a port and connect.")
        self._status.pack(fill="x", padx=8)
        self._set_status("Select a port and connect.", "idle")

        buttons = ttk.Frame(top)
        buttons.pack(fill="x", padx=8, pady=8)
        self._connect_button = ttk.Button(buttons, text="Connect", command=self._connect)
        self._connect_button.pack(side="right")
        ttk.Button(buttons, text="Cancel", command=self._cancel).pack(side="right")
        ttk.Button(buttons, text="Test", command=self._try).pack(side="right")

        self._populate()

    def _set_status(self, text: str, kind: str) -> None:
        self._status.configure(text=text, foreground=_STATUS_COLOURS[kind])

    def _populate(self) -> None:
        self._entries = list_ports()
        self._combo["values"] = [entry.label for entry in self._entries]
        if not self._entries:
            self._combo.set("")
            self._set_status("No serial ports found", "error")
            self._connect_button.state(["disabled"])
            return
        self._combo.current(0)
        self._set_status("Select a port and click Connect/Test.", "idle")
        self._connect_button.state(["!disabled"])

    def _save_settings(self) -> None:
        settings = self._settings
        settings.beep_short = bool(self._beep_short.get())
        settings.beep_diode = bool(self._beep_diode.get())
        settings.beep_resistance = _parse_int(self._threshold.get())
        settings.rate = Rate[self._rate.get()]
        settings.save()

    def _release_port(self) -> None:
        if self._port is not None:
            if self._port.is_open:
                self._port.close()
            self._port = None

    def _try(self):
        index = self._combo.current()
        if index < 0 or index >= len(self._entries):
            self._set_status("No serial port selected.", "error")
            return None
        self._release_port()
        device = self._entries[index].device
        self._save_settings()
        self._set_status("Testing communication...", "busy")
        self._top.update_idletasks()
        try:
            port, identity = connect(device)
        except ConnectError as exc:
            self._set_status(str(exc), "error")
            return None
        self._port = port
        self._device = device
        self._set_status(identity.status, "ok")
        return port

    def _connect(self) -> None:
        if self._try() is not None:
            self._accepted = True
            self._top.destroy()

    def _cancel(self) -> None:
        self._release_port()
        self._top.destroy()

    def run(self):
        """Show the dialog; return (device, open port) if accepted, else None."""
        self._top.grab_set()
        self._parent.wait_window(self._top)
        if self._accepted and self._port is not None:
            return self._device, self._port
        return None


class MainWindow:
    """The reading display with its mode buttons."""

    def __init__(self, settings: Settings | None = None) -> None:
        import tkinter as tk
        from tkinter import font as tkfont

        self.settings = settings if settings is not None else Settings()
        self.settings.load()
        self.controller = MeterController(self.settings)
        self._timer = None

        root = self.root = tk.Tk()
        root.title(WINDOW_TITLE)
        root.minsize(MIN_WIDTH, MIN_HEIGHT)
        s = self.settings
        if s.window_width > 0 and s.window_height > 0:
            root.geometry(f"{s.window_width}x{s.window_height}+{s.window_x}+{s.window_y}")

        self._font = tkfont.Font(root=root, family=_monospace_family(), size=_FONT_SIZE)
        self._label = tk.Label(
            root,
            text=NOT_CONNECTED,
            font=self._font,
            anchor="e",
            relief="raised",
            borderwidth=1,
            padx=0,
            pady=0,
        )
        self._label.bind("<ButtonRelease-1>", self._on_measurement_clicked)
        self._buttons = {
            mode: tk.Button(root, text=mode.label, command=lambda m=mode: self._select(m))
            for mode in Mode
        }
        root.bind("<Configure>", self._on_resize)
        root.protocol("WM_DELETE_WINDOW", self._on_close)
        self._place(max(s.window_width, MIN_WIDTH), max(s.window_height, MIN_HEIGHT))

    def _place(self, width: int, height: int) -> None:
        measure_height = self._font.metrics("linespace")
        self._label.place(
            x=_MEASUREMENT_MARGIN, y=0, width=width - 2 * _MEASUREMENT_MARGIN,
            height=measure_height,
        )
        for placement in button_layout(width, height, measure_height):
            self._buttons[placement.mode].place(
                x=placement.x, y=placement.y,
                width=placement.width, height=placement.height,
            )

    def _on_resize(self, event) -> None:
        if event.widget is not self.root:
            return
        self.settings.window_width = event.width
        self.settings.window_height = event.height
        self._place(event.width, event.height)

    def _select(self, mode: Mode) -> None:
        self.controller.select_mode(mode)

    def _on_measurement_clicked(self, _event=None) -> None:
        self.settings.save()
        self.open_connect_dialog()

    def _start_polling(self) -> None:
        self._stop_polling()
        self._timer = self.root.after(POLL_INTERVAL_MS, self._tick)

    def _stop_polling(self) -> None:
        if self._timer is not None:
            self.root.after_cancel(self._timer)
            self._timer = None

    def _tick(self) -> None:
        self._timer = None
        reading = self.controller.poll()
        if reading is None:
            return
        self._label.configure(text=reading)
        self._timer = self.root.after(POLL_INTERVAL_MS, self._tick)

    def _on_connected(self, port) -> None:
        if self.controller.attach(port):
            self._start_polling()

    def connect_serial(self) -> None:
        """Connect to the stored device, or ask the user for one."""
        log.info("Connecting to serial port (auto)")
        device = self.settings.device
        if not device:
            self.open_connect_dialog()
            return
        try:
            port, _identity = connect(device, self.settings)
        except ConnectError as exc:
            log.error("Could not connect to serial port %s: %s", device, exc)
            return
        self._on_connected(port)

    def open_connect_dialog(self) -> bool:
        """Let the user choose a port; return True if one was connected."""
        result = _ConnectDialog(self.root, self.settings).run()
        if result is None:
            return False
        device, port = result
        self.settings.device = device
        self._on_connected(port)
        return True

    def _on_close(self) -> None:
        self._stop_polling()
        self.controller.close()
        self.settings.save()
        self.root.destroy()

    def run(self) -> None:
        """Show the window and process events until it is closed."""
        self.root.after(AUTO_CONNECT_DELAY_MS, self.connect_serial)
        self.root.mainloop()


def main(argv=None) -> int:
    """Start the meter display."""
    parser = argparse.ArgumentParser(
        prog="owonmeter",
        description="Show live readings from an OWON XDM-1041 multimeter.",
    )
    parser.add_argument("--settings", type=Path, help="settings file to use")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    MainWindow(Settings(path=args.settings)).run()
    return 0