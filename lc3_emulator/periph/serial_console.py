"""
LC-3 Emulator - Serial Port Console

Runs the LC-3 console over a serial line instead of the host terminal,
e.g. a USB-UART adapter wired to a real terminal:

    console = SerialConsole('/dev/ttyUSB0', baud=9600)
    console.open()
    emu = LC3Emulator(input_device=console, output_device=console)
    try:
        emu.run()
    finally:
        console.close()

Serial config: 8N1, no flow control. The port may be a device name or
any pyserial URL (loop://, socket://host:port). The same object
implements both InputDevice and OutputDevice.
"""

import logging
from typing import List, Optional

import serial
import serial.tools.list_ports

from ..config import SERIAL_BAUD, SERIAL_TIMEOUT
from .console import ConsoleIOError, InputDevice, OutputDevice

log = logging.getLogger('lc3.serial')


class SerialConsole(InputDevice, OutputDevice):
    """pyserial-backed console device."""

    def __init__(self, port: Optional[str] = None, baud: int = SERIAL_BAUD):
        self.port = port
        self.baud = baud
        self.ser: Optional[serial.Serial] = None

    # -------------------------------------------------------------------------
    # Port Management
    # -------------------------------------------------------------------------

    @staticmethod
    def scan_ports() -> List[str]:
        """List serial port device names present on this host."""
        return [p.device for p in serial.tools.list_ports.comports()]

    def open(self):
        if self.port is None:
            available = self.scan_ports()
            if not available:
                raise ConsoleIOError("no serial ports found")
            self.port = available[0]
            log.info(f"Auto-selected port: {self.port}")

        try:
            self.ser = serial.serial_for_url(
                self.port,
                baudrate=self.baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=SERIAL_TIMEOUT,
                write_timeout=1.0,
            )
        except serial.SerialException as e:
            raise ConsoleIOError(f"failed to open {self.port}: {e}") from e
        log.info(f"Opened {self.port} @ {self.baud} baud (8N1)")

    def close(self):
        if self.ser and self.ser.is_open:
            self.ser.close()
            log.info(f"Closed {self.port}")
        self.ser = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def is_connected(self) -> bool:
        return self.ser is not None and self.ser.is_open

    def _port(self) -> serial.Serial:
        if not self.is_connected:
            raise ConsoleIOError("serial console is not open")
        return self.ser

    # -------------------------------------------------------------------------
    # InputDevice
    # -------------------------------------------------------------------------

    def poll_ready(self) -> bool:
        try:
            return self._port().in_waiting > 0
        except serial.SerialException as e:
            raise ConsoleIOError(f"serial poll failed: {e}") from e

    def read_char(self) -> int:
        """Block until one byte arrives."""
        ser = self._port()
        try:
            while True:
                data = ser.read(1)
                if data:
                    return data[0]
        except serial.SerialException as e:
            raise ConsoleIOError(f"serial read failed: {e}") from e

    # -------------------------------------------------------------------------
    # OutputDevice
    # -------------------------------------------------------------------------

    def write_char(self, byte: int):
        try:
            self._port().write(bytes([byte & 0xFF]))
        except serial.SerialException as e:
            raise ConsoleIOError(f"serial write failed: {e}") from e

    def flush(self):
        try:
            self._port().flush()
        except serial.SerialException as e:
            raise ConsoleIOError(f"serial flush failed: {e}") from e
