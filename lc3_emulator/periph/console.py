"""
LC-3 Emulator - Console Devices

The core never touches the host terminal directly. Traps and the
keyboard registers go through two small capabilities:

  InputDevice   poll_ready() -> bool    is a character waiting?
                read_char()  -> int     take one character (blocking)
  OutputDevice  write_char(byte), write_text(str), flush()

Implementations:
  QueueInputDevice    fixed character feed, for tests and scripted runs
  BufferOutputDevice  collects output bytes for inspection
  TerminalInputDevice host stdin, cbreak mode on a TTY, select() polling
  StreamOutputDevice  host stdout (or any text stream)

Any host-side failure is raised as ConsoleIOError so the emulator can
stop the run with a single, well-defined error.
"""

import logging
import os
import select
import sys
from collections import deque
from typing import Iterable, Optional, Union

log = logging.getLogger('lc3.console')


class ConsoleIOError(IOError):
    """Input or output failed while the program needed the console."""
    pass


class InputDevice:
    """Keyboard capability consumed by the keyboard registers and traps."""

    def poll_ready(self) -> bool:
        raise NotImplementedError

    def read_char(self) -> int:
        raise NotImplementedError


class OutputDevice:
    """Display capability consumed by the output traps."""

    def write_char(self, byte: int):
        raise NotImplementedError

    def write_text(self, text: str):
        for ch in text:
            self.write_char(ord(ch) & 0xFF)

    def flush(self):
        pass


# ══════════════════════════════════════════════
# In-memory devices
# ══════════════════════════════════════════════

class QueueInputDevice(InputDevice):
    """Feeds a fixed character sequence to the program.

    Example:
        kbd = QueueInputDevice(b"y\\n")
        emu = LC3Emulator(input_device=kbd)
    """

    def __init__(self, data: Union[bytes, str, Iterable[int]] = b''):
        self._queue: deque = deque()
        self.inject(data)

    def inject(self, data: Union[bytes, str, Iterable[int]]):
        """Append characters to the feed."""
        if isinstance(data, str):
            data = data.encode('latin-1')
        for byte in data:
            self._queue.append(byte & 0xFF)

    def poll_ready(self) -> bool:
        return bool(self._queue)

    def read_char(self) -> int:
        if not self._queue:
            raise ConsoleIOError("input exhausted: no character left to read")
        return self._queue.popleft()

    @property
    def pending(self) -> int:
        return len(self._queue)


class BufferOutputDevice(OutputDevice):
    """Collects every byte written, like a transmit ring buffer."""

    def __init__(self):
        self.tx_buffer = bytearray()

    def write_char(self, byte: int):
        self.tx_buffer.append(byte & 0xFF)

    @property
    def output(self) -> bytes:
        return bytes(self.tx_buffer)

    @property
    def text(self) -> str:
        return self.tx_buffer.decode('latin-1')

    def clear(self):
        self.tx_buffer.clear()


# ══════════════════════════════════════════════
# Host terminal devices
# ══════════════════════════════════════════════

class TerminalInputDevice(InputDevice):
    """Reads the host's standard input.

    Use as a context manager to put a TTY into cbreak mode (no line
    buffering, no echo) for the duration of the run; the original
    terminal settings are restored on exit. Non-TTY input (pipes,
    redirected files) is read unchanged.
    """

    def __init__(self, stream=None):
        self._stream = stream if stream is not None else sys.stdin
        self._fd: Optional[int] = None
        self._saved_attrs = None

    @property
    def fd(self) -> int:
        if self._fd is None:
            try:
                self._fd = self._stream.fileno()
            except (AttributeError, ValueError, OSError) as e:
                raise ConsoleIOError(f"input stream has no file descriptor: {e}") from e
        return self._fd

    def __enter__(self):
        try:
            is_tty = os.isatty(self.fd)
        except ConsoleIOError:
            # no descriptor at all; read_char() reports the failure if input is needed
            return self
        if is_tty:
            import termios
            import tty
            self._saved_attrs = termios.tcgetattr(self.fd)
            tty.setcbreak(self.fd)
            log.debug("terminal switched to cbreak mode")
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._saved_attrs is not None:
            import termios
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None
            log.debug("terminal settings restored")
        return False

    def poll_ready(self) -> bool:
        try:
            readable, _, _ = select.select([self.fd], [], [], 0)
        except (OSError, ValueError) as e:
            raise ConsoleIOError(f"keyboard poll failed: {e}") from e
        return bool(readable)

    def read_char(self) -> int:
        try:
            data = os.read(self.fd, 1)
        except OSError as e:
            raise ConsoleIOError(f"keyboard read failed: {e}") from e
        if not data:
            raise ConsoleIOError("end of input")
        return data[0]


class StreamOutputDevice(OutputDevice):
    """Writes raw bytes to a stream (stdout by default).

    Text streams with an underlying binary buffer (sys.stdout) are written
    through that buffer, so every byte goes out unchanged whatever the
    stream encoding is. Streams without one get latin-1 characters.
    """

    def __init__(self, stream=None):
        self._stream = stream if stream is not None else sys.stdout
        self._raw = getattr(self._stream, "buffer", None)
        if self._raw is not None:
            # anything already written as text must land before our bytes
            self._stream.flush()

    def write_char(self, byte: int):
        try:
            if self._raw is not None:
                self._raw.write(bytes([byte & 0xFF]))
            else:
                self._stream.write(chr(byte & 0xFF))
        except (OSError, ValueError) as e:
            raise ConsoleIOError(f"console write failed: {e}") from e

    def flush(self):
        try:
            self._stream.flush()
        except (OSError, ValueError) as e:
            raise ConsoleIOError(f"console flush failed: {e}") from e
