"""Operator-facing terminal I/O.

``Console`` prints plain lines and asks blocking questions. ``InputListener``
watches stdin from a background thread so the controller can notice a
keypress while an indefinite mode is running without ever blocking on a
read itself.
"""

import logging
import queue
import select
import sys
import threading

logger = logging.getLogger(__name__)

SELECT_WINDOW = 0.1  # seconds; how often the listener rechecks its stop signal


class Console:
    def __init__(self, stream=None, out=None):
        self.stream = stream if stream is not None else sys.stdin
        self._out = out if out is not None else sys.stdout

    def write(self, text=""):
        print(text, file=self._out, flush=True)

    def error(self, component, text):
        self.write(f"[{component}] error: {text}")

    def prompt(self, component, text):
        """Print ``[component] text:`` and read one line.

        Returns the line without its newline, or None at end of input.
        """
        print(f"\r[{component}] {text}: ", end="", file=self._out, flush=True)
        line = self.stream.readline()
        if line == "":
            return None
        return line.rstrip("\r\n")

    def device_row(self, device, color):
        self.write(f"| {device.name:<20} | {color.label():<20} | {color.format_rgb():<20} |")


class InputListener:
    """Reads stdin lines on a daemon thread into a single-slot queue.

    The stop signal is checked before every read attempt and before every
    delivery, so once ``stop`` is called no further line is handed over.
    """

    def __init__(self, stream=None, window=SELECT_WINDOW):
        self._stream = stream if stream is not None else sys.stdin
        self._window = window
        self._lines = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._thread = None

    @property
    def alive(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        self._stop.set()

    def join(self, timeout=None):
        if self._thread is not None:
            self._thread.join(timeout)

    def poll(self, timeout):
        """Wait up to ``timeout`` seconds for a line. Returns None if none came."""
        try:
            return self._lines.get(timeout=timeout)
        except queue.Empty:
            return None

    def _run(self):
        while not self._stop.is_set():
            try:
                ready, _, _ = select.select([self._stream], [], [], self._window)
            except (OSError, ValueError) as exc:
                logger.warning("Input listener stopped: %s", exc)
                return
            if self._stop.is_set():
                return
            if not ready:
                continue

            line = self._stream.readline()
            if line == "":
                logger.debug("Input listener reached end of input")
                return

            while not self._stop.is_set():
                try:
                    self._lines.put(line, timeout=self._window)
                    break
                except queue.Full:
                    continue
