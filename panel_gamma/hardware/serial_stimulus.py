"""UART stimulus driver for the panel test fixture.

The fixture firmware accepts CRLF-terminated text commands at 115200 8N1:

    fct-bl start                   backlight on
    fct-bl set-brightness <0-255>  backlight level
    fct-lcd fill 0xRRGGBB          fill the screen with an RGB888 colour
    fct-bl stop                    backlight off

Handles:
    - Port open with bounded retries (fixture USB-UART enumerates late)
    - Backlight on at ``__enter__`` and off at ``__exit__``, on every exit path
    - Optional acknowledgement check (one response line per command)

All timeouts and retry counts come from ``StationConfig.connection``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import serial

from panel_gamma.hardware.ports import StimulusError, StimulusPort

logger = logging.getLogger(__name__)

LINE_END = "\r\n"


def rgb888(red: int, green: int, blue: int) -> int:
    """Pack three 8-bit components into an RGB888 integer."""
    for name, value in (("red", red), ("green", green), ("blue", blue)):
        if not 0 <= value <= 255:
            raise ValueError(f"{name} must be in [0, 255], got {value}")
    return (red << 16) | (green << 8) | blue


class SerialStimulus(StimulusPort):
    """Fixture UART client.

    Parameters
    ----------
    port : str
        Serial device (``"COM3"``, ``"/dev/ttyUSB0"``).
    baudrate : int
        Line rate; the fixture firmware runs at 115200.
    timeout : float
        Read timeout in seconds (only used when *read_ack* is set).
    open_attempts : int
        How many times to try opening the port.
    open_interval : float
        Seconds between open attempts.
    read_ack : bool
        If ``True``, read one response line per command and fail on an
        empty line or one starting with ``ERR``.
    backlight_brightness : int
        Level sent with ``fct-bl set-brightness`` after the backlight starts.

    Examples
    --------
    >>> with SerialStimulus("/dev/ttyUSB0") as stim:
    ...     stim.set_color(128, 128, 128)
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        timeout: float = 1.0,
        open_attempts: int = 3,
        open_interval: float = 1.0,
        read_ack: bool = False,
        backlight_brightness: int = 255,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.open_attempts = open_attempts
        self.open_interval = open_interval
        self.read_ack = read_ack
        self.backlight_brightness = backlight_brightness

        self._serial: serial.Serial | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        """``True`` when the port is open."""
        return self._serial is not None and self._serial.is_open

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Open the serial port.

        Raises
        ------
        StimulusError
            If the port cannot be opened after ``open_attempts`` tries.
        """
        for attempt in range(1, self.open_attempts + 1):
            try:
                logger.info(
                    "Opening fixture UART %s (attempt %d/%d)",
                    self.port,
                    attempt,
                    self.open_attempts,
                )
                self._serial = serial.Serial(
                    port=self.port,
                    baudrate=self.baudrate,
                    bytesize=serial.EIGHTBITS,
                    parity=serial.PARITY_NONE,
                    stopbits=serial.STOPBITS_ONE,
                    timeout=self.timeout,
                )
                logger.info("Fixture UART open at %d baud", self.baudrate)
                return
            except serial.SerialException as exc:
                logger.warning("Open attempt %d failed: %s", attempt, exc)
                self._serial = None
                if attempt < self.open_attempts:
                    time.sleep(self.open_interval)

        raise StimulusError(
            f"Failed to open fixture UART {self.port} "
            f"after {self.open_attempts} attempts"
        )

    def close(self) -> None:
        """Close the port (no-op when already closed)."""
        if self._serial is not None:
            try:
                self._serial.close()
            except serial.SerialException as exc:
                logger.warning("Error closing %s: %s", self.port, exc)
            self._serial = None
            logger.info("Fixture UART closed")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def backlight_on(self, brightness: int | None = None) -> None:
        level = self.backlight_brightness if brightness is None else brightness
        if not 0 <= level <= 255:
            raise ValueError(f"brightness must be in [0, 255], got {level}")
        self.send("fct-bl start")
        self.send(f"fct-bl set-brightness {level}")

    def backlight_off(self) -> None:
        self.send("fct-bl stop")

    def set_color(self, red: int, green: int, blue: int) -> None:
        """Fill the panel with an RGB888 colour."""
        self.send(f"fct-lcd fill 0x{rgb888(red, green, blue):06X}")

    def send(self, command: str) -> str:
        """Write one command line; return the ack line (``""`` if not read).

        Raises
        ------
        StimulusError
            On a closed port, a serial failure or a rejected command.
        """
        if not self.is_open:
            raise StimulusError(f"Fixture UART {self.port} is not open")

        payload = (command + LINE_END).encode("ascii")
        try:
            self._serial.write(payload)  # type: ignore[union-attr]
            self._serial.flush()  # type: ignore[union-attr]
            logger.debug("Send: %s", command)
            if not self.read_ack:
                return ""
            raw = self._serial.readline()  # type: ignore[union-attr]
        except serial.SerialException as exc:
            raise StimulusError(f"Serial error on {command!r}: {exc}") from exc

        reply = raw.decode("ascii", errors="replace").strip()
        if not reply:
            raise StimulusError(
                f"No acknowledgement for {command!r} within {self.timeout}s"
            )
        if reply.upper().startswith("ERR"):
            raise StimulusError(f"Fixture rejected {command!r}: {reply}")
        logger.debug("Ack: %s", reply)
        return reply

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> SerialStimulus:
        self.open()
        try:
            self.backlight_on()
        except StimulusError:
            self.close()
            raise
        return self

    def __exit__(self, *args: Any) -> None:
        try:
            if self.is_open:
                self.backlight_off()
        except StimulusError as exc:
            logger.error("Backlight off failed: %s", exc)
        finally:
            self.close()
