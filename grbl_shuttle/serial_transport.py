"""Direct serial connection to a Grbl controller.

Translates Grbl's line protocol into the inbound reports the machine facade
consumes (CNCJS-shaped status snapshots and settings payloads) and sends
commands with character-counting flow control on the 128 byte RX buffer.
"""

from __future__ import annotations

import logging
import queue
import re
import threading
import time
from collections import deque
from typing import Any

import serial
from serial.tools import list_ports

from .types import TransportListener
from .utils.constants import (
    ACK_ERROR_PREFIX,
    ACK_OK,
    BAUD_DEFAULT,
    EVENT_QUEUE_TIMEOUT,
    RT_HOLD,
    RT_JOG_CANCEL,
    RT_RESET,
    RT_STATUS,
    RX_BUFFER_SIZE,
    SERIAL_CONNECT_DELAY,
    SERIAL_TIMEOUT,
    SERIAL_WRITE_TIMEOUT,
    STATE_IDLE,
    STATUS_POLL_DEFAULT,
    THREAD_JOIN_TIMEOUT,
)
from .utils.exceptions import SerialConnectionError, SerialWriteError
from .utils.validation import to_number, validate_baud_rate, validate_port_name

logger = logging.getLogger(__name__)
serial_logger = logging.getLogger("grbl_shuttle.serial")

_SETTING_PAT = re.compile(r"^(\$\d+)=(\S*)")
_AXIS_KEYS = ("x", "y", "z")


def _parse_xyz(text: str) -> tuple[float, float, float]:
    values = [to_number(v) for v in text.split(",")]
    values += [0.0] * (3 - len(values))
    return values[0], values[1], values[2]


def _format_xyz(values: tuple[float, float, float]) -> dict[str, str]:
    return {key: f"{value:.3f}" for key, value in zip(_AXIS_KEYS, values)}


def parse_status_report(
    line: str,
    wco: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> tuple[dict[str, Any], tuple[float, float, float]]:
    """Parse a ``<State|MPos:...|...>`` report.

    Grbl sends either MPos or WPos and only sends WCO every few reports, so
    the last offset is passed in and returned updated.

    Returns:
        Tuple of (status mapping in CNCJS shape, work coordinate offset)
    """
    parts = line.strip().strip("<>").split("|")
    state, _, sub_state = parts[0].partition(":")
    status: dict[str, Any] = {"activeState": state}
    if sub_state:
        status["subState"] = to_number(sub_state)

    mpos = wpos = None
    for part in parts[1:]:
        key, _, value = part.partition(":")
        if key == "MPos":
            mpos = _parse_xyz(value)
        elif key == "WPos":
            wpos = _parse_xyz(value)
        elif key == "WCO":
            wco = _parse_xyz(value)
        elif key == "Bf":
            planner, _, rx = value.partition(",")
            status["buf"] = {"planner": int(to_number(planner)), "rx": int(to_number(rx))}
        elif key in ("FS", "F"):
            feed, _, spindle = value.partition(",")
            status["feedrate"] = to_number(feed)
            if spindle:
                status["spindle"] = to_number(spindle)
        elif key == "Ov":
            status["ov"] = [int(to_number(v)) for v in value.split(",")]
        elif key == "Pn":
            status["pinState"] = value

    if mpos is not None:
        wpos = (mpos[0] - wco[0], mpos[1] - wco[1], mpos[2] - wco[2])
    elif wpos is not None:
        mpos = (wpos[0] + wco[0], wpos[1] + wco[1], wpos[2] + wco[2])
    if mpos is not None and wpos is not None:
        status["mpos"] = _format_xyz(mpos)
        status["wpos"] = _format_xyz(wpos)
    status["wco"] = _format_xyz(wco)
    return status, wco


def parse_setting_line(line: str) -> tuple[str, str] | None:
    """Parse a ``$110=1000.000`` settings line."""
    match = _SETTING_PAT.match(line.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


def parse_parser_state(line: str) -> dict[str, Any] | None:
    """Parse a ``[GC:G0 G54 G17 G21 G90 G94 M5 M9 T0 F0 S0]`` report."""
    text = line.strip()
    if not (text.startswith("[GC:") and text.endswith("]")):
        return None
    words = text[4:-1].split()
    parser: dict[str, Any] = {"modal": [w for w in words if w[:1] in ("G", "M")]}
    for word in words:
        if word.startswith("T"):
            parser["tool"] = word[1:]
        elif word.startswith("F"):
            parser["feedrate"] = word[1:]
        elif word.startswith("S"):
            parser["spindle"] = word[1:]
    return parser


class SerialTransport:
    """Manages the serial link to Grbl.

    Three daemon threads: RX parses incoming lines, TX paces queued
    commands into the controller buffer, and the status thread polls
    ``?``. Listener callbacks run on the RX/TX threads.

    Example:
        transport = SerialTransport(listener)
        transport.connect("/dev/ttyUSB0")
    """

    def __init__(self, listener: TransportListener, *, status_poll_interval: float = STATUS_POLL_DEFAULT):
        self.listener = listener
        self.status_poll_interval = float(status_poll_interval)
        self.ser: serial.Serial | None = None

        # Worker threads
        self._rx_thread: threading.Thread | None = None
        self._tx_thread: threading.Thread | None = None
        self._status_thread: threading.Thread | None = None
        self._stop_evt = threading.Event()

        # Command queue / flow control
        self._outgoing_q: queue.Queue[str] = queue.Queue()
        self._inflight: deque[int] = deque()
        self._inflight_lock = threading.Lock()
        self._write_lock = threading.Lock()

        # Report parsing state
        self._wco: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self._settings_buf: dict[str, str] = {}
        self._awaiting_settings = False
        self._settings_retry = False
        self._parser_state: dict[str, Any] | None = None

    # ========================================================================
    # CONTEXT MANAGER SUPPORT
    # ========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self.disconnect()
        except Exception as e:
            logger.error(f"Error during cleanup: {e}")
        return False

    # ========================================================================
    # CONNECTION MANAGEMENT
    # ========================================================================

    @staticmethod
    def list_ports() -> list[str]:
        return [p.device for p in list_ports.comports()]

    def connect(self, port: str, baud: int = BAUD_DEFAULT) -> None:
        """Connect to GRBL controller.

        Raises:
            SerialConnectionError: If connection fails
            InvalidParameterError: If parameters are invalid
        """
        port = validate_port_name(port)
        baud = validate_baud_rate(baud)

        if self.is_connected():
            self.disconnect()

        self._stop_evt = threading.Event()
        try:
            self.ser = serial.Serial(
                port,
                baudrate=baud,
                timeout=SERIAL_TIMEOUT,
                write_timeout=SERIAL_WRITE_TIMEOUT,
            )
        except serial.SerialException as e:
            self.ser = None
            raise SerialConnectionError(f"Failed to connect to {port}: {e}") from e

        # Give GRBL time to reset (some boards reset on connection)
        time.sleep(SERIAL_CONNECT_DELAY)
        try:
            self.ser.reset_input_buffer()
            self.ser.reset_output_buffer()
        except serial.SerialException as e:
            logger.warning(f"Failed to reset buffers: {e}")

        stop_evt = self._stop_evt
        self._rx_thread = threading.Thread(target=self._rx_loop, args=(stop_evt,), daemon=True, name="GRBL-RX")
        self._tx_thread = threading.Thread(target=self._tx_loop, args=(stop_evt,), daemon=True, name="GRBL-TX")
        self._status_thread = threading.Thread(
            target=self._status_loop, args=(stop_evt,), daemon=True, name="GRBL-Status"
        )
        self._rx_thread.start()
        self._tx_thread.start()
        self._status_thread.start()
        logger.info(f"Connected to {port} at {baud} baud")

        self._resynchronize()

    def disconnect(self) -> None:
        """Stop worker threads and close the port. Idempotent."""
        self._stop_evt.set()
        self._clear_outgoing()
        if self.ser:
            try:
                self.ser.close()
                logger.info("Serial port closed")
            except serial.SerialException as e:
                logger.error(f"Error closing serial port: {e}")
            finally:
                self.ser = None

        for thread in (self._rx_thread, self._tx_thread, self._status_thread):
            if thread and thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=THREAD_JOIN_TIMEOUT)
                if thread.is_alive():
                    logger.warning(f"Thread {thread.name} did not terminate")
        self._rx_thread = None
        self._tx_thread = None
        self._status_thread = None

    def is_connected(self) -> bool:
        return self.ser is not None and self.ser.is_open

    def _signal_disconnect(self, reason: str) -> None:
        logger.error(f"Disconnected: {reason}")
        self._stop_evt.set()
        ser, self.ser = self.ser, None
        if ser is not None:
            try:
                ser.close()
            except serial.SerialException:
                pass
        self._clear_outgoing()
        self.listener.connection_closed()

    # ========================================================================
    # OUTBOUND
    # ========================================================================

    def send_command(self, text: str) -> None:
        line = text.strip()
        if line:
            self._outgoing_q.put(line)

    def send_jog_cancel(self) -> None:
        self.send_realtime(RT_JOG_CANCEL)

    def send_feedhold(self) -> None:
        self.send_realtime(RT_HOLD)

    def send_reset(self) -> None:
        # Grbl drops its buffers on reset
        self._clear_outgoing()
        self.send_realtime(RT_RESET)

    def send_realtime(self, command: bytes) -> None:
        """Send a real-time byte (processed by Grbl without buffering)."""
        if not self.is_connected():
            logger.warning("Cannot send real-time command - not connected")
            return
        try:
            self._write(command)
        except SerialWriteError as e:
            self._signal_disconnect(str(e))

    def _write(self, payload: bytes) -> None:
        ser = self.ser
        if ser is None:
            raise SerialWriteError("Port closed")
        try:
            with self._write_lock:
                total = 0
                while total < len(payload):
                    written = ser.write(payload[total:]) or 0
                    if written <= 0:
                        raise serial.SerialTimeoutException("Write returned 0 bytes")
                    total += written
        except serial.SerialTimeoutException as e:
            raise SerialWriteError(f"Write timeout: {e}") from e
        except serial.SerialException as e:
            raise SerialWriteError(f"Serial write error: {e}") from e

    def _clear_outgoing(self) -> None:
        while True:
            try:
                self._outgoing_q.get_nowait()
            except queue.Empty:
                break
        with self._inflight_lock:
            self._inflight.clear()

    def _resynchronize(self) -> None:
        """Treat the controller as freshly reset and re-read its settings."""
        self._clear_outgoing()
        self._settings_buf = {}
        self._awaiting_settings = True
        self._settings_retry = False
        self.listener.status_report({"status": {"activeState": ""}, "parserstate": self._parser_state})
        self.send_command("$$")
        self.send_command("$G")

    # ========================================================================
    # INBOUND
    # ========================================================================

    def _handle_rx_line(self, line: str) -> None:
        serial_logger.debug(f"RX {line}")
        lowered = line.lower()

        if lowered == ACK_OK or lowered.startswith(ACK_ERROR_PREFIX):
            with self._inflight_lock:
                if self._inflight:
                    self._inflight.popleft()
            if lowered == ACK_OK and self._settings_buf:
                self._awaiting_settings = False
                settings, self._settings_buf = self._settings_buf, {}
                self.listener.settings_report({"settings": settings})
            elif self._awaiting_settings and lowered.startswith(ACK_ERROR_PREFIX):
                # Grbl refuses $$ while moving; ask again once it is idle
                logger.warning(f"Settings request rejected ({line}); retrying when idle")
                self._awaiting_settings = False
                self._settings_retry = True
            self.listener.command_ack(line)
            return

        if line.startswith("<") and line.endswith(">"):
            if self._awaiting_settings:
                return
            status, self._wco = parse_status_report(line, self._wco)
            self.listener.status_report({"status": status, "parserstate": self._parser_state})
            if self._settings_retry and status.get("activeState") == STATE_IDLE:
                self._settings_retry = False
                self.send_command("$$")
            return

        setting = parse_setting_line(line)
        if setting is not None:
            code, value = setting
            self._settings_buf[code] = value
            return

        parser_state = parse_parser_state(line)
        if parser_state is not None:
            self._parser_state = parser_state
            return

        if lowered.startswith("alarm:"):
            self.listener.alarm_report(line)
            return

        if lowered.startswith("grbl"):
            logger.info(f"Controller reset: {line}")
            self._resynchronize()
            return

        if lowered.startswith("[msg:"):
            logger.info(f"Grbl message: {line}")

    # ========================================================================
    # WORKER THREAD LOOPS
    # ========================================================================

    def _rx_loop(self, stop_evt: threading.Event) -> None:
        logger.debug("RX thread started")
        buf = b""
        try:
            while not stop_evt.is_set():
                ser = self.ser
                if ser is None:
                    break
                try:
                    chunk = ser.read(256)
                except serial.SerialException as e:
                    self._signal_disconnect(f"Serial read error: {e}")
                    break
                if not chunk:
                    continue
                buf += chunk
                while b"\n" in buf:
                    raw, buf = buf.split(b"\n", 1)
                    line = raw.decode("utf-8", errors="replace").strip()
                    if line:
                        self._handle_rx_line(line)
        except Exception as e:
            logger.error(f"RX thread error: {e}", exc_info=True)
            self._signal_disconnect(f"RX thread error: {e}")
        finally:
            logger.debug("RX thread stopped")

    def _has_room(self, length: int) -> bool:
        with self._inflight_lock:
            return sum(self._inflight) + length <= RX_BUFFER_SIZE - 1

    def _tx_loop(self, stop_evt: threading.Event) -> None:
        logger.debug("TX thread started")
        try:
            while not stop_evt.is_set():
                try:
                    line = self._outgoing_q.get(timeout=EVENT_QUEUE_TIMEOUT)
                except queue.Empty:
                    continue
                payload = (line + "\n").encode("ascii", errors="replace")
                while not self._has_room(len(payload)):
                    if stop_evt.wait(EVENT_QUEUE_TIMEOUT):
                        return
                with self._inflight_lock:
                    self._inflight.append(len(payload))
                try:
                    self._write(payload)
                except SerialWriteError as e:
                    self._signal_disconnect(str(e))
                    break
                serial_logger.debug(f"TX {line}")
                self.listener.command_echo(line)
        except Exception as e:
            logger.error(f"TX thread error: {e}", exc_info=True)
            self._signal_disconnect(f"TX thread error: {e}")
        finally:
            logger.debug("TX thread stopped")

    def _status_loop(self, stop_evt: threading.Event) -> None:
        logger.debug("Status thread started")
        try:
            while not stop_evt.is_set():
                if self.is_connected():
                    self.send_realtime(RT_STATUS)
                if stop_evt.wait(self.status_poll_interval):
                    break
        finally:
            logger.debug("Status thread stopped")
