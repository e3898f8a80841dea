"""
Keyboard handler for stream controls during generation.

ESC   - Stop the stream
SPACE - Pause / resume the stream
"""

import concurrent.futures
import logging
import select
import sys
import threading
from typing import Callable, Optional

from miow.stream.session import SessionControls

# Try to import platform-specific modules
try:
    import termios
    import tty
    HAS_TERMIOS = True
except ImportError:
    HAS_TERMIOS = False

logger = logging.getLogger(__name__)

ESC = "\x1b"
SPACE = " "


class KeyboardMonitor:
    """
    Monitor the keyboard for ESC and SPACE while a session streams.

    Key presses are forwarded to the session through SessionControls, which
    hands them to the event loop; this thread never touches session state.

    Usage:
        monitor = KeyboardMonitor(SessionControls(session, loop))
        monitor.start()
        await session.run(...)
        monitor.stop()
    """

    def __init__(self, controls: SessionControls, on_status: Optional[Callable[[str], None]] = None):
        """
        Initialize keyboard monitor.

        Args:
            controls: Thread-safe handle on the session
            on_status: Callback for status messages
        """
        self.controls = controls
        self.on_status = on_status or (lambda x: None)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._original_settings: Optional[list] = None

    def start(self):
        """Start keyboard monitoring."""
        if not HAS_TERMIOS or not sys.stdin.isatty():
            # Windows or non-terminal - skip keyboard monitoring
            return

        self._stop_event.clear()

        # Save terminal settings
        try:
            self._original_settings = termios.tcgetattr(sys.stdin)
        except termios.error:
            return

        self._thread = threading.Thread(target=self._monitor_loop, daemon=True)
        self._thread.start()

    def stop(self):
        """Stop keyboard monitoring and restore terminal."""
        self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=0.5)
        self._thread = None
        self._restore_terminal()

    def handle_key(self, char: str):
        """Dispatch one key press to the session controls."""
        if char == ESC:
            self.on_status("[yellow]ESC pressed - stopping...[/yellow]")
            self.controls.stop().add_done_callback(_report_stop_failure)
        elif char == SPACE:
            self.controls.toggle_pause()
            self.on_status("[cyan]SPACE pressed - toggling pause[/cyan]")

    def _monitor_loop(self):
        """Background thread reading single key presses."""
        try:
            # Set terminal to cbreak mode for single character input
            tty.setcbreak(sys.stdin.fileno())

            while not self._stop_event.is_set():
                # Timeout lets the thread notice stop()
                if select.select([sys.stdin], [], [], 0.1)[0]:
                    self.handle_key(sys.stdin.read(1))
        except (OSError, ValueError) as e:
            logger.debug(f"Keyboard monitor stopped: {e}")
        finally:
            self._restore_terminal()

    def _restore_terminal(self):
        if HAS_TERMIOS and self._original_settings:
            try:
                termios.tcsetattr(sys.stdin, termios.TCSADRAIN, self._original_settings)
            except termios.error:
                pass


def _report_stop_failure(future: concurrent.futures.Future):
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error(f"Stopping the stream failed: {error}")


def create_keyboard_hints() -> str:
    """Create keyboard hints string for display."""
    return "[dim]ESC=stop  SPACE=pause/resume[/dim]"
