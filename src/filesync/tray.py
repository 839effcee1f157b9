"""System tray icon for filesync.

This module provides:
- FileSyncTray: Icon that turns red once a remote operation fails
- Menu entries opening each monitored folder, plus Quit

Requires pystray and Pillow (``pip install filesync[tray]``).
"""

from __future__ import annotations

import platform
import subprocess
import threading
from collections.abc import Callable, Sequence
from enum import Enum, auto
from pathlib import Path

from PIL import Image, ImageDraw

# pystray import with fallback
PYSTRAY_AVAILABLE: bool
try:
    import pystray
    from pystray import Icon, Menu, MenuItem

    PYSTRAY_AVAILABLE = True
except ImportError:
    PYSTRAY_AVAILABLE = False
    pystray = None  # type: ignore[assignment]
    Icon = None  # noqa: N806  # type: ignore[misc]
    Menu = None  # noqa: N806  # type: ignore[misc]
    MenuItem = None  # noqa: N806  # type: ignore[misc]


class TrayStatus(Enum):
    """Status states for the tray icon."""

    IDLE = auto()  # Mirroring, nothing failed
    ERROR = auto()  # A remote operation failed or a session broke


STATUS_COLORS = {
    TrayStatus.IDLE: "#1E88E5",  # Blue
    TrayStatus.ERROR: "#E53935",  # Red
}

# Windows truncates tooltips at 128 characters
MAX_TOOLTIP = 120

# File manager per platform.system(); anything else uses xdg-open
_FILE_MANAGERS = {
    "Windows": "explorer",
    "Darwin": "open",
}


def create_icon_image(status: TrayStatus, size: int = 64) -> Image.Image:
    """Draw the tray icon: an upload arrow, or a cross after a failure.

    Args:
        status: The status to represent
        size: Icon size in pixels

    Returns:
        RGBA image of ``size`` x ``size`` pixels
    """
    image = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)

    pad = size // 10
    draw.rounded_rectangle(
        [pad, pad, size - pad, size - pad],
        radius=size // 6,
        fill=STATUS_COLORS[status],
    )

    mid = size // 2
    stroke = max(size // 10, 1)
    inner = size // 4

    if status == TrayStatus.ERROR:
        draw.line([(inner, inner), (size - inner, size - inner)], fill="white", width=stroke)
        draw.line([(inner, size - inner), (size - inner, inner)], fill="white", width=stroke)
        return image

    # Arrow head pointing up, shaft below it
    head = size // 5
    draw.polygon(
        [(mid, inner), (mid - head, inner + head), (mid + head, inner + head)],
        fill="white",
    )
    draw.rectangle(
        [mid - stroke // 2, inner + head, mid + stroke // 2, size - inner],
        fill="white",
    )
    return image


def open_folder(folder_path: Path) -> None:
    """Open a folder in the system file manager."""
    opener = _FILE_MANAGERS.get(platform.system(), "xdg-open")
    subprocess.run([opener, str(folder_path)], check=False)


class FileSyncTray:
    """Tray icon for a running filesync process.

    Failures are reported from the dispatcher thread through set_error(),
    so status changes are guarded by a lock.
    """

    def __init__(
        self,
        folders: Sequence[Path],
        on_quit: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the tray icon.

        Args:
            folders: Monitored local folders, one "Open" entry each
            on_quit: Called when "Quit filesync" is clicked

        Raises:
            ImportError: If pystray is not available
        """
        if not PYSTRAY_AVAILABLE:
            raise ImportError(
                "pystray is required for tray icon. "
                "Install with: pip install filesync[tray]"
            )

        self._folders = list(folders)
        self._on_quit_callback = on_quit
        self._lock = threading.Lock()
        self._status = TrayStatus.IDLE
        self._failures = 0
        self._last_error = ""
        self._icon: pystray.Icon | None = None

    @property
    def status(self) -> TrayStatus:
        """Get current status."""
        return self._status

    @property
    def failures(self) -> int:
        """Get the number of failures reported since the last reset."""
        return self._failures

    @property
    def is_running(self) -> bool:
        """Check if the icon is shown."""
        return self._icon is not None

    def _tooltip(self) -> str:
        if self._status == TrayStatus.IDLE:
            return f"filesync - mirroring {len(self._folders)} folder(s)"
        text = f"filesync - {self._failures} failure(s)"
        if self._last_error:
            text += f": {self._last_error}"
        if len(text) > MAX_TOOLTIP:
            text = text[: MAX_TOOLTIP - 3] + "..."
        return text

    def _refresh(self) -> None:
        icon = self._icon
        if icon is None:
            return
        icon.icon = create_icon_image(self._status)
        icon.title = self._tooltip()

    def _on_quit(self) -> None:
        if self._on_quit_callback:
            self._on_quit_callback()
        self.stop()

    @staticmethod
    def _opener(folder: Path) -> Callable[[], None]:
        return lambda: open_folder(folder)

    def _build_menu(self) -> pystray.Menu:
        items = [MenuItem(f"Open {folder}", self._opener(folder)) for folder in self._folders]
        if items:
            items.append(Menu.SEPARATOR)
        items.append(MenuItem("Quit filesync", self._on_quit))
        return Menu(*items)

    def start(self, blocking: bool = True) -> None:
        """Show the icon.

        Args:
            blocking: Run the icon loop in this thread until stop() is
                called; otherwise run it in a daemon thread.
        """
        if self._icon is not None:
            return

        self._icon = Icon(
            name="filesync",
            icon=create_icon_image(self._status),
            title=self._tooltip(),
            menu=self._build_menu(),
        )

        if blocking:
            self._icon.run()
        else:
            threading.Thread(target=self._icon.run, name="FileSyncTray", daemon=True).start()

    def stop(self) -> None:
        """Remove the icon."""
        icon, self._icon = self._icon, None
        if icon is not None:
            icon.stop()

    def set_idle(self) -> None:
        """Clear the failure state."""
        with self._lock:
            self._status = TrayStatus.IDLE
            self._failures = 0
            self._last_error = ""
            self._refresh()

    def set_error(self, message: str = "") -> None:
        """Record a failure and switch to the error icon.

        Args:
            message: Description of the failed operation
        """
        with self._lock:
            self._status = TrayStatus.ERROR
            self._failures += 1
            self._last_error = message
            self._refresh()
