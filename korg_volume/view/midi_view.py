"""
Tkinter-based GUI for the MIDI volume controller.
Thread-safe: other threads only queue data, the Tk main loop renders it.
"""
import tkinter as tk
from tkinter import ttk
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple
import threading

from korg_volume.config.settings import (
    WINDOW_TITLE, WINDOW_SIZE, WINDOW_RESIZABLE, GUI_UPDATE_INTERVAL_MS,
    DEFAULT_MAX_CONSOLE_LINES,
)
from korg_volume.model.channel_state import APPLICATION, TargetSnapshot
from korg_volume.utils.logger import get_logger
from korg_volume.view.presenter import Presenter, SaveCallback, VolumeCallback

MUTED_ICON = "🔇"
UNMUTED_ICON = "🔊"


class _FaderStrip:
    """One labelled vertical slider with a mute indicator."""

    def __init__(self, parent: ttk.Frame, snapshot: TargetSnapshot,
                 on_drag: Callable[[str, int], None]):
        self.name = snapshot.name
        self._on_drag = on_drag
        self._suppress = False

        self.frame = ttk.Frame(parent, padding="5")
        self.title = ttk.Label(self.frame, text=f"CC{snapshot.cc}", font=("TkDefaultFont", 9, "bold"))
        self.title.pack()
        self.mute_label = ttk.Label(self.frame, text=UNMUTED_ICON)
        self.mute_label.pack()

        self.volume_var = tk.IntVar(value=snapshot.volume)
        self.scale = ttk.Scale(self.frame, from_=100, to=0, orient="vertical", length=220,
                               variable=self.volume_var, command=self._on_scale)
        self.scale.pack(pady=5)

        self.value_label = ttk.Label(self.frame, text=f"{snapshot.volume}%")
        self.value_label.pack()
        self.name_label = ttk.Label(self.frame, text=snapshot.name, wraplength=110)
        self.name_label.pack()
        self.apply(snapshot)

    def _on_scale(self, value: str) -> None:
        if self._suppress:
            return
        level = int(round(float(value)))
        self.value_label.config(text=f"{level}%")
        self._on_drag(self.name, level)

    def apply(self, snapshot: TargetSnapshot) -> None:
        self._suppress = True
        try:
            self.volume_var.set(snapshot.volume)
        finally:
            self._suppress = False
        self.value_label.config(text=f"{snapshot.volume}%")
        self.mute_label.config(text=MUTED_ICON if snapshot.muted else UNMUTED_ICON)

    def set_available(self, available: bool) -> None:
        self.name_label.config(foreground="" if available else "gray")
        self.scale.state(["!disabled"] if available else ["disabled"])


class MidiVolumeView(Presenter):
    """
    Main GUI view: one fader strip per target, device status and console.
    """

    def __init__(self, window_size: Tuple[int, int] = WINDOW_SIZE, show_console: bool = True,
                 max_console_lines: int = DEFAULT_MAX_CONSOLE_LINES):
        self.logger = get_logger(__name__)

        self.root = tk.Tk()
        self.root.title(WINDOW_TITLE)
        self.root.geometry(f"{window_size[0]}x{window_size[1]}")
        self.root.resizable(WINDOW_RESIZABLE[0], WINDOW_RESIZABLE[1])

        self.on_volume_callback: Optional[VolumeCallback] = None
        self.on_save_callback: Optional[SaveCallback] = None
        self.show_console = show_console
        self.max_console_lines = max_console_lines

        # Cross-thread hand-over, drained by the Tk tick
        self._pending_lock = threading.Lock()
        self._pending_snapshots: Dict[str, TargetSnapshot] = {}
        self._pending_available: Dict[str, bool] = {}
        self._pending_device: Optional[Tuple[bool, Optional[str]]] = None
        self._pending_logs: Deque[str] = deque(maxlen=max_console_lines)

        self._strips: Dict[str, _FaderStrip] = {}
        self._console_lines = 0
        self._initialized = False

        self._create_widgets()
        self.root.protocol("WM_DELETE_WINDOW", self._on_closing)
        self._initialized = True

    def _create_widgets(self) -> None:
        """Create and layout the static widgets."""
        main_container = ttk.Frame(self.root, padding="10")
        main_container.pack(fill="both", expand=True)

        status_frame = ttk.Frame(main_container)
        status_frame.pack(fill="x", pady=(0, 10))
        self.status_label = ttk.Label(status_frame, text="MIDI 장치 대기 중...")
        self.status_label.pack(side="left")
        self.save_btn = ttk.Button(status_frame, text="설정 저장", command=self._on_save)
        self.save_btn.pack(side="right")

        faders_frame = ttk.Frame(main_container)
        faders_frame.pack(fill="both", expand=True)
        self.sinks_frame = ttk.LabelFrame(faders_frame, text="System", padding="5")
        self.sinks_frame.pack(side="left", fill="y", padx=(0, 10))
        self.apps_frame = ttk.LabelFrame(faders_frame, text="Applications", padding="5")
        self.apps_frame.pack(side="left", fill="y")

        self.log_text: Optional[tk.Text] = None
        if self.show_console:
            log_frame = ttk.LabelFrame(main_container, text="Console", padding="5")
            log_frame.pack(fill="both", expand=True, pady=(10, 0))
            scrollbar = ttk.Scrollbar(log_frame)
            scrollbar.pack(side="right", fill="y")
            self.log_text = tk.Text(log_frame, height=8, yscrollcommand=scrollbar.set)
            self.log_text.pack(side="left", fill="both", expand=True)
            scrollbar.config(command=self.log_text.yview)

    def set_targets(self, snapshots: List[TargetSnapshot]) -> None:
        for snapshot in snapshots:
            parent = self.apps_frame if snapshot.kind == APPLICATION else self.sinks_frame
            strip = _FaderStrip(parent, snapshot, self._on_strip_drag)
            strip.frame.pack(side="left", fill="y")
            self._strips[snapshot.name] = strip

    def _on_strip_drag(self, name: str, level: int) -> None:
        if self.on_volume_callback:
            self.on_volume_callback(name, level)

    def set_volume_callback(self, callback: VolumeCallback) -> None:
        self.on_volume_callback = callback

    def set_save_callback(self, callback: SaveCallback) -> None:
        self.on_save_callback = callback

    def _on_save(self) -> None:
        """Save button: hand the current window layout to the controller."""
        if not self.on_save_callback:
            return
        self.root.update_idletasks()
        self.on_save_callback({
            "window_width": self.root.winfo_width(),
            "window_height": self.root.winfo_height(),
            "show_console": self.show_console,
        })

    def publish(self, snapshot: TargetSnapshot) -> None:
        with self._pending_lock:
            self._pending_snapshots[snapshot.name] = snapshot

    def set_available(self, name: str, available: bool) -> None:
        with self._pending_lock:
            self._pending_available[name] = available

    def set_device_state(self, connected: bool, port_name: Optional[str] = None) -> None:
        with self._pending_lock:
            self._pending_device = (connected, port_name)

    def append_log(self, message: str) -> None:
        if not self._initialized or self.log_text is None:
            return
        with self._pending_lock:
            self._pending_logs.append(message)

    def _render_pending(self) -> None:
        with self._pending_lock:
            snapshots = list(self._pending_snapshots.values())
            self._pending_snapshots.clear()
            available = dict(self._pending_available)
            self._pending_available.clear()
            device, self._pending_device = self._pending_device, None
            logs = list(self._pending_logs)
            self._pending_logs.clear()

        for snapshot in snapshots:
            strip = self._strips.get(snapshot.name)
            if strip:
                strip.apply(snapshot)
        for name, is_available in available.items():
            strip = self._strips.get(name)
            if strip:
                strip.set_available(is_available)
        if device is not None:
            connected, port_name = device
            self.status_label.config(
                text=f"🎛️ 연결됨: {port_name}" if connected else "⚠️ MIDI 장치 연결 끊김")
        if logs:
            self._write_logs(logs)

    def _write_logs(self, messages: List[str]) -> None:
        try:
            for message in messages:
                self.log_text.insert(tk.END, f"{message}\n")
            self._console_lines += len(messages)
            overflow = self._console_lines - self.max_console_lines
            if overflow > 0:
                self.log_text.delete("1.0", f"{overflow + 1}.0")
                self._console_lines = self.max_console_lines
            self.log_text.see(tk.END)
        except tk.TclError:
            # Widget might be destroyed
            pass

    def _on_closing(self) -> None:
        """Handle window closing."""
        if not self._initialized:
            return
        self.quit()

    def run(self) -> None:
        """Start the GUI main loop."""
        self.logger.info("GUI 시작")
        self._schedule_update()
        self.root.mainloop()

    def _schedule_update(self) -> None:
        """Render tick, ~60 Hz."""
        if not self._initialized:
            return
        try:
            self._render_pending()
        except Exception as e:
            self.logger.error(f"화면 갱신 오류: {e}")
        self.root.after(GUI_UPDATE_INTERVAL_MS, self._schedule_update)

    def quit(self) -> None:
        """Quit the GUI application."""
        if not self._initialized:
            return
        self._initialized = False

        def _quit():
            try:
                self.root.quit()
            except tk.TclError:
                pass

        if threading.current_thread() == threading.main_thread():
            _quit()
        else:
            self.root.after(0, _quit)
