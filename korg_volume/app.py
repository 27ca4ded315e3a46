#!/usr/bin/env python3
"""
Main entry point for the nanoKONTROL2 MIDI volume controller.
MVC-based architecture: rtmidi callback thread, reconciler worker,
per-target volume workers and the Tk main loop.
"""
import signal
import sys
import threading
from typing import List, Optional

from korg_volume import __version__
from korg_volume.config.app_config import load_config
from korg_volume.controller.midi_controller import MidiController
from korg_volume.model.errors import ConfigError
from korg_volume.utils.logger import configure_logging, get_logger


class MidiVolumeApp:
    """
    Main application class with proper signal handling and cleanup.
    """

    def __init__(self, config: dict):
        self.logger = get_logger(__name__)
        self.config = config
        self.controller: Optional[MidiController] = None
        self.shutdown_event = threading.Event()

        # Set up signal handlers for graceful shutdown
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self.logger.info("MIDI 볼륨 컨트롤러 애플리케이션 초기화")

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully."""
        self.logger.info(f"신호 수신: {signum}, 종료 중...")
        self.shutdown()

    def run(self) -> int:
        """Run the application."""
        try:
            self.controller = MidiController(self.config)
            self.controller.initialize()
        except Exception as e:
            self.logger.error(f"애플리케이션 실행 오류: {e}")
            self.shutdown()
            return 1

        self._main_loop()
        return 0

    def _main_loop(self) -> None:
        """GUI main loop (blocking, must stay on the main thread)."""
        self.logger.info("메인 루프 시작")
        try:
            self.controller.view.run()
        except KeyboardInterrupt:
            self.logger.info("사용자에 의해 중단됨")
        except Exception as e:
            self.logger.error(f"메인 루프 오류: {e}")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Shutdown the application gracefully."""
        if self.shutdown_event.is_set():
            return
        self.shutdown_event.set()
        self.logger.info("애플리케이션 종료 중...")
        if self.controller:
            self.controller.shutdown()
        self.logger.info("애플리케이션 종료 완료")


def main(argv: Optional[List[str]] = None) -> int:
    """Console script entry point: korg-midi-volume [config.toml]"""
    args = sys.argv[1:] if argv is None else argv
    print(f"nanoKONTROL2 MIDI Volume Controller v{__version__}")
    print("=" * 50)

    # Defaults until the [logging] table is known
    configure_logging()
    logger = get_logger(__name__)

    try:
        config = load_config(args[0] if args else None)
    except ConfigError as e:
        logger.error(f"설정 오류, 시작할 수 없습니다: {e}")
        return 1

    logging_config = config["logging"]
    configure_logging(
        level=logging_config["log_level"],
        timestamps=logging_config["timestamps"],
        log_file=logging_config["log_file"] or None,
        enabled=logging_config["enabled"],
    )

    app = MidiVolumeApp(config)
    return app.run()


if __name__ == "__main__":
    sys.exit(main())
