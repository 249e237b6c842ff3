"""
Scene Narrator Application

Watches the camera, asks a vision model to describe the scene whenever it
changes noticeably, and reads the description aloud.

Usage:
    python main.py [--provider Anthropic] [--camera-index 0] [--update-interval 6000]
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .camera_capture import CameraCapture
from .capture_loop import CaptureLoop
from .config import Config
from .detection_provider import create_provider
from .narrator import create_narrator
from .request_coordinator import RequestCoordinator

logger = logging.getLogger(__name__)


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


class SceneNarratorApp:
    """
    Main application class wiring camera, provider and narrator together
    """

    def __init__(self, config: Config):
        """
        Initialize the application

        Args:
            config: Application configuration
        """
        self.config = config
        self.camera = CameraCapture(**config.get_camera_config())
        self.provider = create_provider(config.get_provider_config())
        self.coordinator = RequestCoordinator(
            self.provider,
            max_concurrent_requests=config.get('max_concurrent_requests', 1)
        )
        self.narrator = create_narrator(config.get_narration_config())
        self.loop = CaptureLoop(
            camera=self.camera,
            coordinator=self.coordinator,
            narrator=self.narrator,
            **config.get_loop_config()
        )

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown"""
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down gracefully...")
            self.loop.stop()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def run(self) -> bool:
        """
        Start narration and run the capture loop until stopped

        Returns:
            bool: False if the camera was unavailable
        """
        if not self.narrator.start():
            logger.warning("Narrator failed to start, descriptions will only be logged")

        try:
            return await self.loop.run()
        finally:
            self.cleanup()

    def cleanup(self):
        self.narrator.stop()
        stats = self.loop.get_statistics()
        logger.info(
            f"Frames seen: {stats['frames_seen']}, narrations: {stats['narrations']}, "
            f"detection calls: {stats['coordinator']['total_requests']}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ambient scene narrator")
    parser.add_argument("--config", type=str,
                        help="Path to configuration file")
    parser.add_argument("--provider", type=str, choices=['OpenAI', 'Anthropic'],
                        help="Detection provider")
    parser.add_argument("--camera-index", type=int,
                        help="Camera device index")
    parser.add_argument("--update-interval", type=int,
                        help="Minimum milliseconds between narrations")
    parser.add_argument("--change-threshold", type=float,
                        help="Fraction of changed pixels that counts as a scene change")
    parser.add_argument("--narration", type=str, choices=['local', 'openai', 'console'],
                        help="Narration engine")
    parser.add_argument("--no-video", action="store_true",
                        help="Don't show video window")
    parser.add_argument("--log-level", type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="Set logging level")
    parser.add_argument("--list-devices", action="store_true",
                        help="List available cameras and exit")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """
    Load configuration and apply command line overrides

    Raises:
        ValueError: if the resulting configuration is invalid
    """
    overrides = {
        'provider': args.provider,
        'camera_index': args.camera_index,
        'update_interval_ms': args.update_interval,
        'change_threshold': args.change_threshold,
        'narration_engine': args.narration,
        'log_level': args.log_level,
    }
    if args.no_video:
        overrides['show_video'] = False

    return Config(args.config, overrides=overrides)


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the application

    Returns:
        int: process exit code
    """
    args = build_parser().parse_args(argv)

    if args.list_devices:
        print("📹 Available cameras:")
        CameraCapture.list_available_cameras()
        return 0

    try:
        config = load_config(args)
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    setup_logging(config.get('log_level', 'INFO'), config.get('log_file'))

    app = SceneNarratorApp(config)
    app.setup_signal_handlers()

    if not await app.run():
        print("❌ Unable to access the camera")
        return 1

    print("\n✅ Application terminated successfully")
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n\n👋 Goodbye!")
        sys.exit(0)
