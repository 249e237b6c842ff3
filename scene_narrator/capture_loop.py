"""
Change-gated narration loop

Each iteration captures a frame, checks it against the previous one and the
narration interval, and only then pays for a remote description.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

from .camera_capture import CameraCapture, Frame
from .change_detector import DEFAULT_CHANGE_THRESHOLD, scene_changed
from .narrator import NarrationSink
from .request_coordinator import InvalidInputError, RequestCoordinator
from .update_gate import NEVER, now_ms, update_allowed

# Configure logging
logger = logging.getLogger(__name__)

ESC_KEY = 27


@dataclass(frozen=True)
class LoopState:
    """State carried from one iteration to the next"""
    previous_frame: Optional[Frame] = None
    last_update_ms: float = NEVER
    narration_count: int = 0


class CaptureLoop:
    """
    Drives capture, change detection, description and narration
    """

    def __init__(self,
                 camera: CameraCapture,
                 coordinator: RequestCoordinator,
                 narrator: NarrationSink,
                 change_threshold: float = DEFAULT_CHANGE_THRESHOLD,
                 update_interval_ms: int = 6000,
                 jpeg_quality: int = 80,
                 show_video: bool = True,
                 stop_key: int = ESC_KEY,
                 wait_key_ms: int = 30,
                 window_name: str = "Camera",
                 clock: Callable[[], float] = now_ms):
        """
        Initialize the capture loop

        Args:
            camera: Frame source
            coordinator: Request coordinator wrapping the detection provider
            narrator: Sink that receives descriptions
            change_threshold: Minimum changed-pixel ratio that counts as a scene change
            update_interval_ms: Minimum gap between narrations
            jpeg_quality: JPEG quality of frames sent for description
            show_video: Whether to display frames in a window
            stop_key: Key code that stops the loop (Esc by default)
            wait_key_ms: Delay given to the window event loop each iteration
            window_name: Name of the display window
            clock: Millisecond clock used for the narration interval
        """
        self.camera = camera
        self.coordinator = coordinator
        self.narrator = narrator
        self.change_threshold = change_threshold
        self.update_interval_ms = update_interval_ms
        self.jpeg_quality = jpeg_quality
        self.show_video = show_video
        self.stop_key = stop_key
        self.wait_key_ms = wait_key_ms
        self.window_name = window_name
        self.clock = clock

        self.is_running = False
        self.state = LoopState()

        # Statistics
        self.frames_seen = 0
        self.empty_frames = 0
        self.rejected_requests = 0

    async def step(self, state: LoopState, frame: Frame) -> Tuple[LoopState, Optional[str]]:
        """
        Process one captured frame

        Args:
            state: State from the previous iteration
            frame: Newly captured frame

        Returns:
            tuple: (new state, description or None when nothing was narrated)
        """
        changed = scene_changed(state.previous_frame, frame, self.change_threshold)
        state = replace(state, previous_frame=frame)

        if not changed:
            return state, None
        if not update_allowed(self.clock(), state.last_update_ms, self.update_interval_ms):
            logger.debug("Scene changed but narration interval has not elapsed")
            return state, None

        image_bytes = self.camera.frame_to_jpeg(frame, self.jpeg_quality)
        try:
            description = await self.coordinator.detect(image_bytes)
        except InvalidInputError as e:
            self.rejected_requests += 1
            logger.warning(f"Skipping frame: {e}")
            return state, None

        # Blocks until the description has been spoken
        self.narrator.speak(description)

        state = replace(
            state,
            last_update_ms=self.clock(),
            narration_count=state.narration_count + 1
        )
        return state, description

    def _stop_requested(self) -> bool:
        if not self.show_video:
            return False
        return self.camera.wait_key(self.wait_key_ms) == self.stop_key

    async def run(self) -> bool:
        """
        Run until stopped

        Returns:
            bool: False if the camera could not be opened, True after a normal stop
        """
        if not self.camera.start_capture():
            logger.error("Unable to access the camera")
            return False

        self.is_running = True
        self.state = LoopState()
        logger.info("Capture loop started. Press 'Esc' to stop the application...")

        try:
            while self.is_running:
                frame = self.camera.read_frame()
                if frame is not None:
                    self.frames_seen += 1
                    self.state, _ = await self.step(self.state, frame)
                    if self.show_video:
                        self.camera.display_frame(frame, self.window_name)
                else:
                    self.empty_frames += 1

                if self._stop_requested():
                    logger.info("Stop key received from video window")
                    break

                # Let signal handlers and other tasks run
                await asyncio.sleep(0)
        finally:
            self.is_running = False
            self.camera.stop_capture()
            logger.info("Capture loop stopped")

        return True

    def stop(self):
        """
        Ask the loop to finish after the current iteration
        """
        self.is_running = False

    def get_statistics(self) -> dict:
        return {
            'is_running': self.is_running,
            'frames_seen': self.frames_seen,
            'empty_frames': self.empty_frames,
            'narrations': self.state.narration_count,
            'rejected_requests': self.rejected_requests,
            'coordinator': self.coordinator.get_statistics()
        }
