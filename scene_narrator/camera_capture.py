import cv2
import numpy as np
import time
from dataclasses import dataclass, field
from typing import List, Optional
import logging

# Configure logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Frame:
    """
    Immutable snapshot of one captured image
    """
    pixels: np.ndarray = field(repr=False)
    width: int
    height: int
    captured_at: float

    @classmethod
    def from_array(cls, array: np.ndarray, captured_at: Optional[float] = None) -> "Frame":
        """
        Build a frame from an OpenCV image, copying the pixel buffer

        Args:
            array: OpenCV frame (numpy array, HxW or HxWxC)
            captured_at: Capture time in epoch seconds (defaults to now)

        Returns:
            Frame: read-only snapshot
        """
        pixels = np.array(array, copy=True)
        pixels.flags.writeable = False
        height, width = pixels.shape[:2] if pixels.ndim >= 2 else (0, 0)
        return cls(
            pixels=pixels,
            width=int(width),
            height=int(height),
            captured_at=time.time() if captured_at is None else captured_at
        )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.pixel_count == 0


class CameraCapture:
    """
    On-demand camera capture for the narration loop
    """

    def __init__(self, camera_index: int = 0, width: int = 640, height: int = 480, fps: int = 30):
        """
        Initialize camera capture

        Args:
            camera_index: Camera device index (usually 0 for default camera)
            width: Frame width in pixels
            height: Frame height in pixels
            fps: Frames per second
        """
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.fps = fps
        self.cap = None
        self.is_running = False

    def start_capture(self) -> bool:
        """
        Open the camera device

        Returns:
            bool: True if the camera is available, False otherwise
        """
        try:
            self.cap = cv2.VideoCapture(self.camera_index)
            if not self.cap.isOpened():
                logger.error(f"Failed to open camera {self.camera_index}")
                return False

            # Set camera properties
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self.cap.set(cv2.CAP_PROP_FPS, self.fps)

            self.is_running = True
            logger.info(f"Camera capture started successfully on device {self.camera_index}")
            return True

        except cv2.error as e:
            logger.error(f"Error starting camera capture: {e}")
            return False

    def read_frame(self) -> Optional[Frame]:
        """
        Grab the next frame from the device

        Returns:
            Frame: captured frame, or None when the read failed or was empty
        """
        if self.cap is None:
            return None

        ret, image = self.cap.read()
        if not ret or image is None or image.size == 0:
            logger.warning("Failed to read frame from camera")
            return None

        return Frame.from_array(image)

    @staticmethod
    def frame_to_jpeg(frame: Frame, quality: int = 80) -> bytes:
        """
        Encode a frame as JPEG

        Args:
            frame: Captured frame
            quality: JPEG quality (1-100)

        Returns:
            bytes: JPEG data, empty when encoding failed
        """
        try:
            encode_param = [int(cv2.IMWRITE_JPEG_QUALITY), quality]
            ok, buffer = cv2.imencode('.jpg', frame.pixels, encode_param)
            if not ok:
                logger.error("JPEG encoder rejected frame")
                return b""
            return buffer.tobytes()

        except cv2.error as e:
            logger.error(f"Error converting frame to JPEG: {e}")
            return b""

    def display_frame(self, frame: Frame, window_name: str = "Camera"):
        """
        Display a frame in an OpenCV window

        Args:
            frame: Frame to show
            window_name: Name of the display window
        """
        cv2.imshow(window_name, frame.pixels)

    def wait_key(self, delay_ms: int = 30) -> int:
        """Pump the HighGUI event loop and return the pressed key (255 when none)"""
        return cv2.waitKey(delay_ms) & 0xFF

    def stop_capture(self):
        """
        Release the camera and close windows
        """
        self.is_running = False

        if self.cap:
            self.cap.release()
            self.cap = None

        cv2.destroyAllWindows()
        logger.info("Camera capture stopped")

    def is_camera_available(self) -> bool:
        """
        Check if camera is available and working

        Returns:
            bool: True if camera is available, False otherwise
        """
        return self.cap is not None and self.cap.isOpened() and self.is_running

    @staticmethod
    def list_available_cameras(max_index: int = 5) -> List[int]:
        """
        Probe device indexes and report the ones that open

        Args:
            max_index: Number of indexes to probe, starting at 0

        Returns:
            list: Indexes of cameras that could be opened
        """
        available = []
        for index in range(max_index):
            cap = cv2.VideoCapture(index)
            if cap.isOpened():
                available.append(index)
                print(f"  Camera {index}: available")
            cap.release()
        if not available:
            print("  No cameras found")
        return available
