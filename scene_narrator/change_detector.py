"""
Frame-to-frame scene change detection

Decides when a new frame is different enough from the one before it to be
worth an inference call.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from .camera_capture import Frame

logger = logging.getLogger(__name__)

DEFAULT_CHANGE_THRESHOLD = 0.1


def _validate_threshold(threshold: float) -> float:
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"Change threshold must be between 0 and 1, got {threshold}")
    return float(threshold)


def change_ratio(previous: Frame, current: Frame) -> float:
    """
    Fraction of pixels that differ between two frames of equal size

    A pixel counts as changed when any of its channels differs.

    Args:
        previous: Baseline frame
        current: Newly captured frame

    Returns:
        float: Ratio in [0, 1]; 0.0 for frames without pixels
    """
    total_pixels = current.pixel_count
    if total_pixels == 0:
        return 0.0

    diff = cv2.absdiff(current.pixels, previous.pixels)
    if diff.ndim == 3:
        changed_pixels = np.count_nonzero(diff.any(axis=2))
    else:
        changed_pixels = np.count_nonzero(diff)

    return changed_pixels / total_pixels


def scene_changed(previous: Optional[Frame], current: Frame, threshold: float = DEFAULT_CHANGE_THRESHOLD) -> bool:
    """
    Check whether the scene changed significantly

    Args:
        previous: Baseline frame, or None before the first frame
        current: Newly captured frame
        threshold: Minimum change ratio that counts as a change

    Returns:
        bool: True on the first frame or when the change ratio reaches the threshold
    """
    if previous is None:
        return True

    if current.pixel_count == 0:
        return False

    ratio = change_ratio(previous, current)
    logger.debug(f"Change ratio {ratio:.4f} (threshold {threshold})")
    return ratio >= threshold


class ChangeDetector:
    """
    Stateful change detector that keeps the previous frame as its baseline

    The baseline advances on every call, so it measures frame-to-frame change
    rather than change since the last narration. CaptureLoop keeps the same
    baseline in LoopState.previous_frame and calls scene_changed directly; this
    class is the self-contained form for callers that do not carry a LoopState.
    """

    def __init__(self, threshold: float = DEFAULT_CHANGE_THRESHOLD):
        self.threshold = _validate_threshold(threshold)
        self._previous_frame: Optional[Frame] = None

    @property
    def previous_frame(self) -> Optional[Frame]:
        return self._previous_frame

    def changed(self, current: Frame) -> bool:
        result = scene_changed(self._previous_frame, current, self.threshold)
        # Frames are immutable, so the reference is a safe copy
        self._previous_frame = current
        return result
