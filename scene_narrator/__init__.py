"""
Ambient Scene Narrator

Watches a camera, detects meaningful scene changes and narrates a
vision-model description of the scene through text-to-speech.
"""

__version__ = "1.0.0"

from .camera_capture import CameraCapture, Frame
from .change_detector import ChangeDetector, change_ratio, scene_changed
from .update_gate import NEVER, update_allowed
from .detection_provider import (
    AnthropicDetectionProvider,
    DetectionProvider,
    OpenAIDetectionProvider,
    create_provider,
)
from .request_coordinator import InvalidInputError, RequestCoordinator
from .narrator import ConsoleNarrator, OpenAISpeechNarrator, SpeechNarrator, create_narrator
from .capture_loop import CaptureLoop, LoopState
from .config import Config

__all__ = [
    'CameraCapture',
    'Frame',
    'ChangeDetector',
    'change_ratio',
    'scene_changed',
    'NEVER',
    'update_allowed',
    'DetectionProvider',
    'OpenAIDetectionProvider',
    'AnthropicDetectionProvider',
    'create_provider',
    'InvalidInputError',
    'RequestCoordinator',
    'ConsoleNarrator',
    'SpeechNarrator',
    'OpenAISpeechNarrator',
    'create_narrator',
    'CaptureLoop',
    'LoopState',
    'Config'
]
