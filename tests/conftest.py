"""
Test Configuration
==================

Pytest fixtures and fakes for the scene narrator.
"""

from typing import List, Optional

import numpy as np
import pytest

from scene_narrator.camera_capture import Frame


def make_frame(changed_pixels: int = 0, size: int = 100, value: int = 255, channels: int = 3) -> Frame:
    """Black size x size frame with the first `changed_pixels` pixels set to `value`"""
    shape = (size, size, channels) if channels > 1 else (size, size)
    pixels = np.zeros(shape, dtype=np.uint8)
    flat = pixels.reshape(size * size, -1)
    flat[:changed_pixels] = value
    return Frame.from_array(pixels, captured_at=0.0)


class FakeClock:
    """Millisecond clock advanced by hand"""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeCamera:
    """Camera that replays a fixed list of frames (None = empty read)"""

    def __init__(self, frames: List[Optional[Frame]], opened: bool = True):
        self.frames = list(frames)
        self.opened = opened
        self.displayed = 0
        self.stopped = False

    def start_capture(self) -> bool:
        return self.opened

    def read_frame(self) -> Optional[Frame]:
        return self.frames.pop(0) if self.frames else None

    def frame_to_jpeg(self, frame: Frame, quality: int = 80) -> bytes:
        return b"\xff\xd8jpeg"

    def display_frame(self, frame: Frame, window_name: str = "Camera"):
        self.displayed += 1

    def wait_key(self, delay_ms: int = 30) -> int:
        # Esc once every frame has been consumed
        return 27 if not self.frames else 255

    def stop_capture(self):
        self.stopped = True


class FakeProvider:
    """Detection provider returning a fixed description"""

    def __init__(self, description: str = "A person at a desk."):
        self.description = description
        self.calls: List[bytes] = []

    async def analyze(self, image_bytes: bytes) -> str:
        self.calls.append(image_bytes)
        return self.description


class FakeNarrator:
    """Narration sink that records what it was asked to say"""

    def __init__(self):
        self.spoken: List[str] = []
        self.started = False
        self.stopped = False

    def start(self) -> bool:
        self.started = True
        return True

    def speak(self, text: str):
        self.spoken.append(text)

    def stop(self):
        self.stopped = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def narrator():
    return FakeNarrator()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove configuration variables and keep .env files out of tests"""
    for name in (
        'DETECTION_PROVIDER', 'OPENAI_API_KEY', 'ANTHROPIC_API_KEY', 'OPENAI_MODEL',
        'ANTHROPIC_MODEL', 'UPDATE_INTERVAL_MS', 'CHANGE_THRESHOLD', 'CAMERA_INDEX',
        'MAX_CONCURRENT_REQUESTS', 'NARRATION_ENGINE', 'SHOW_VIDEO', 'LOG_LEVEL',
        'LOG_FILE', 'TTS_VOICE', 'SPEECH_RATE', 'OPENAI_TTS_VOICE', 'JPEG_QUALITY',
        'MAX_TOKENS', 'TEMPERATURE', 'FRAME_WIDTH', 'FRAME_HEIGHT', 'FPS', 'SYSTEM_PROMPT', 'USER_PROMPT',
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr('scene_narrator.config.load_dotenv', lambda *args, **kwargs: False)
    return monkeypatch
