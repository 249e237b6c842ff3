"""
Tests for the change-gated capture loop, including end-to-end scenarios
with a fake camera, provider and narrator.
"""
from unittest.mock import AsyncMock

import pytest

from scene_narrator.capture_loop import CaptureLoop, LoopState
from scene_narrator.change_detector import ChangeDetector
from scene_narrator.detection_provider import ERROR_DESCRIPTION
from scene_narrator.request_coordinator import RequestCoordinator
from scene_narrator.update_gate import NEVER
from tests.conftest import FakeCamera, make_frame


def _loop(camera, provider, narrator, clock, **kwargs):
    options = {'change_threshold': 0.1, 'update_interval_ms': 6000, 'show_video': False}
    options.update(kwargs)
    return CaptureLoop(camera, RequestCoordinator(provider), narrator, clock=clock, **options)


class TestStep:
    """Tests for CaptureLoop.step"""

    @pytest.mark.asyncio
    async def test_first_frame_is_narrated(self, provider, narrator, clock):
        loop = _loop(FakeCamera([]), provider, narrator, clock)
        clock.now = 1000
        frame = make_frame(0)

        state, description = await loop.step(LoopState(), frame)

        assert description == provider.description
        assert narrator.spoken == [provider.description]
        assert state.previous_frame is frame
        assert state.last_update_ms == 1000
        assert state.narration_count == 1

    @pytest.mark.asyncio
    async def test_baseline_advances_without_narration(self, provider, narrator, clock):
        loop = _loop(FakeCamera([]), provider, narrator, clock)
        state = LoopState(previous_frame=make_frame(0), last_update_ms=0)
        frame = make_frame(10)

        state, description = await loop.step(state, frame)

        assert description is None
        assert state.previous_frame is frame
        assert state.last_update_ms == 0
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_last_update_taken_after_narration(self, provider, clock):
        class SlowNarrator:
            def speak(self, text):
                clock.now += 2500

        loop = _loop(FakeCamera([]), provider, SlowNarrator(), clock)
        state, _ = await loop.step(LoopState(), make_frame(0))
        assert state.last_update_ms == 2500

    @pytest.mark.asyncio
    async def test_invalid_image_skips_iteration(self, provider, narrator, clock):
        camera = FakeCamera([])
        camera.frame_to_jpeg = lambda frame, quality=80: b""
        loop = _loop(camera, provider, narrator, clock)

        state, description = await loop.step(LoopState(), make_frame(0))

        assert description is None
        assert state.last_update_ms == NEVER
        assert state.previous_frame is not None
        assert provider.calls == []
        assert narrator.spoken == []
        assert loop.rejected_requests == 1

    @pytest.mark.asyncio
    async def test_provider_failure_is_narrated(self, narrator, clock):
        provider = AsyncMock()
        provider.analyze.return_value = ERROR_DESCRIPTION
        loop = _loop(FakeCamera([]), provider, narrator, clock)

        state, description = await loop.step(LoopState(), make_frame(0))

        assert description == ERROR_DESCRIPTION
        assert narrator.spoken == [ERROR_DESCRIPTION]
        assert state.narration_count == 1


class TestScenarios:
    """End-to-end gating behaviour"""

    @pytest.mark.asyncio
    async def test_identical_frames_never_renarrate(self, provider, narrator, clock):
        loop = _loop(FakeCamera([]), provider, narrator, clock)
        state = LoopState()

        for t in range(0, 60000, 1000):
            clock.now = t
            state, _ = await loop.step(state, make_frame(0))
        assert len(narrator.spoken) == 1

        clock.now = 61000
        state, description = await loop.step(state, make_frame(5000))
        assert description is not None
        assert len(narrator.spoken) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("changed_pixels, expected", [(1000, True), (999, False)])
    async def test_threshold_boundary(self, provider, narrator, clock, changed_pixels, expected):
        loop = _loop(FakeCamera([]), provider, narrator, clock, update_interval_ms=0)
        state, _ = await loop.step(LoopState(), make_frame(0))

        state, description = await loop.step(state, make_frame(changed_pixels))

        assert (description is not None) is expected
        assert state.narration_count == (2 if expected else 1)

    @pytest.mark.asyncio
    async def test_interval_gate(self, provider, narrator, clock):
        loop = _loop(FakeCamera([]), provider, narrator, clock, update_interval_ms=6000)
        black, white = make_frame(0), make_frame(10000)

        clock.now = 0
        state, first = await loop.step(LoopState(), black)
        clock.now = 3000
        state, second = await loop.step(state, white)
        clock.now = 6001
        state, third = await loop.step(state, black)

        assert first is not None
        assert second is None
        assert third is not None
        assert state.narration_count == 2


class TestRun:
    """Tests for CaptureLoop.run"""

    @pytest.mark.asyncio
    async def test_camera_unavailable(self, provider, narrator, clock):
        camera = FakeCamera([make_frame(0)], opened=False)
        loop = _loop(camera, provider, narrator, clock)

        assert await loop.run() is False
        assert provider.calls == []
        assert loop.frames_seen == 0

    @pytest.mark.asyncio
    async def test_runs_until_stop_key(self, provider, narrator, clock):
        frames = [make_frame(0), None, make_frame(0), make_frame(8000)]
        camera = FakeCamera(frames)
        loop = _loop(camera, provider, narrator, clock, show_video=True, update_interval_ms=0)

        assert await loop.run() is True

        stats = loop.get_statistics()
        assert stats['frames_seen'] == 3
        assert stats['empty_frames'] == 1
        assert stats['narrations'] == 2
        assert stats['coordinator']['total_requests'] == 2
        assert camera.displayed == 3
        assert camera.stopped is True
        assert loop.is_running is False

    @pytest.mark.asyncio
    async def test_stop_from_narrator(self, provider, clock):
        camera = FakeCamera([make_frame(0)] * 100)
        loop = None

        class StoppingNarrator:
            def speak(self, text):
                loop.stop()

        loop = _loop(camera, provider, StoppingNarrator(), clock)
        assert await loop.run() is True
        assert loop.frames_seen == 1
        assert camera.stopped is True


@pytest.mark.asyncio
async def test_loop_state_matches_change_detector(provider, narrator, clock):
    frames = [make_frame(n) for n in (0, 0, 2000, 2500, 9000, 9000, 0)]
    loop = _loop(FakeCamera([]), provider, narrator, clock, update_interval_ms=0)
    detector = ChangeDetector(threshold=0.1)

    state = LoopState()
    for frame in frames:
        before = state.narration_count
        state, _ = await loop.step(state, frame)
        assert (state.narration_count > before) is detector.changed(frame)
        assert state.previous_frame is detector.previous_frame
