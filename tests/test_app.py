"""
Tests for application wiring and the command line entry point.
"""
from unittest.mock import AsyncMock, patch

import pytest

from scene_narrator import app
from scene_narrator.app import SceneNarratorApp, build_parser, load_config
from scene_narrator.capture_loop import CaptureLoop
from scene_narrator.detection_provider import AnthropicDetectionProvider
from scene_narrator.narrator import ConsoleNarrator


@pytest.fixture
def cli_env(clean_env, tmp_path):
    clean_env.setenv('OPENAI_API_KEY', 'sk-test')
    clean_env.setenv('NARRATION_ENGINE', 'console')
    clean_env.setenv('LOG_FILE', str(tmp_path / "narrator.log"))
    clean_env.setattr(app, 'setup_logging', lambda *args, **kwargs: None)
    clean_env.setattr(SceneNarratorApp, 'setup_signal_handlers', lambda self: None)
    return clean_env


class TestLoadConfig:
    """Tests for command line overrides"""

    def test_provider_override_selects_key(self, clean_env):
        clean_env.setenv('ANTHROPIC_API_KEY', 'sk-ant-test')
        args = build_parser().parse_args(['--provider', 'Anthropic', '--no-video', '--update-interval', '3000'])
        config = load_config(args)

        assert config.get('provider') == 'Anthropic'
        assert config.get('show_video') is False
        assert config.get('update_interval_ms') == 3000

    def test_invalid_threshold(self, cli_env):
        args = build_parser().parse_args(['--change-threshold', '2'])
        with pytest.raises(ValueError):
            load_config(args)


class TestSceneNarratorApp:
    """Tests for SceneNarratorApp wiring"""

    def test_builds_components(self, cli_env):
        cli_env.setenv('DETECTION_PROVIDER', 'Anthropic')
        cli_env.setenv('ANTHROPIC_API_KEY', 'sk-ant-test')
        application = SceneNarratorApp(load_config(build_parser().parse_args(['--change-threshold', '0.2'])))

        assert isinstance(application.provider, AnthropicDetectionProvider)
        assert isinstance(application.narrator, ConsoleNarrator)
        assert isinstance(application.loop, CaptureLoop)
        assert application.loop.change_threshold == 0.2
        assert application.coordinator.max_concurrent_requests == 1


class TestMain:
    """Tests for the main entry point"""

    @pytest.mark.asyncio
    async def test_list_devices(self, cli_env):
        with patch.object(app.CameraCapture, 'list_available_cameras', return_value=[0]) as probe:
            assert await app.main(['--list-devices']) == 0
        probe.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_key_exits_with_error(self, cli_env):
        cli_env.delenv('OPENAI_API_KEY')
        assert await app.main(['--no-video']) == 1

    @pytest.mark.asyncio
    async def test_camera_unavailable_exits_with_error(self, cli_env):
        with patch.object(app.CameraCapture, 'start_capture', return_value=False):
            assert await app.main(['--no-video']) == 1

    @pytest.mark.asyncio
    async def test_normal_run(self, cli_env):
        with patch.object(CaptureLoop, 'run', new=AsyncMock(return_value=True)):
            assert await app.main(['--no-video']) == 0
