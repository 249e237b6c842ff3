"""
Configuration management for the scene narrator
"""

import os
import logging
from typing import Dict, Any, Optional
from dotenv import load_dotenv
import json

from .detection_provider import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_USER_PROMPT,
)

# Configure logging
logger = logging.getLogger(__name__)

VALID_PROVIDERS = ['openai', 'anthropic']
VALID_NARRATION_ENGINES = ['local', 'openai', 'console']
VALID_OPENAI_VOICES = ['alloy', 'echo', 'fable', 'onyx', 'nova', 'shimmer']
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class Config:
    """
    Configuration manager for the application
    """

    def __init__(self, config_file: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration

        Args:
            config_file: Optional path to JSON config file
            overrides: Values applied last (e.g. from the command line); None values are ignored
        """
        # Load environment variables
        load_dotenv()

        # Default configuration
        self._config = {
            # Detection provider settings
            'provider': os.getenv('DETECTION_PROVIDER', 'OpenAI'),
            'openai_api_key': os.getenv('OPENAI_API_KEY', ''),
            'openai_model': os.getenv('OPENAI_MODEL', DEFAULT_OPENAI_MODEL),
            'anthropic_api_key': os.getenv('ANTHROPIC_API_KEY', ''),
            'anthropic_model': os.getenv('ANTHROPIC_MODEL', DEFAULT_ANTHROPIC_MODEL),
            'max_tokens': int(os.getenv('MAX_TOKENS', '150')),
            'temperature': float(os.getenv('TEMPERATURE', '0.7')),
            'system_prompt': os.getenv('SYSTEM_PROMPT', DEFAULT_SYSTEM_PROMPT),
            'user_prompt': os.getenv('USER_PROMPT', DEFAULT_USER_PROMPT),
            'max_concurrent_requests': int(os.getenv('MAX_CONCURRENT_REQUESTS', '1')),

            # Camera settings
            'camera_index': int(os.getenv('CAMERA_INDEX', '0')),
            'frame_width': int(os.getenv('FRAME_WIDTH', '640')),
            'frame_height': int(os.getenv('FRAME_HEIGHT', '480')),
            'fps': int(os.getenv('FPS', '30')),
            'jpeg_quality': int(os.getenv('JPEG_QUALITY', '80')),

            # Loop settings
            'update_interval_ms': int(os.getenv('UPDATE_INTERVAL_MS', '6000')),
            'change_threshold': float(os.getenv('CHANGE_THRESHOLD', '0.1')),
            'show_video': os.getenv('SHOW_VIDEO', 'true').lower() == 'true',

            # Narration settings
            'narration_engine': os.getenv('NARRATION_ENGINE', 'local'),
            'tts_voice': os.getenv('TTS_VOICE') or None,
            'speech_rate': self._parse_optional_int(os.getenv('SPEECH_RATE')),
            'openai_tts_voice': os.getenv('OPENAI_TTS_VOICE', 'alloy'),

            # Application settings
            'log_level': os.getenv('LOG_LEVEL', 'INFO'),
            'log_file': os.getenv('LOG_FILE', 'scene_narrator.log'),
        }

        # Load config file if provided
        if config_file and os.path.exists(config_file):
            self._load_config_file(config_file)

        if overrides:
            self._config.update({key: value for key, value in overrides.items() if value is not None})

        # Validate configuration
        self.validate()

    def _parse_optional_int(self, value: Optional[str]) -> Optional[int]:
        """
        Parse an optional integer from environment variable

        Args:
            value: String value from environment variable

        Returns:
            int or None: Parsed integer or None if empty/invalid
        """
        if not value or not value.strip():
            return None

        # Remove any comments
        value = value.split('#')[0].strip()

        if not value:
            return None

        try:
            return int(value)
        except ValueError:
            return None

    def _load_config_file(self, config_file: str):
        """
        Load configuration from JSON file

        Args:
            config_file: Path to JSON config file
        """
        try:
            with open(config_file, 'r') as f:
                file_config = json.load(f)

            self._config.update(file_config)
            logger.info(f"Loaded configuration from {config_file}")

        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load config file {config_file}: {e}")

    def validate(self):
        """
        Validate configuration values

        Raises:
            ValueError: listing every invalid setting
        """
        errors = []

        # Validate provider and its credentials
        provider = str(self._config['provider']).lower()
        if provider not in VALID_PROVIDERS:
            errors.append(f"Provider must be one of: OpenAI, Anthropic (got {self._config['provider']})")
        elif not self._config[f'{provider}_api_key']:
            errors.append(f"{provider.upper()}_API_KEY is required for the {self._config['provider']} provider")

        if self._config['max_tokens'] <= 0:
            errors.append("Max tokens must be > 0")

        if not 0.0 <= self._config['temperature'] <= 2.0:
            errors.append("Temperature must be between 0 and 2")

        if self._config['max_concurrent_requests'] < 1:
            errors.append("Max concurrent requests must be >= 1")

        # Validate camera settings
        if self._config['camera_index'] < 0:
            errors.append("Camera index must be >= 0")

        if self._config['frame_width'] <= 0 or self._config['frame_height'] <= 0:
            errors.append("Frame dimensions must be > 0")

        if self._config['fps'] <= 0:
            errors.append("FPS must be > 0")

        if self._config['jpeg_quality'] < 1 or self._config['jpeg_quality'] > 100:
            errors.append("JPEG quality must be between 1 and 100")

        # Validate loop settings
        if self._config['update_interval_ms'] < 0:
            errors.append("Update interval must be >= 0")

        if not 0.0 <= self._config['change_threshold'] <= 1.0:
            errors.append("Change threshold must be between 0 and 1")

        # Validate narration settings
        engine = str(self._config['narration_engine']).lower()
        if engine not in VALID_NARRATION_ENGINES:
            errors.append(f"Narration engine must be one of: {VALID_NARRATION_ENGINES}")
        elif engine == 'openai' and not self._config['openai_api_key']:
            errors.append("OPENAI_API_KEY is required for OpenAI narration")

        if self._config['openai_tts_voice'] not in VALID_OPENAI_VOICES:
            errors.append(f"OpenAI TTS voice must be one of: {VALID_OPENAI_VOICES}")

        if self._config['log_level'].upper() not in VALID_LOG_LEVELS:
            errors.append(f"Log level must be one of: {VALID_LOG_LEVELS}")

        if errors:
            error_msg = "Configuration validation errors:\n" + "\n".join(f"- {error}" for error in errors)
            raise ValueError(error_msg)

        logger.info("Configuration validation passed")

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_camera_config(self) -> Dict[str, Any]:
        """
        Get camera configuration

        Returns:
            Dictionary with camera configuration
        """
        return {
            'camera_index': self._config['camera_index'],
            'width': self._config['frame_width'],
            'height': self._config['frame_height'],
            'fps': self._config['fps']
        }

    def get_provider_config(self) -> Dict[str, Any]:
        """
        Get settings of the selected detection provider

        Returns:
            Dictionary with provider name, credentials and generation settings
        """
        provider = str(self._config['provider']).lower()
        return {
            'provider': self._config['provider'],
            'api_key': self._config.get(f'{provider}_api_key', ''),
            'model': self._config.get(f'{provider}_model'),
            'system_prompt': self._config['system_prompt'],
            'user_prompt': self._config['user_prompt'],
            'max_tokens': self._config['max_tokens'],
            'temperature': self._config['temperature']
        }

    def get_narration_config(self) -> Dict[str, Any]:
        return {
            'engine': self._config['narration_engine'],
            'voice': self._config['tts_voice'],
            'rate': self._config['speech_rate'],
            'openai_voice': self._config['openai_tts_voice'],
            'openai_api_key': self._config['openai_api_key']
        }

    def get_loop_config(self) -> Dict[str, Any]:
        return {
            'change_threshold': self._config['change_threshold'],
            'update_interval_ms': self._config['update_interval_ms'],
            'jpeg_quality': self._config['jpeg_quality'],
            'show_video': self._config['show_video']
        }

    def save_to_file(self, filename: str):
        """
        Save current configuration to JSON file

        Args:
            filename: Output filename
        """
        try:
            # Remove sensitive data before saving
            safe_config = self._config.copy()
            for key in ('openai_api_key', 'anthropic_api_key'):
                safe_config[key] = '[REDACTED]' if safe_config[key] else ''

            with open(filename, 'w') as f:
                json.dump(safe_config, f, indent=2)

            logger.info(f"Configuration saved to {filename}")

        except OSError as e:
            logger.error(f"Failed to save configuration to {filename}: {e}")
            raise
