import logging
import queue
import threading
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

import pyttsx3

# Configure logging
logger = logging.getLogger(__name__)


class NarrationSink(Protocol):
    """Output side of the loop: receives descriptions and performs them"""

    def start(self) -> bool:
        ...

    def speak(self, text: str) -> None:
        ...

    def stop(self) -> None:
        ...


class ConsoleNarrator:
    """
    Prints descriptions without speaking them
    """

    def start(self) -> bool:
        return True

    def speak(self, text: str):
        timestamp = datetime.now().strftime("%H:%M:%S")
        logger.info(f"Narration: {text}")
        print(f"\n[{timestamp}] 🤖 {text}\n")

    def stop(self):
        pass


class SpeechNarrator(ConsoleNarrator):
    """
    Speaks descriptions with the operating system's speech engine
    """

    def __init__(self, voice: Optional[str] = None, rate: Optional[int] = None):
        """
        Initialize the local speech narrator

        Args:
            voice: Substring of the voice name or id to select (None for default)
            rate: Words per minute (None for engine default)
        """
        self.voice = voice
        self.rate = rate
        self.engine = None

    def start(self) -> bool:
        try:
            self.engine = pyttsx3.init()
        except Exception as e:
            logger.error(f"Error starting speech engine: {e}")
            return False

        if self.rate:
            self.engine.setProperty('rate', self.rate)

        if self.voice:
            wanted = self.voice.lower()
            for candidate in self.engine.getProperty('voices'):
                if wanted in (candidate.name or "").lower() or wanted in (candidate.id or "").lower():
                    self.engine.setProperty('voice', candidate.id)
                    logger.info(f"Selected voice {candidate.name}")
                    break
            else:
                logger.warning(f"Voice '{self.voice}' not found, using default voice")

        logger.info("Speech narrator started")
        return True

    def speak(self, text: str):
        super().speak(text)
        if self.engine is None:
            return
        try:
            self.engine.say(text)
            self.engine.runAndWait()
        except Exception as e:
            logger.error(f"Error in text-to-speech: {e}")

    def stop(self):
        if self.engine is not None:
            self.engine.stop()
            self.engine = None
        logger.info("Speech narrator stopped")


class AudioPlayer:
    """
    Audio player for PCM speech returned by OpenAI
    """

    def __init__(self,
                 sample_rate: int = 24000,
                 channels: int = 1,
                 sample_width: int = 2,
                 buffer_size: int = 1024):
        """
        Initialize audio player

        Args:
            sample_rate: Audio sample rate (Hz)
            channels: Number of audio channels (1 for mono, 2 for stereo)
            sample_width: Sample width in bytes (2 for 16-bit)
            buffer_size: Audio buffer size
        """
        import pyaudio

        self.sample_rate = sample_rate
        self.channels = channels
        self.sample_width = sample_width
        self.buffer_size = buffer_size

        # PyAudio setup
        self.pyaudio = pyaudio.PyAudio()
        self.stream = None

        # Audio queue and playback state
        self.audio_queue = queue.Queue()
        self.is_playing = False
        self.playback_thread = None

    def start_playback(self) -> bool:
        """
        Start audio playback system

        Returns:
            bool: True if started successfully, False otherwise
        """
        try:
            self.stream = self.pyaudio.open(
                format=self.pyaudio.get_format_from_width(self.sample_width),
                channels=self.channels,
                rate=self.sample_rate,
                output=True,
                frames_per_buffer=self.buffer_size
            )

            self.is_playing = True
            self.playback_thread = threading.Thread(target=self._playback_loop, daemon=True)
            self.playback_thread.start()

            logger.info(f"Audio playback started (Rate: {self.sample_rate}Hz, Channels: {self.channels})")
            return True

        except Exception as e:
            logger.error(f"Error starting audio playback: {e}")
            return False

    def _playback_loop(self):
        while self.is_playing:
            try:
                audio_data = self.audio_queue.get(timeout=0.1)
            except queue.Empty:
                continue

            try:
                if audio_data and self.stream:
                    self.stream.write(audio_data)
            except Exception as e:
                logger.error(f"Error in audio playback loop: {e}")
            finally:
                self.audio_queue.task_done()

    def play_audio_stream(self, audio_stream: bytes):
        """
        Queue a complete audio stream in buffer-sized chunks

        Args:
            audio_stream: Complete audio stream as bytes
        """
        if not self.is_playing:
            return
        chunk_size = self.buffer_size * self.sample_width * self.channels
        for i in range(0, len(audio_stream), chunk_size):
            self.audio_queue.put(audio_stream[i:i + chunk_size])

    def wait_until_done(self):
        """Block until every queued chunk has been written"""
        self.audio_queue.join()

    def stop_playback(self):
        """
        Stop audio playback and cleanup resources
        """
        self.is_playing = False

        if self.playback_thread and self.playback_thread.is_alive():
            self.playback_thread.join(timeout=2.0)

        if self.stream:
            self.stream.stop_stream()
            self.stream.close()
            self.stream = None

        if self.pyaudio:
            self.pyaudio.terminate()

        logger.info("Audio playback stopped")


class OpenAISpeechNarrator(ConsoleNarrator):
    """
    Speaks descriptions with OpenAI's TTS API
    """

    def __init__(self, api_key: str, voice: str = "alloy", model: str = "tts-1"):
        """
        Initialize TTS narrator

        Args:
            api_key: OpenAI API key
            voice: Voice to use for TTS (alloy, echo, fable, onyx, nova, shimmer)
            model: TTS model
        """
        from openai import OpenAI
        self.client = OpenAI(api_key=api_key)
        self.voice = voice
        self.model = model
        self.audio_player = None

    def start(self) -> bool:
        try:
            self.audio_player = AudioPlayer()
        except (ImportError, OSError) as e:
            logger.error(f"Error starting audio playback (is the 'audio' extra installed?): {e}")
            return False
        return self.audio_player.start_playback()

    def speak(self, text: str):
        super().speak(text)
        if self.audio_player is None:
            return
        try:
            # Synchronous request; the capture loop waits for it like any other narration
            response = self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
                response_format="pcm"
            )
            self.audio_player.play_audio_stream(response.content)
            self.audio_player.wait_until_done()

        except Exception as e:
            logger.error(f"Error in text-to-speech: {e}")

    def stop(self):
        if self.audio_player:
            self.audio_player.stop_playback()


def create_narrator(narration_config: Dict[str, Any]) -> NarrationSink:
    """
    Build the narration sink named in the configuration

    Args:
        narration_config: Output of Config.get_narration_config()

    Returns:
        NarrationSink: narrator (not yet started)
    """
    engine = narration_config.get('engine', 'local').lower()

    if engine == 'local':
        return SpeechNarrator(voice=narration_config.get('voice'), rate=narration_config.get('rate'))
    if engine == 'openai':
        return OpenAISpeechNarrator(
            api_key=narration_config['openai_api_key'],
            voice=narration_config.get('openai_voice', 'alloy')
        )
    if engine == 'console':
        return ConsoleNarrator()

    raise ValueError(f"Unknown narration engine: {engine}")
