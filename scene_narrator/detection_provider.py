import base64
import logging
from typing import Any, Dict, Optional, Protocol

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

# Configure logging
logger = logging.getLogger(__name__)

ERROR_DESCRIPTION = "Error processing image"
EMPTY_DESCRIPTION = "Unable to generate description"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that describes scenes in images.\n"
    "Provide concise, natural descriptions focusing on:\n"
    "- Main subjects and their actions\n"
    "- Important objects and their relationships\n"
    "- The overall scene context\n"
    "Keep descriptions brief (1-2 sentences) and conversational."
)
DEFAULT_USER_PROMPT = "Describe what you see in this image."

DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"


class DetectionProvider(Protocol):
    """
    Anything that turns image bytes into a text description

    Implementations never raise for provider failures; they return
    ERROR_DESCRIPTION or EMPTY_DESCRIPTION instead.
    """

    async def analyze(self, image_bytes: bytes) -> str:
        ...


def image_to_data_uri(image_bytes: bytes, media_type: str = "image/jpeg") -> str:
    """Wrap image bytes in a base64 data URI"""
    encoded = base64.b64encode(image_bytes).decode('utf-8')
    return f"data:{media_type};base64,{encoded}"


class OpenAIDetectionProvider:
    """
    Scene descriptions from an OpenAI vision model
    """

    def __init__(self,
                 api_key: str,
                 model: str = DEFAULT_OPENAI_MODEL,
                 system_prompt: str = DEFAULT_SYSTEM_PROMPT,
                 user_prompt: str = DEFAULT_USER_PROMPT,
                 max_tokens: int = 150,
                 temperature: float = 0.7,
                 client: Optional[AsyncOpenAI] = None):
        """
        Initialize the OpenAI provider

        Args:
            api_key: OpenAI API key
            model: Vision-capable chat model
            system_prompt: Instruction sent with every image
            user_prompt: Question asked about every image
            max_tokens: Maximum length of the description
            temperature: Sampling temperature
            client: Preconfigured client (mainly for tests)
        """
        self.model = model
        self.system_prompt = system_prompt
        self.user_prompt = user_prompt
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def analyze(self, image_bytes: bytes) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": self.user_prompt},
                            {"type": "image_url", "image_url": {"url": image_to_data_uri(image_bytes)}}
                        ]
                    }
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature
            )

            if not response.choices:
                return EMPTY_DESCRIPTION
            content = response.choices[-1].message.content
            return content.strip() if content and content.strip() else EMPTY_DESCRIPTION

        except Exception as e:
            logger.error(f"Error analyzing image with OpenAI: {e}")
            return ERROR_DESCRIPTION


class AnthropicDetectionProvider:
    """
    Scene descriptions from an Anthropic Claude model
    """

    def __init__(self,
                 api_key: str,
                 model: str = DEFAULT_ANTHROPIC_MODEL,
                 system_prompt: str = DEFAULT_SYSTEM_PROMPT,
                 user_prompt: str = DEFAULT_USER_PROMPT,
                 max_tokens: int = 150,
                 temperature: float = 0.7,
                 client: Optional[AsyncAnthropic] = None):
        self.model = model
        self.system_prompt = system_prompt
        self.user_prompt = user_prompt
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = client or AsyncAnthropic(api_key=api_key)

    async def analyze(self, image_bytes: bytes) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                system=self.system_prompt,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "image", "source": {
                            "type": "base64",
                            "media_type": "image/jpeg",
                            "data": base64.b64encode(image_bytes).decode('utf-8')
                        }},
                        {"type": "text", "text": self.user_prompt}
                    ]
                }]
            )

            texts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
            if not texts or not texts[-1].strip():
                return EMPTY_DESCRIPTION
            return texts[-1].strip()

        except Exception as e:
            logger.error(f"Error analyzing image with Anthropic: {e}")
            return ERROR_DESCRIPTION


def create_provider(provider_config: Dict[str, Any]) -> DetectionProvider:
    """
    Build the detection provider named in the configuration

    Args:
        provider_config: Output of Config.get_provider_config()

    Returns:
        DetectionProvider: configured provider
    """
    name = str(provider_config.get('provider', 'OpenAI')).lower()
    common = {
        'system_prompt': provider_config.get('system_prompt', DEFAULT_SYSTEM_PROMPT),
        'user_prompt': provider_config.get('user_prompt', DEFAULT_USER_PROMPT),
        'max_tokens': provider_config.get('max_tokens', 150),
        'temperature': provider_config.get('temperature', 0.7),
    }

    if name == 'openai':
        logger.info(f"Using OpenAI provider ({provider_config.get('model') or DEFAULT_OPENAI_MODEL})")
        return OpenAIDetectionProvider(
            api_key=provider_config['api_key'],
            model=provider_config.get('model') or DEFAULT_OPENAI_MODEL,
            **common
        )
    if name == 'anthropic':
        logger.info(f"Using Anthropic provider ({provider_config.get('model') or DEFAULT_ANTHROPIC_MODEL})")
        return AnthropicDetectionProvider(
            api_key=provider_config['api_key'],
            model=provider_config.get('model') or DEFAULT_ANTHROPIC_MODEL,
            **common
        )

    raise ValueError(f"Unknown detection provider: {provider_config.get('provider')}")
