"""
Settings and the in-memory configuration store
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from chat_sweeper.client import DEFAULT_BASE_URL, DEFAULT_MODEL, DEFAULT_OPENAI_URL
from chat_sweeper.errors import ValidationError
from chat_sweeper.prompts import DEFAULT_PROMPT


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: Optional[str] = None) -> str:
    """Configure root logging once; returns the level name in use"""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )
    return level_name


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Process settings read from the environment (and a .env file)"""
    log_level: str = "INFO"
    chatgpt_base_url: str = DEFAULT_BASE_URL
    openai_api_url: str = DEFAULT_OPENAI_URL
    openai_model: str = DEFAULT_MODEL
    openai_api_key: Optional[str] = None
    use_mock_api: bool = False
    page_size: int = 20

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            chatgpt_base_url=os.getenv("CHATGPT_BASE_URL", DEFAULT_BASE_URL),
            openai_api_url=os.getenv("OPENAI_API_URL", DEFAULT_OPENAI_URL),
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            use_mock_api=_env_flag("USE_MOCK_API"),
            page_size=int(os.getenv("PAGE_SIZE", "20")),
        )


class ConfigStore:
    """OpenAI key and prompt settings for the lifetime of the process"""

    def __init__(self, openai_api_key: Optional[str] = None):
        self._openai_api_key = openai_api_key
        self._saved_prompt: Optional[str] = None
        self._session_prompt: Optional[str] = None

    # === OpenAI Key ===

    def get_openai_key(self) -> Optional[str]:
        return self._openai_api_key

    def set_openai_key(self, api_key: str) -> None:
        api_key = (api_key or "").strip()
        if not api_key.startswith("sk-") or len(api_key) < 10:
            raise ValidationError('Invalid API key format. OpenAI API keys should start with "sk-"')
        self._openai_api_key = api_key

    # === Prompt ===

    def get_custom_prompt(self) -> Optional[str]:
        """The prompt in effect: an unsaved one overrides the saved one"""
        return self._session_prompt or self._saved_prompt

    def set_custom_prompt(self, prompt: Optional[str], save: bool = True) -> None:
        prompt = prompt or None
        if save:
            self._saved_prompt = prompt
            self._session_prompt = None
        else:
            self._session_prompt = prompt

    def get_default_prompt(self) -> str:
        return DEFAULT_PROMPT
