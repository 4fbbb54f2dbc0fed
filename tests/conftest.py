import pathlib
import sys

import pytest
from pydantic import AnyHttpUrl, SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from avatar_chat.config import Settings, get_settings  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return Settings(
        anthropic_api_key=SecretStr("anthropic-test"),
        anthropic_base_url=AnyHttpUrl("https://anthropic.example.com/v1"),
        chat_model="test-model",
        chat_system_prompt="Be brief.",
        history_max_entries=4,
        heygen_api_key=SecretStr("heygen-test"),
        heygen_base_url=AnyHttpUrl("https://heygen.example.com"),
        openai_api_key=SecretStr("openai-test"),
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
