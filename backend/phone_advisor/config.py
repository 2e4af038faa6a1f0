from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

DATA_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
        "protected_namespaces": (),
    }

    # Static data
    catalog_path: Path = DATA_DIR / "phones.json"
    lexicon_path: Path = DATA_DIR / "lexicon.json"

    # External model
    model_provider: Literal["gemini", "anthropic", "none"] = "gemini"
    google_ai_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    model_timeout_seconds: float = 20.0
    model_max_output_tokens: int = 2048

    # Turn pipeline
    candidate_limit: int = 5
    history_turns: int = 8
    history_message_chars: int = 600

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
