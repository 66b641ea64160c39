from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    recall_data_dir: Path = Path.home() / ".recall" / "data"
    sqlite_filename: str = "recall.db"

    # AI capability
    default_provider: str = "perplexity"
    google_api_key: str = ""
    perplexity_api_key: str = ""
    ollama_url: str = "http://localhost:11434"
    max_output_tokens: int = 8000
    temperature: float = 0.1

    # Generation
    source_char_budget: int = 15000
    generation_timeout: float = 120.0
    max_generation_count: int = 50

    # Scheduling; None = intervals grow without a cap
    max_interval_days: float | None = None

    # Review sessions held in memory before the least recently used is evicted
    max_review_sessions: int = 100

    model_config = {"env_prefix": "RECALL_"}


settings = Settings()
