"""Application configuration via environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="", case_sensitive=False)

    app_port: int = Field(8000, alias="APP_PORT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    llm_base_url: str = Field("https://api.openai.com/v1", alias="LLM_BASE_URL")
    llm_api_key: str = Field("secret", alias="LLM_API_KEY")
    llm_model: str = Field("gpt-4", alias="LLM_MODEL")
    llm_provider: str | None = Field(default=None, alias="LLM_PROVIDER")
    llm_timeout_seconds: float = Field(60.0, alias="LLM_TIMEOUT_SECONDS")
    embedding_model: str = Field("text-embedding-3-small", alias="EMBEDDING_MODEL")
    fusion_similarity_threshold: float = Field(0.7, alias="FUSION_SIMILARITY_THRESHOLD")
    fusion_max_suggestions: int = Field(50, alias="FUSION_MAX_SUGGESTIONS")
    fusion_max_workers: int = Field(8, alias="FUSION_MAX_WORKERS")
    unstract_host: str = Field("https://us-central.unstract.com", alias="UNSTRACT_HOST")
    unstract_api_key: str | None = Field(default=None, alias="UNSTRACT_API_KEY")
    unstract_org_id: str = Field("", alias="UNSTRACT_ORG_ID")
    unstract_deployment_name: str = Field("", alias="UNSTRACT_DEPLOYMENT_NAME")
    unstract_timeout_seconds: float = Field(300.0, alias="UNSTRACT_TIMEOUT_SECONDS")
    store_dir: Path = Field(default_factory=lambda: Path("data/store"), alias="STORE_DIR")
    export_font_path: Path | None = Field(default=None, alias="EXPORT_FONT_PATH")

    @property
    def store_path_exists(self) -> bool:
        """Return True if the record store directory exists."""
        return self.store_dir.exists()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
