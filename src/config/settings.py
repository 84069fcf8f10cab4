from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    hf_api_token: str = ""
    llm_model: str = "meta-llama/Llama-4-Scout-17B-16E-Instruct"

    newsmesh_api_key: str = ""
    exa_api_key: str = ""
    diffbot_token: str = ""

    data_dir: Path = Path("data")
    log_level: str = "INFO"

    provider_timeout: float = 5.0
    extraction_soft_timeout: float = 3.5
    extraction_hard_timeout: float = 6.0
    max_results: int = 10


settings = Settings()
