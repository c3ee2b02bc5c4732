"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Key management settings loaded from environment variables."""

    # PBES2 defaults, used when the caller supplies no p2c / p2s
    pbes2_default_iterations: int = 2048
    pbes2_salt_size: int = 16
    # Upper bound on a received p2c when unwrapping
    pbes2_max_iterations: int = 10000

    # AWS KMS (external key service)
    kms_region: str = ""
    kms_endpoint: str | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_file = ".env"
        env_prefix = "KEYMGMT_"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
