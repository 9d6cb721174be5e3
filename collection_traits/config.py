from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when required settings are missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    debug: bool = False

    # SOLANA_RPC_URL wins when both are set
    rpc_url: str = Field(validation_alias=AliasChoices("SOLANA_RPC_URL", "ANCHOR_PROVIDER_URL"))
    rpc_commitment: str = "finalized"
    # getProgramAccounts over a whole collection can take a while
    rpc_timeout: float = 120.0

    # Discovery retries forever unless capped
    discovery_retry_delay: float = 5.0
    discovery_max_retries: int | None = None

    max_concurrent_fetches: int = Field(default=64, ge=1)
    max_fetch_retries: int = Field(default=8, ge=0)
    fetch_backoff_base: float = 1.0
    fetch_backoff_max: float = 60.0
    fetch_timeout: float = 30.0

    output_dir: Path = Path("collections")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings.

    Raises:
        ConfigurationError: If neither SOLANA_RPC_URL nor ANCHOR_PROVIDER_URL is set,
            or a setting fails validation.
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = [err for err in e.errors() if err["type"] == "missing"]
        if missing:
            raise ConfigurationError(
                "neither SOLANA_RPC_URL nor ANCHOR_PROVIDER_URL are set"
            ) from e
        raise ConfigurationError(f"Invalid settings: {e}") from e


# =============================================================================
# LEDGER LAYOUT CONSTANTS
# =============================================================================

# Metaplex Token Metadata program
TOKEN_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"

# Metadata accounts are allocated at their maximum size
METADATA_ACCOUNT_SIZE = 679
