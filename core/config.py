# WORKFLOW: Core configuration management for the Trade Statistics engine.
# Used by: API adapter, trade stats engine defaults, breakout ranking
# Configuration includes:
# - Breakout settings (default Top-N, clamp bounds, stacked series count)
# - Landed Duty-Paid derivation (whether import charges are summed in)
# - Reconciliation tolerance for published vs derived values
# - API settings (prefix, CORS, host/port)
# - Logging configuration
#
# Loaded at startup. The engine only reads these as defaults; callers can pass
# explicit overrides so no computation depends on ambient state.

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Breakout
    default_top_n: int = 5
    top_n_min: int = 1
    top_n_max: int = 20
    stacked_top_n: int = 3

    # Landed Duty-Paid Value = CIF + Calculated Duties (+ Import Charges)
    landed_include_charges: bool = False

    # Reconciliation
    reconciliation_tolerance: float = 1.0

    # API
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Trade Statistics Normalization API"
    version: str = "1.0.0"

    # Environment
    environment: str = "development"
    debug: bool = True

    # Logging
    log_level: str = "INFO"

    # CORS
    allowed_origins: list[str] = ["*"]
    allowed_methods: list[str] = ["*"]
    allowed_headers: list[str] = ["*"]

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8001

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
