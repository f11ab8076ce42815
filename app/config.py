"""
Configuration management for the Growth AI Engine
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Growth AI Engine"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4

    # Database
    database_url: str = "sqlite:///./growth_engine.db"

    # LLM Configuration
    anthropic_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    enable_llm_insights: bool = True
    llm_max_tokens: int = 2000
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 30.0
    llm_max_retries: int = 2

    # Dynamic pricing
    pricing_min_price: float = 0.01
    pricing_ai_multiplier_min: float = 0.5
    pricing_ai_multiplier_max: float = 2.0

    # Viral content
    viral_campaign_posts_per_day: int = 3
    viral_campaign_max_concurrency: int = 5
    viral_pattern_ttl_seconds: int = 7 * 86400
    viral_pattern_max_entries: int = 500

    # Self-optimization
    optimization_history_size: int = 100
    auto_apply_confidence: float = 0.8
    enable_continuous_optimization: bool = False
    continuous_optimization_interval_minutes: int = 60

    # Solana
    solana_rpc_url: str = "https://api.devnet.solana.com"
    solana_rpc_timeout_seconds: float = 10.0
    service_private_key: Optional[str] = None  # base58 secret key; ephemeral if unset

    # Authorization
    # JSON object: {"<token>": {"subject": "ops", "scopes": ["escrow:read", "escrow:write"]}}
    api_tokens: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
