"""
Centralized configuration for the retail CRM core.

Pydantic settings with environment variable support. Every section can be
overridden from the environment or a local .env file.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Supabase store connection and paging"""

    model_config = SettingsConfigDict(env_prefix="SUPABASE_")

    url: str = Field(default="", description="Project URL")
    key: Optional[SecretStr] = Field(default=None, description="Service role or anon key")
    page_size: int = Field(default=1000, ge=1, description="Rows per page (server cap)")
    in_chunk_size: int = Field(default=200, ge=1, description="Max ids per IN filter")

    # Table / view names
    products_table: str = Field(default="gemini_produtos")
    sale_items_table: str = Field(default="gemini_vendas_itens")
    sales_table: str = Field(default="gemini_vendas_geral")
    stock_view: str = Field(default="gemini_vw_estoque_geral")
    categories_view: str = Field(default="gemini_vw_analytics_categorias")
    monthly_view: str = Field(default="gemini_vw_analise_mensal")
    ranking_view: str = Field(default="gemini_vw_ranking_clientes")
    portfolio_view: str = Field(default="gemini_vw_relatorio_carteira_clientes")


class AnalysisSettings(BaseSettings):
    """Windows and thresholds used by the analysis functions"""

    model_config = SettingsConfigDict(env_prefix="CRM_")

    velocity_window_days: int = Field(default=90, ge=1)
    sniper_window_months: int = Field(default=12, ge=1)
    neutral_gender: str = Field(default="Unissex")
    min_phone_length: int = Field(default=8, ge=0)
    ranking_limit: int = Field(default=100, ge=1)
    excluded_customer_names: list[str] = Field(
        default=["Cliente Import", "Consumidor final"],
        description="Placeholder customers left out of rankings",
    )


class LoggingSettings(BaseSettings):
    """Logging output"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")

    @field_validator("log_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v.lower() not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v.lower()


class Settings(BaseSettings):
    """
    Main application settings.

    Aggregates all configuration sections into a single entry point.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: str = Field(default="data/raw", alias="CRM_DATA_DIR", description="CSV export directory")

    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings (loaded once per process)."""
    return Settings()
