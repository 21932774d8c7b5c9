"""
Configuration Management for Transaction Hub

pydantic-settings classes, one per external service plus AppSettings for
the pipeline itself. Values come from the environment or a .env file.

DESIGN DECISION: Service settings are loaded lazily from the root
Settings object, so the app can start with only some services
configured. validate_all_settings() reports which ones are usable.
"""

from functools import cached_property, lru_cache
from pathlib import Path

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = structlog.get_logger(__name__)


def _env(prefix: str = "") -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class MindeeSettings(BaseSettings):
    """Receipt OCR."""

    model_config = _env("MINDEE_")

    api_key: str


class GeminiSettings(BaseSettings):
    """LLM used for SMS and statement parsing."""

    model_config = _env("GEMINI_")

    api_key: str
    model_name: str = "gemini-1.5-flash"
    max_tokens: int = Field(default=4096, ge=100, le=8192)
    # Low temperature: extraction, not prose
    temperature: float = Field(default=0.1, ge=0.0, le=1.0)


class GoogleSheetsSettings(BaseSettings):
    """
    Spreadsheet backing every ledger, the account balances, the net worth
    summary and the audit log. Missing worksheets are created on first use.
    """

    model_config = _env("GOOGLE_SHEETS_")

    credentials_path: str
    spreadsheet_id: str

    cash_sheet_name: str = "CashLedger"
    gold_sheet_name: str = "GoldLedger"
    stock_sheet_name: str = "StockLedger"
    bond_sheet_name: str = "BondLedger"
    accounts_sheet_name: str = "Accounts"
    net_worth_sheet_name: str = "NetWorth"
    audit_sheet_name: str = "AuditLog"

    @field_validator("credentials_path")
    @classmethod
    def credentials_file_present(cls, v: str) -> str:
        # Not fatal: the file may be mounted after startup
        if not Path(v).exists():
            logger.warning("google_credentials_missing", path=v)
        return v


class AppSettings(BaseSettings):
    """
    Pipeline behaviour. Every field has a default so the app starts
    without a .env file.
    """

    model_config = _env()

    app_environment: str = "development"
    debug_mode: bool = False

    base_currency: str = Field(default="AED", min_length=3, max_length=3)
    # Prefix marking a credit card in a legacy account selection string
    credit_card_prefix: str = Field(default="cc_", min_length=1)

    max_upload_size_mb: int = Field(default=10, ge=1, le=50)
    supported_image_formats: str = "jpg,jpeg,png,webp"
    supported_statement_formats: str = "pdf,csv,xlsx"

    extraction_timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    await_net_worth_refresh: bool = True

    min_receipt_confidence: float = Field(default=0.3, ge=0.0, le=1.0)

    @field_validator("base_currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def supported_formats_list(self) -> list[str]:
        return _split_formats(self.supported_image_formats)

    @property
    def supported_statement_formats_list(self) -> list[str]:
        return _split_formats(self.supported_statement_formats)

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


def _split_formats(value: str) -> list[str]:
    return [fmt.strip().lower().lstrip(".") for fmt in value.split(",") if fmt.strip()]


class Settings(BaseSettings):
    """Root container. Each service section is read the first time it's used."""

    model_config = _env()

    @cached_property
    def mindee(self) -> MindeeSettings:
        return MindeeSettings()

    @cached_property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @cached_property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @cached_property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Cached; call get_settings.cache_clear() to reload."""
    return Settings()


SECTIONS = ("mindee", "google_sheets", "gemini", "app")


def validate_all_settings() -> dict[str, bool]:
    """
    {section: is_valid} for every settings section, plus a
    "<section>_error" entry with the reason for each invalid one.
    """
    settings = get_settings()
    results: dict = {}
    for name in SECTIONS:
        try:
            getattr(settings, name)
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
        else:
            results[name] = True
    return results
