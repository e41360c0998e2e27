"""Application configuration."""

from decimal import Decimal
from os import getenv

from pydantic import BaseModel


class Settings(BaseModel):
    """Runtime settings for the ledger service."""

    app_name: str = "POS Ledger API"
    app_env: str = getenv("APP_ENV", "dev")
    debug: bool = getenv("DEBUG", "0") == "1"
    log_level: str = getenv("LOG_LEVEL", "INFO")
    database_url: str = getenv("DATABASE_URL", "sqlite:///./pos_ledger.db")
    store_timeout_seconds: float = float(getenv("STORE_TIMEOUT_SECONDS", "5"))
    store_max_attempts: int = int(getenv("STORE_MAX_ATTEMPTS", "3"))
    vat_rate: Decimal = Decimal(getenv("VAT_RATE", "0.15"))
    prices_include_vat: bool = getenv("PRICES_INCLUDE_VAT", "1") == "1"
    seller_name: str = getenv("SELLER_NAME", "Lazaza Trading Est.")
    vat_registration_number: str = getenv("VAT_REGISTRATION_NUMBER", "123456789012345")
    qr_error_correction: str = getenv("QR_ERROR_CORRECTION", "M")
    qr_box_size: int = int(getenv("QR_BOX_SIZE", "10"))
    qr_border: int = int(getenv("QR_BORDER", "2"))
    pdf_font_path: str | None = getenv("PDF_FONT_PATH")
    order_number_prefix: str = getenv("ORDER_NUMBER_PREFIX", "ORD")
    report_number_prefix: str = getenv("REPORT_NUMBER_PREFIX", "EOD")
    max_page_size: int = 100


settings: Settings = Settings()
