# poliprint/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

DEMO_NOVA_POSHTA_API_KEY = "demo-api-key"
DEMO_LIQPAY_PUBLIC_KEY = "demo-public-key"
DEMO_LIQPAY_PRIVATE_KEY = "demo-private-key"


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Everything has a development default so the storefront runs without
    live credentials:
      - NOVA_POSHTA_API_KEY empty or "demo-api-key" => fallback carrier
      - LIQPAY_PUBLIC_KEY empty or "demo-public-key" => mock gateway
        for status checks and refunds

    Production (.env):
      - DATABASE_URL (Postgres connection string)
      - JWT_SECRET (admin tokens)
      - NOVA_POSHTA_API_KEY
      - LIQPAY_PUBLIC_KEY / LIQPAY_PRIVATE_KEY
      - PUBLIC_BASE_URL
      - SMTP_HOST / SMTP_USERNAME / SMTP_PASSWORD (order emails)

    Optional:
      - SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY (only used when
        CART_STORAGE_BACKEND=supabase)
    """

    PROJECT_NAME: str = "PoliPrint Storefront API"
    API_V1_STR: str = "/api"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Orders DB
    DATABASE_URL: str = "sqlite:///./poliprint.db"

    # Admin JWT verification
    JWT_SECRET: str = "poliprint-dev-jwt-secret-change-me"
    JWT_ALG: str = "HS256"

    # Cart persistence: file | memory | supabase
    CART_STORAGE_BACKEND: str = "file"
    CART_STORAGE_DIR: str = "./.cart_storage"
    CART_STORAGE_KEY: str = "poliprint-cart"
    CART_STORAGE_BUCKET: str = "carts"

    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Nova Poshta
    NOVA_POSHTA_API_KEY: str = DEMO_NOVA_POSHTA_API_KEY
    NOVA_POSHTA_API_URL: str = "https://api.novaposhta.ua/v2.0/json/"
    NOVA_POSHTA_SENDER_CITY_REF: str = "kyiv-ref"

    # LiqPay
    LIQPAY_PUBLIC_KEY: str = DEMO_LIQPAY_PUBLIC_KEY
    LIQPAY_PRIVATE_KEY: str = DEMO_LIQPAY_PRIVATE_KEY
    LIQPAY_API_URL: str = "https://www.liqpay.ua/api/"
    LIQPAY_CHECKOUT_URL: str = "https://www.liqpay.ua/api/3/checkout"
    PUBLIC_BASE_URL: str = "http://localhost:3000"

    # Order notifications (SMTP); mail is only sent when host and
    # credentials are all set
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "PoliPrint"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT_SECONDS: float = 30.0

    # Applies to every outbound HTTP call
    HTTP_TIMEOUT_SECONDS: float = 15.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def nova_poshta_enabled(self) -> bool:
        key = (self.NOVA_POSHTA_API_KEY or "").strip()
        return bool(key) and key != DEMO_NOVA_POSHTA_API_KEY

    @property
    def liqpay_enabled(self) -> bool:
        key = (self.LIQPAY_PUBLIC_KEY or "").strip()
        return bool(key) and key != DEMO_LIQPAY_PUBLIC_KEY

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_USERNAME and self.SMTP_PASSWORD)


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
