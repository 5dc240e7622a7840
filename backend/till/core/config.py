from decimal import Decimal
from typing import List, Set

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./till.db"
    store_header: str = "X-Store-ID"
    operator_header: str = "X-Operator"
    backend_cors_origins: str = "http://localhost:5173"
    log_level: str = "INFO"

    # Business day boundaries are evaluated in the store's local time
    timezone: str = "America/Sao_Paulo"

    delivery_settlement_lag_days: int = 30
    delivery_default_fee_percent: Decimal = Decimal("6.5")
    due_soon_days: int = 3

    # Display only, never applied to stored discrepancies
    balance_tolerance: Decimal = Decimal("0.10")

    default_credit_limit: Decimal = Decimal("150.00")
    customer_debt_grace_days: int = 30

    # Comma-separated weekday numbers (Monday=0 ... Sunday=6)
    rest_weekdays: str = "6"

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        origins = self.backend_cors_origins
        return [origin.strip() for origin in origins.split(",") if origin.strip()]

    @property
    def rest_weekday_set(self) -> Set[int]:
        return {int(day) for day in self.rest_weekdays.split(",") if day.strip()}

    class Config:
        env_file = ".env"
        env_prefix = "TILL_"
        case_sensitive = False


settings = Settings()
