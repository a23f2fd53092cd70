from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Course Marketplace"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 2  # 2 days

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    DATABASE_HOST: Optional[str] = None
    DATABASE_PORT: Optional[str] = None
    DATABASE_USER: Optional[str] = None
    DATABASE_PASSWORD: Optional[str] = None
    DATABASE_NAME: Optional[str] = None

    DATABASE_URL: str = "sqlite:///./marketplace.db"
    TEST_DATABASE_URL: Optional[str] = None

    def __init__(self, **data):
        super().__init__(**data)
        if self.DATABASE_HOST and self.DATABASE_NAME:
            self.DATABASE_URL = (
                f'postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}'
                f'@{self.DATABASE_HOST}:{self.DATABASE_PORT or "5432"}/{self.DATABASE_NAME}'
            )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Payments
    PAYMENT_PROCESSOR: str = "mock"  # mock | stripe
    PLATFORM_FEE_RATE: float = 0.029
    TAX_RATE: float = 0.08
    PAYMENT_PROCESSOR_TIMEOUT_SECONDS: float = 5.0
    MOCK_CHARGE_DELAY_SECONDS: float = 1.0
    MOCK_REFUND_DELAY_SECONDS: float = 0.8
    MOCK_CHARGE_SUCCESS_RATE: float = 0.95
    MOCK_REFUND_SUCCESS_RATE: float = 0.98
    STRIPE_SECRET_KEY: Optional[str] = None
    INVOICE_BASE_URL: str = "https://mock-invoice.com"
    RECEIPT_BASE_URL: str = "https://mock-receipt.com"

    # Enrollments
    ENROLLMENT_ACCESS_DAYS: Optional[int] = None

    class Config:
        env_file = ".env"

settings = Settings()
