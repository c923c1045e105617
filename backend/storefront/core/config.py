from pydantic_settings import BaseSettings
from decimal import Decimal
from typing import List, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


def parse_extensions(v: Any) -> List[str]:
    """Parse allowed extensions from string or list (lowercased, leading dot stripped)"""
    if isinstance(v, list):
        items = v
    elif isinstance(v, str) and v.startswith('['):
        try:
            items = json.loads(v)
        except json.JSONDecodeError:
            items = v.strip('[]').split(',')
    elif isinstance(v, str):
        items = v.split(',')
    else:
        return []
    return [str(ext).strip().lstrip('.').lower() for ext in items if str(ext).strip()]


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Vellore Mobile Point"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_ECHO: bool = False

    # ==========================================
    # Redis (rate limit storage, optional)
    # ==========================================
    REDIS_URL: str = ""

    # ==========================================
    # JWT / Passwords
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours
    BCRYPT_ROUNDS: int = 12  # 4 for dev (fast), 12 for prod (secure)
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60

    # Frontend (links inside emails)
    FRONTEND_URL: str = "http://localhost:3000"

    # ==========================================
    # Payments
    # ==========================================
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""

    # UPI QR fallback
    UPI_ID: str = "merchant@paytm"
    MERCHANT_NAME: str = "E-commerce Store"

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@vellore-mobile-point.in"
    EMAIL_FROM_NAME: str = "Vellore Mobile Point"
    ADMIN_EMAIL: str = ""

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 100

    # ==========================================
    # File Upload
    # ==========================================
    UPLOAD_PATH: str = "uploads"
    MAX_REQUEST_SIZE: int = 15 * 1024 * 1024  # 15MB
    MAX_IMAGE_UPLOAD_SIZE: int = 2 * 1024 * 1024  # 2MB
    MAX_CLAIM_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    IMAGE_EXTENSIONS_STR: str = "jpeg,jpg,png,gif,webp"
    CLAIM_EXTENSIONS_STR: str = "jpeg,jpg,png,gif,webp,pdf"

    @property
    def IMAGE_EXTENSIONS(self) -> List[str]:
        return parse_extensions(self.IMAGE_EXTENSIONS_STR)

    @property
    def CLAIM_EXTENSIONS(self) -> List[str]:
        return parse_extensions(self.CLAIM_EXTENSIONS_STR)

    # ==========================================
    # Store pricing rules
    # ==========================================
    TAX_RATE: Decimal = Decimal("0.18")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("1000")
    SHIPPING_CHARGE: Decimal = Decimal("50")
    LOW_STOCK_THRESHOLD: int = 5

    # ==========================================
    # Scheduled jobs
    # ==========================================
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "Asia/Kolkata"
    SCHEDULER_TICK_SECONDS: int = 30  # < 60 so no wall-clock minute is skipped

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._upload_dir = Path(self.UPLOAD_PATH).resolve()
        self._upload_dir.mkdir(exist_ok=True, parents=True)
        (self._upload_dir / "claims").mkdir(exist_ok=True, parents=True)
        Path(self.LOG_FILE).parent.mkdir(exist_ok=True, parents=True)

    @property
    def UPLOAD_DIR(self) -> Path:
        return self._upload_dir

    @property
    def CLAIM_UPLOAD_DIR(self) -> Path:
        return self._upload_dir / "claims"

    @property
    def razorpay_configured(self) -> bool:
        return bool(self.RAZORPAY_KEY_ID and self.RAZORPAY_KEY_SECRET)

    @property
    def rate_limit_storage_uri(self) -> str:
        return self.REDIS_URL or "memory://"

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def get_reset_password_url(self, token: str) -> str:
        return f"{self.FRONTEND_URL}/reset-password?token={token}"


# Create settings instance
settings = Settings()
