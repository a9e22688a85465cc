from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    APP_ENV: str = "development"
    DATABASE_URL: str = "sqlite:///./passwordless.db"

    OTP_DIGITS: int = 6
    OTP_EXPIRY_MINUTES: int = 10
    OTP_SWEEP_INTERVAL_SECONDS: int = 300

    SESSION_TTL_DAYS: int = 30
    # Sessions closer than this to expiry get extended on use
    SESSION_RENEWAL_DAYS: int = 15
    SESSION_COOKIE_NAME: str = "session"

    # Mail API (Resend compatible)
    MAIL_API_URL: str = "https://api.resend.com/emails"
    MAIL_API_KEY: Optional[str] = None
    MAIL_FROM: str = "Login <onboarding@resend.dev>"
    MAIL_SUBJECT: str = "Your login code"

    # Bearer secret for the scheduler hitting /api/cron/*
    CRON_SECRET: Optional[str] = None

    # Redis Configuration
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0

    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def session_cookie_name(self) -> str:
        """Production cookies carry the __Secure- prefix"""
        if self.is_production:
            return f"__Secure-{self.SESSION_COOKIE_NAME}"
        return self.SESSION_COOKIE_NAME

settings = Settings()
