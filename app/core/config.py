# app/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
import os
from typing import Optional

load_dotenv()

class Settings(BaseSettings):
    # --- Application Settings ---
    app_name: str = "YouTube Gallery"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # --- Database ---
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./gallery.db")
    database_echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # --- Security & Auth ---
    secret_key: str = os.getenv("SECRET_KEY", "default_secret_key_change_me")
    jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", "default_jwt_secret_key_change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)) # неделя
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    cookie_secure: bool = os.getenv("COOKIE_SECURE", "true").lower() == "true"
    min_password_length: int = int(os.getenv("MIN_PASSWORD_LENGTH", 6))

    # --- Google OAuth ---
    google_client_id: Optional[str] = os.getenv("GOOGLE_CLIENT_ID")
    google_client_secret: Optional[str] = os.getenv("GOOGLE_CLIENT_SECRET")
    redirect_url: Optional[str] = os.getenv("REDIRECT_URL") # OAuth Callback URL

    # --- Frontend ---
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # --- Redis & Rate Limiting ---
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    shared_rate_limit_count: int = int(os.getenv("SHARED_RATE_LIMIT_COUNT", 60))
    shared_rate_limit_window_seconds: int = int(os.getenv("SHARED_RATE_LIMIT_WINDOW_SECONDS", 60))
    # Адреса прокси через запятую; только им доверяем X-Forwarded-For
    trusted_proxies: str = os.getenv("TRUSTED_PROXIES", "")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
