# chaintrack/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./chaintrack.db"

    # Shared secret binding serial numbers to authenticity tokens.
    # Never sent to clients and never encoded in the printed QR payload.
    AUTHENTICITY_SECRET: str = "dev-authenticity-secret-change-me"

    FRONTEND_URL: str = ""
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)

settings = Settings()
