from typing import Optional
from urllib.parse import quote_plus
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Database Configuration
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USERNAME: str = "msrc"
    DB_PASSWORD: str = ""
    DB_DATABASE: str = "msrc_db"
    DATABASE_URL: Optional[str] = None  # Full override, e.g. sqlite:// for local runs
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 2

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"

    # Reporting
    TREND_PERIOD_LIMIT: int = 5
    LATEST_ITEMS_LIMIT: int = 10
    AVAILABLE_PERIODS_LIMIT: int = 20
    REPORT_READ_SNAPSHOT: bool = False  # Run each report inside one read transaction

    # Development
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra environment variables

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        encoded_password = quote_plus(self.DB_PASSWORD) if self.DB_PASSWORD else ""
        return (
            f"mysql+pymysql://{self.DB_USERNAME}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_DATABASE}?charset=utf8mb4"
        )

settings = Settings()
