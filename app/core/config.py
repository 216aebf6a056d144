from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # Database settings
    ARANGO_URL: str = "http://localhost:8529"
    ARANGO_USERNAME: str = "root"
    ARANGO_PASSWORD: str = "openSesame"
    ARANGO_DATABASE: str = "collegeconnect"

    # Security settings (tokens are issued by the auth service, only verified here)
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"

    # CORS settings
    FRONTEND_URL: str = "http://localhost:5173"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Streak day boundary, IANA zone name ("UTC", "Asia/Kolkata", ...)
    STREAK_TIMEZONE: str = "UTC"

    # Simulated judge
    JUDGE_PASS_PROBABILITY: float = 0.7
    JUDGE_SEED: Optional[int] = None

    # Background rank recomputation and aggregate recovery
    RANK_DEBOUNCE_SECONDS: float = 2.0
    AGGREGATE_RECOVERY_INTERVAL_SECONDS: int = 300
    AGGREGATE_RECOVERY_GRACE_SECONDS: int = 60

    # Railway/Production settings
    PORT: int = 8000
    ENVIRONMENT: str = "development"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() in ["production", "prod"]

    @property
    def allowed_origins(self) -> list:
        """Get list of allowed CORS origins."""
        if self.is_production:
            return [self.FRONTEND_URL]
        return [
            self.FRONTEND_URL,
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:3000"
        ]

settings = Settings()
