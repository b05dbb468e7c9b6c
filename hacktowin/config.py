import os
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

BASE_DIR = Path(__file__).resolve().parent.parent

REQUIRED_VARIABLES = (
    "DATABASE_URL",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "JWT_SECRET",
)


class Settings(BaseModel):
    database_url: str
    stripe_secret_key: str
    stripe_webhook_secret: str
    jwt_secret: str
    jwt_expires_minutes: int = 60
    host: str = "0.0.0.0"
    port: int = 4242
    gateway_timeout: float = 10.0
    db_timeout: float = 5.0
    # What to do when a verified webhook references an intent we never stored
    unknown_intent_policy: Literal["ignore", "report"] = "report"
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        # Force-load .env (reload-safe: real environment wins)
        load_dotenv(dotenv_path=env_file or BASE_DIR / ".env")

        missing = [name for name in REQUIRED_VARIABLES if not os.getenv(name)]
        if missing:
            raise RuntimeError(
                f"{', '.join(missing)} not set. Check your .env file."
            )

        return cls(
            database_url=os.environ["DATABASE_URL"],
            stripe_secret_key=os.environ["STRIPE_SECRET_KEY"],
            stripe_webhook_secret=os.environ["STRIPE_WEBHOOK_SECRET"],
            jwt_secret=os.environ["JWT_SECRET"],
            jwt_expires_minutes=os.getenv("JWT_EXPIRES_MINUTES", "60"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=os.getenv("PORT", "4242"),
            gateway_timeout=os.getenv("GATEWAY_TIMEOUT", "10"),
            db_timeout=os.getenv("DB_TIMEOUT", "5"),
            unknown_intent_policy=os.getenv("UNKNOWN_INTENT_POLICY", "report").lower(),
            cors_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "*").split(",")
                if origin.strip()
            ],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "console").lower(),
        )
