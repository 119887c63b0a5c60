import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

PAYTECH_API_URL = "https://paytech.sn/api/payment/request-payment"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: Optional[str] = None
    paytech_api_key: Optional[str] = None
    paytech_secret_key: Optional[str] = None
    paytech_api_url: str = PAYTECH_API_URL
    paytech_env: str = "test"
    paytech_timeout: float = 30.0
    jwt_secret: str = "your-secret-key"
    frontend_url: str = "http://localhost:5173"
    default_item_name: str = "Joystick Jungle Payment"
    cors_origins: List[str] = ["*"]
    port: int = 3000

    def missing(self) -> List[str]:
        """Names of the required variables that are not set."""
        required = {
            "DATABASE_URL": self.database_url,
            "PAYTECH_API_KEY": self.paytech_api_key,
            "PAYTECH_SECRET_KEY": self.paytech_secret_key,
        }
        return [name for name, value in required.items() if not value]


def _env(name: str, default=None):
    value = os.getenv(name)
    return value if value else default


@lru_cache
def get_settings() -> Settings:
    origins = _env("CORS_ORIGINS", "*")
    return Settings(
        database_url=_env("DATABASE_URL"),
        paytech_api_key=_env("PAYTECH_API_KEY"),
        paytech_secret_key=_env("PAYTECH_SECRET_KEY"),
        paytech_api_url=_env("PAYTECH_API_URL", PAYTECH_API_URL),
        paytech_env=_env("PAYTECH_ENV", "test"),
        paytech_timeout=float(_env("PAYTECH_TIMEOUT", 30)),
        jwt_secret=_env("JWT_SECRET", "your-secret-key"),
        frontend_url=_env("FRONTEND_URL", "http://localhost:5173").rstrip("/"),
        default_item_name=_env("DEFAULT_ITEM_NAME", "Joystick Jungle Payment"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        port=int(_env("PORT", 3000)),
    )
