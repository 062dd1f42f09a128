# app/core/config.py
import os
import logging
from dotenv import load_dotenv
from pathlib import Path
from typing import Optional, List
from pydantic_settings import BaseSettings

# --- Path Setup & .env Loading ---
# .env lives in the backend project root, two levels up from core
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_PATH = BASE_DIR / '.env'

if ENV_PATH.is_file():
    load_dotenv(dotenv_path=ENV_PATH)
else:
    # Logger is not configured yet at this point
    print(f"Warning: .env file not found at {ENV_PATH}. Relying on system environment variables.")

# --- Pydantic Settings Class ---
class Settings(BaseSettings):
    PROJECT_NAME: str = "School Portal API"
    DEBUG: bool = False
    VERSION: str = "1.0.0"
    # Routes are served from the root by default (e.g. POST /pendingStudents)
    API_PREFIX: str = ""

    # Database Settings
    MONGODB_URL: Optional[str] = None
    DB_NAME: str = "school_portal"
    MONGODB_TLS: bool = False

    # Kinde (identity provider) Settings
    KINDE_DOMAIN: Optional[str] = None
    KINDE_AUDIENCE: Optional[str] = None
    # Machine-to-machine app used for account removal through the management API
    KINDE_M2M_CLIENT_ID: Optional[str] = None
    KINDE_M2M_CLIENT_SECRET: Optional[str] = None

    # Frontend origins allowed by CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]

settings = Settings()

# --- Logging Setup ---
LOG_LEVEL_NAME: str = os.getenv("LOG_LEVEL", "WARNING").upper()
if settings.DEBUG:
    LOG_LEVEL_NAME = "DEBUG"

ACTUAL_LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.WARNING)

logging.basicConfig(
    level=ACTUAL_LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logging.getLogger('uvicorn').setLevel(logging.WARNING)
logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
logging.getLogger('fastapi').setLevel(logging.INFO if settings.DEBUG else logging.WARNING)
logging.getLogger('motor').setLevel(logging.WARNING)
logging.getLogger('pymongo').setLevel(logging.WARNING)
logging.getLogger('httpx').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# --- Validate critical settings after loading ---
if not settings.MONGODB_URL:
    logger.critical("CRITICAL: MONGODB_URL environment variable is not set and no default provided.")

if not settings.KINDE_DOMAIN:
    logger.warning("KINDE_DOMAIN environment variable is not set. /login will reject every token.")
if not settings.KINDE_AUDIENCE:
    logger.warning("KINDE_AUDIENCE environment variable is not set. Token validation will fail.")
if not (settings.KINDE_M2M_CLIENT_ID and settings.KINDE_M2M_CLIENT_SECRET):
    logger.warning("Kinde M2M credentials are not set. Identity-provider accounts will not be removed with users.")

if settings.DEBUG:
    logger.debug(f"PROJECT_NAME: {settings.PROJECT_NAME}")
    logger.debug(f"API_PREFIX: {settings.API_PREFIX!r}")
    logger.debug(f"DB_NAME: {settings.DB_NAME}")
    logger.debug(f"KINDE_DOMAIN: {settings.KINDE_DOMAIN}")
    logger.debug(f"KINDE_AUDIENCE: {settings.KINDE_AUDIENCE}")
    logger.debug(f"MONGODB_URL Set: {'Yes' if settings.MONGODB_URL else 'No - CRITICAL'}")

# Module-level aliases for modules that import constants directly
PROJECT_NAME = settings.PROJECT_NAME
VERSION = settings.VERSION
API_PREFIX = settings.API_PREFIX
MONGODB_URL = settings.MONGODB_URL
DB_NAME = settings.DB_NAME
