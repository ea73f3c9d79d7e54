"""
Configuration settings for the Users Directory Backend
"""

import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Environment configuration
ENV = os.getenv("ENV", "PROD")  # PROD or QA
USERS_STORE = os.getenv("USERS_STORE", "postgres").lower()  # postgres or memory
DATABASE_URL = os.getenv("DATABASE_URL")
PORT = int(os.getenv("PORT", 3010))

# Database pool configuration
DB_POOL_MIN_SIZE = int(os.getenv("DB_POOL_MIN_SIZE", 2))
DB_POOL_MAX_SIZE = int(os.getenv("DB_POOL_MAX_SIZE", 10))
DB_COMMAND_TIMEOUT = int(os.getenv("DB_COMMAND_TIMEOUT", 60))

SUPPORTED_STORES = ("postgres", "memory")

logger.info(f"Environment: {ENV}")
logger.info(f"Users store: {USERS_STORE}")

# Validate required environment variables
if USERS_STORE not in SUPPORTED_STORES:
    raise ValueError(f"USERS_STORE must be one of {', '.join(SUPPORTED_STORES)}, got '{USERS_STORE}'")
if USERS_STORE == "postgres" and not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required when USERS_STORE=postgres")

# CORS settings - the browser client may be served from any origin
ALLOWED_ORIGINS = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",") if origin.strip()
]
