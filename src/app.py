"""
Users Directory Backend API Server
Core functionality: paginated, sortable, searchable user listing and user CRUD
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import ALLOWED_ORIGINS, USERS_STORE
from database.connection import init_database, close_database
from api.routes import health, users
from utils.error_handling import setup_error_handling

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    if USERS_STORE == "postgres":
        await init_database()
    else:
        logger.info("Using in-memory users store; no database connection opened")
    yield
    if USERS_STORE == "postgres":
        await close_database()

# FastAPI app initialization
app = FastAPI(
    title="Users Directory Backend",
    description="Backend API for listing, searching and managing user records",
    version="1.0.0",
    lifespan=lifespan
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Location", "X-Trace-ID"],
)

# Setup centralized error handling
setup_error_handling(app)

# Include API routes
app.include_router(health.router, tags=["Health"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])

# FastAPI app instance is exported for use by uvicorn
# Server startup is handled by main.py at the project root
