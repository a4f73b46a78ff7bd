"""
Diagram Describe Service (FastAPI)
==================================

Async web service that turns a free-text query into a Mermaid diagram,
structured diagram content and a prose answer.

Version: See VERSION file (centralized version management)

Features:
- Single-call unified generation with a sequential fallback pipeline
- OpenAI-compatible provider over the responses or chat protocol
- FastAPI with Pydantic models for type safety
- Uvicorn ASGI server
- Unified console/file logging
"""

import os
import sys
import logging
from logging.handlers import TimedRotatingFileHandler
import time
from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Create logs directory
os.makedirs("logs", exist_ok=True)

# Import config early (needed for logging setup)
from config.settings import config

# ============================================================================
# LOGGING
# ============================================================================

class UnifiedFormatter(logging.Formatter):
    """Unified logging formatter with ANSI color support."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARN': '\033[33m',     # Yellow
        'ERROR': '\033[31m',    # Red
        'CRIT': '\033[35m',     # Magenta
        'RESET': '\033[0m',     # Reset
        'BOLD': '\033[1m',      # Bold
    }

    SOURCE_TAGS = (
        ('routers', 'API'),
        ('uvicorn', 'SRVR'),
        ('clients', 'CLIE'),
        ('services', 'SERV'),
        ('agents', 'AGNT'),
        ('utils', 'UTIL'),
        ('config', 'CONF'),
    )

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record):
        timestamp = self.formatTime(record, '%H:%M:%S')

        level_map = {
            'DEBUG': 'DEBUG',
            'INFO': 'INFO',
            'WARNING': 'WARN',
            'ERROR': 'ERROR',
            'CRITICAL': 'CRIT'
        }
        level_name = level_map.get(record.levelname, record.levelname)

        if self.use_color:
            color = self.COLORS.get(level_name, '')
            reset = self.COLORS['RESET']
            if level_name == 'CRIT':
                color = f"{self.COLORS['BOLD']}{color}"
            shown_level = f"{color}{level_name.ljust(5)}{reset}"
        else:
            shown_level = level_name.ljust(5)

        # Source abbreviation
        source = record.name
        if source == '__main__':
            source = 'MAIN'
        elif source == 'asyncio':
            source = 'ASYN'
        else:
            for prefix, tag in self.SOURCE_TAGS:
                if source.startswith(prefix):
                    source = tag
                    break
            else:
                source = source[:4].upper()

        message = f"[{timestamp}] {shown_level} | {source.ljust(4)} | {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(UnifiedFormatter())

# Daily log files, one week kept
file_handler = TimedRotatingFileHandler(
    os.path.join("logs", "app.log"),
    when="midnight",
    backupCount=7,
    encoding="utf-8"
)
file_handler.setFormatter(UnifiedFormatter(use_color=False))

# Determine log level (override with DEBUG if VERBOSE_LOGGING is enabled)
if config.VERBOSE_LOGGING:
    log_level = logging.DEBUG
else:
    log_level = getattr(logging, config.LOG_LEVEL, logging.INFO)

logging.basicConfig(
    level=log_level,
    handlers=[console_handler, file_handler],
    force=True
)

# Route Uvicorn's loggers through the same handlers
for uvicorn_logger_name in ['uvicorn', 'uvicorn.error']:
    uvicorn_logger = logging.getLogger(uvicorn_logger_name)
    uvicorn_logger.handlers = []
    uvicorn_logger.addHandler(console_handler)
    uvicorn_logger.addHandler(file_handler)
    uvicorn_logger.propagate = False

logger = logging.getLogger(__name__)

# Suppress verbose HTTP client logs
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)

logger.debug(f"Logging initialized: {logging.getLevelName(log_level)}")

# ============================================================================
# FASTAPI APPLICATION IMPORTS
# ============================================================================

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse

from agents.deep_dive_agent import DeepDiveAgent
from agents.main_agent import DiagramPipeline
from clients.llm import LLMExecutor
from models import HealthResponse
from routers import api
from services.content_cache import ContentCache

# ============================================================================
# LIFESPAN CONTEXT (Startup/Shutdown Events)
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    Builds the executor, cache and pipeline shared by all requests.
    """
    app.state.start_time = time.time()

    logger.info("=" * 80)
    logger.info("FastAPI Application Starting")
    logger.info("=" * 80)

    if not config.validate_openai_config():
        logger.warning("OPENAI_API_KEY is not set - generation requests will fail until it is configured")
    config.print_config_summary()

    executor = LLMExecutor()
    app.state.executor = executor
    app.state.cache = ContentCache()
    app.state.pipeline = DiagramPipeline(executor, cache=app.state.cache)
    app.state.deep_dive_agent = DeepDiveAgent(executor)

    try:
        yield
    finally:
        logger.info("Shutting down...")
        try:
            await executor.close()
            logger.info("LLM executor closed")
        except Exception as e:
            logger.warning(f"Failed to close LLM executor: {e}")

# ============================================================================
# FASTAPI APPLICATION INITIALIZATION
# ============================================================================

app = FastAPI(
    title="Diagram Describe API",
    description="LLM-powered diagram generation with FastAPI + Uvicorn",
    version=config.VERSION,
    # Interactive docs only in DEBUG mode
    docs_url="/docs" if config.DEBUG else None,
    redoc_url="/redoc" if config.DEBUG else None,
    lifespan=lifespan
)

app.include_router(api.router)

# ============================================================================
# GLOBAL EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTP exceptions.

    Returns FastAPI-standard format: {"detail": "error message"}
    """
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions"""
    logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}", exc_info=True)

    error_response = {
        "success": False,
        "detail": "An unexpected error occurred. Please try again later.",
        "error_type": "internal_error",
    }

    # Add debug info in development mode
    if config.DEBUG:
        error_response["debug"] = str(exc)

    return JSONResponse(
        status_code=500,
        content=error_response
    )

# ============================================================================
# BASIC HEALTH CHECK ROUTES
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health check endpoint"""
    return {"status": "ok", "version": config.VERSION}

# ============================================================================
# APPLICATION ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    logger.info("=" * 80)
    logger.info(f"Starting server on http://{config.HOST}:{config.PORT}")
    logger.info("=" * 80)

    try:
        uvicorn.run(
            "main:app",
            host=config.HOST,
            port=config.PORT,
            reload=config.DEBUG,  # Auto-reload in debug mode
            log_level="info",
            log_config=None,  # Use our custom logging configuration
            timeout_graceful_shutdown=5
        )
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully...")
