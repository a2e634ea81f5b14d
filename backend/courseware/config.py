"""Runtime configuration read from the environment.

A local .env file (backend/.env or the repository root .env) is loaded first so
development and tests work without exporting variables by hand.
"""

import os
from pathlib import Path

from dotenv import load_dotenv


def _load_local_env():
    pkg_dir = Path(__file__).resolve().parent
    candidates = [
        pkg_dir.parent / ".env",
        pkg_dir.parent.parent / ".env",
    ]
    for p in candidates:
        if p.exists():
            load_dotenv(dotenv_path=p, override=False)


_load_local_env()

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./courseware.db")
SQL_DEBUG = os.getenv("SQL_DEBUG", "false").lower() == "true"

# Auth
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# HTTP
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Assignment content
MAX_CONTENT_BYTES = int(os.getenv("MAX_CONTENT_BYTES", str(5 * 1024 * 1024)))
ORDER_STEP = 10.0

# AI assistant
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o-mini")
CHAT_MAX_OUTPUT_TOKENS = int(os.getenv("CHAT_MAX_OUTPUT_TOKENS", "8192"))
CHAT_MAX_TOOL_ITERATIONS = int(os.getenv("CHAT_MAX_TOOL_ITERATIONS", "15"))
AI_MEMORY_MAX_CHARS = int(os.getenv("AI_MEMORY_MAX_CHARS", "5000"))
AI_MEMORY_MAX_ENTRY_CHARS = 500
