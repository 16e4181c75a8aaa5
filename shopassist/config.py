"""Centralized configuration for the shop assistant web app."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Determine project root (parent of 'shopassist' directory)
_THIS_DIR = Path(__file__).parent
_PROJECT_ROOT = _THIS_DIR.parent

load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

# LLM Configuration (any OpenAI-compatible chat completions endpoint)
LLM_MODEL = os.getenv("LLM_MODEL", "deepseek-chat")
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.deepseek.com")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1000"))
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

# Language the assistant answers in
RESPONSE_LANGUAGE = os.getenv("RESPONSE_LANGUAGE", "Slovak")

# Flask app settings (allow env overrides; default debug off for safety)
FLASK_HOST = os.getenv("FLASK_HOST", "0.0.0.0")
FLASK_PORT = int(os.getenv("FLASK_PORT", os.getenv("PORT", "5000")))
FLASK_DEBUG = os.getenv("FLASK_DEBUG", "False").lower() == "true"

# Retrieval limits
SEARCH_LIMIT = int(os.getenv("SEARCH_LIMIT", "15"))
DEBUG_SEARCH_LIMIT = 5
MAX_SEARCH_LIMIT = 100
MAX_CONTEXT_CATEGORIES = 20
MAX_CONTEXT_BRANDS = 20
CONTEXT_DESCRIPTION_CHARS = 150

# Optional JSON file replacing the built-in intent rules
INTENT_RULES_PATH = os.getenv("INTENT_RULES_PATH")

# Interaction log directory
LOG_DIR = Path(os.getenv("SHOPASSIST_LOG_DIR", str(_PROJECT_ROOT / "logs")))
