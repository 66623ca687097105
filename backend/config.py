"""Configuration management for the Knowledge Base Assistant."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Storage backend for documents and query analytics ("memory" or "supabase")
STORAGE_BACKEND = os.getenv(
    "STORAGE_BACKEND",
    "supabase" if SUPABASE_URL and SUPABASE_KEY else "memory"
)

# Generation Configuration
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama-3.1-8b-instant")
MAX_RESPONSE_TOKENS = 500
TEMPERATURE = 0.7
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "30"))

# Retrieval Configuration
RANKED_SEARCH_LIMIT = 5
FALLBACK_SEARCH_LIMIT = 3

# Context Configuration
CONTEXT_BODY_MAX_CHARS = 1000
TRUNCATION_MARKER = "..."
NO_CONTEXT_SENTINEL = "No relevant information found in the knowledge base."

# Session Configuration
HISTORY_WINDOW_TURNS = 10
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "10000"))  # 0 disables eviction

# Analytics Configuration
TOP_QUERIES_DEFAULT_LIMIT = 10
TOP_QUERIES_MAX_LIMIT = 100

# Telemetry Configuration
TELEMETRY_LOG_PATH = os.getenv("TELEMETRY_LOG_PATH", "logs/telemetry.jsonl")

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
