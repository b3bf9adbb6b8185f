import os

from dotenv import load_dotenv

load_dotenv(override=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./embeddings.db")

EMBEDDINGS_BACKEND = os.getenv("EMBEDDINGS_BACKEND", "sentence-transformers").lower()
EMBEDDINGS_MODEL = os.getenv("EMBEDDINGS_MODEL", "sentence-transformers/all-MiniLM-L6-v2")
EMBEDDINGS_DIMENSION = int(os.getenv("EMBEDDINGS_DIMENSION", "384"))

# --- Embedding cache ---
MEMORY_CACHE_SIZE = int(os.getenv("MEMORY_CACHE_SIZE", "1000"))
CACHE_PRELOAD_LIMIT = int(os.getenv("CACHE_PRELOAD_LIMIT", "100"))

# --- Providers ---
PREFERRED_PROVIDER = os.getenv("PREFERRED_PROVIDER") or None
PROVIDER_HEALTH_TTL = float(os.getenv("PROVIDER_HEALTH_TTL", "10"))

OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.2")
OLLAMA_EMBEDDINGS_MODEL = os.getenv("OLLAMA_EMBEDDINGS_MODEL", "all-minilm")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
OPENAI_EMBEDDINGS_MODEL = os.getenv("OPENAI_EMBEDDINGS_MODEL", "text-embedding-3-small")

SYSTEM_PROMPT = os.getenv(
    "SYSTEM_PROMPT",
    "You are a personal memory assistant. Answer briefly and prefer the "
    "user's saved memories when they are provided as context.",
)

# --- Health monitoring ---
HEALTH_CHECK_INTERVAL = float(os.getenv("HEALTH_CHECK_INTERVAL", "60"))
HEALTH_FAILURE_THRESHOLD = int(os.getenv("HEALTH_FAILURE_THRESHOLD", "3"))
HEALTH_MAX_HISTORY = int(os.getenv("HEALTH_MAX_HISTORY", "100"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

# --- Similarity thresholds ---
# cosine similarity ∈ [-1, 1]
CONTRADICTION_THRESHOLD = float(os.getenv("CONTRADICTION_THRESHOLD", "0.70"))
DUPLICATE_THRESHOLD = float(os.getenv("DUPLICATE_THRESHOLD", "0.85"))

if CONTRADICTION_THRESHOLD > DUPLICATE_THRESHOLD:
    CONTRADICTION_THRESHOLD, DUPLICATE_THRESHOLD = (
        DUPLICATE_THRESHOLD,
        CONTRADICTION_THRESHOLD,
    )

# --- Memory extraction ---
# model confidence ∈ [0, 1]
EXTRACTION_AUTO_SAVE_CONFIDENCE = float(os.getenv("EXTRACTION_AUTO_SAVE_CONFIDENCE", "0.8"))
EXTRACTION_REVIEW_CONFIDENCE = float(os.getenv("EXTRACTION_REVIEW_CONFIDENCE", "0.5"))
