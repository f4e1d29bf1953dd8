import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.dirname(os.path.dirname(BASE_DIR))
DATA_DIR = os.getenv("LEADBOT_DATA_DIR", os.path.join(ROOT_DIR, "data"))

BRAND_NAME = os.getenv("LEADBOT_BRAND_NAME", "Dark Nebula")

# Logging
LOG_LEVEL = os.getenv("LEADBOT_LOG_LEVEL", "INFO").upper()

# Text generation (OpenAI-compatible chat completions)
LLM_API_KEY = os.getenv("LEADBOT_LLM_API_KEY", os.getenv("OPENAI_API_KEY", ""))
LLM_URL = os.getenv("LEADBOT_LLM_URL", "https://api.openai.com/v1/chat/completions")
LLM_MODEL = os.getenv("LEADBOT_LLM_MODEL", "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("LEADBOT_LLM_TEMPERATURE", "0.7"))
LLM_MAX_TOKENS = int(os.getenv("LEADBOT_LLM_MAX_TOKENS", "150"))

# Optional relay in front of the model (POST {message, conversationHistory, ...} -> {reply})
CHAT_RELAY_URL = os.getenv("LEADBOT_CHAT_RELAY_URL", "")

CONNECT_TIMEOUT = float(os.getenv("LEADBOT_CONNECT_TIMEOUT", "5"))   # seconds
READ_TIMEOUT    = float(os.getenv("LEADBOT_READ_TIMEOUT", "20"))     # seconds
TOTAL_RETRIES   = int(os.getenv("LEADBOT_TOTAL_RETRIES", "2"))
BACKOFF_FACTOR  = float(os.getenv("LEADBOT_BACKOFF", "0.5"))
POOL_MAXSIZE    = int(os.getenv("LEADBOT_POOL_MAXSIZE", "10"))

# Conversation
HISTORY_WINDOW = int(os.getenv("LEADBOT_HISTORY_WINDOW", "6"))
SESSION_IDLE_SECS = int(os.getenv("LEADBOT_SESSION_IDLE_SECS", "1800"))  # drop engines idle this long
STORAGE_PREFIX = os.getenv("LEADBOT_STORAGE_PREFIX", "dark_nebula_lead")
STORE_PATH = os.getenv("LEADBOT_STORE_PATH", os.path.join(DATA_DIR, "conversations.json"))
CONTACT_PATH = os.getenv("LEADBOT_CONTACT_PATH", "/contact")

# Lead submission (third-party form relay, e.g. Formspree)
LEAD_RELAY_URL = os.getenv("LEADBOT_LEAD_RELAY_URL", "")
ADMIN_TOKEN = os.getenv("LEADBOT_ADMIN_TOKEN", "")

# CORS
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("LEADBOT_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]
