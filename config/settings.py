import os
import logging
from pathlib import Path
from dotenv import load_dotenv

from agent.state import Credentials

load_dotenv()

# --- Remote Site ---
TARGET_URL = os.getenv("TARGET_URL", "https://v0.dev")

# --- Identity Provider (GitHub) Credentials ---
GITHUB_EMAIL = os.getenv("GITHUB_EMAIL")
GITHUB_PASSWORD = os.getenv("GITHUB_PASSWORD")

# --- Browser Backend ---
BROWSER_ENV = os.getenv("BROWSER_ENV", "LOCAL").upper()
BROWSERBASE_API_KEY = os.getenv("BROWSERBASE_API_KEY")
BROWSERBASE_PROJECT_ID = os.getenv("BROWSERBASE_PROJECT_ID")
BROWSERBASE_CONNECT_URL = os.getenv("BROWSERBASE_CONNECT_URL", "wss://connect.browserbase.com")
HEADLESS = os.getenv("HEADLESS", "true").lower() == "true"

# --- Generation Timing ---
MAX_GENERATION_TIME = float(os.getenv("MAX_GENERATION_TIME", "180"))
# Poll between 2 and 5 seconds
POLL_INTERVAL = min(max(float(os.getenv("POLL_INTERVAL", "5")), 2.0), 5.0)
EXTRACT_MAX_ATTEMPTS = max(int(os.getenv("EXTRACT_MAX_ATTEMPTS", "5")), 1)
EXTRACT_RETRY_DELAY = float(os.getenv("EXTRACT_RETRY_DELAY", "2"))
EXTRACTION_STRATEGY = os.getenv("EXTRACTION_STRATEGY", "clipboard").lower()
LOGIN_SETTLE_TIME = float(os.getenv("LOGIN_SETTLE_TIME", "2"))
CLIPBOARD_SETTLE_TIME = float(os.getenv("CLIPBOARD_SETTLE_TIME", "2"))

# --- Server ---
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- LLM API Keys (action resolution fallback) ---
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
ACTION_LLM_PROVIDER = os.getenv("ACTION_LLM_PROVIDER", "anthropic")

# --- LLM Model Selection ---
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama3-70b-8192")

# --- Directory Configuration ---
PROJECT_ROOT = Path(__file__).parent.parent
SCREENSHOTS_DIR = PROJECT_ROOT / "screenshots"
COOKIE_FILE = Path(os.getenv("COOKIE_FILE", str(PROJECT_ROOT / "cookies.json")))

SCREENSHOTS_DIR.mkdir(exist_ok=True)

# --- Browser Configuration ---
VIEWPORT_SIZE = {"width": 1280, "height": 1080}
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"

# --- LLM Client Initialization ---
anthropic_client = None
groq_client = None
openai_client = None

if ANTHROPIC_API_KEY:
    from anthropic import Anthropic
    anthropic_client = Anthropic(api_key=ANTHROPIC_API_KEY)

if GROQ_API_KEY:
    from groq import Groq
    groq_client = Groq(api_key=GROQ_API_KEY)

if OPENAI_API_KEY:
    from openai import OpenAI
    openai_client = OpenAI(api_key=OPENAI_API_KEY)

if not (anthropic_client or groq_client or openai_client):
    logging.getLogger(__name__).info("No LLM API key found. Actions will be resolved by label matching only.")


def load_credentials() -> Credentials | None:
    """Returns the GitHub credential pair, or None unless both values are set."""
    if GITHUB_EMAIL and GITHUB_PASSWORD:
        return Credentials(identity=GITHUB_EMAIL, secret=GITHUB_PASSWORD)
    return None
