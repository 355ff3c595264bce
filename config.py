"""Configuration module for the novel catalog cache."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Remote Source
NOVEL_SOURCE_URL = os.getenv("NOVEL_SOURCE_URL", "https://www.novelsfree.example/novels")
NOVEL_SITE_ORIGIN = os.getenv("NOVEL_SITE_ORIGIN", "https://www.novelsfree.example")
CRAWLER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/108.0.0.0 Safari/537.36"
    )
}
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "15"))

# Retry Configuration
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "7"))
RETRY_INITIAL_DELAY_SECONDS = float(os.getenv("RETRY_INITIAL_DELAY_SECONDS", "1.5"))

# Extraction Selectors
CONTAINER_SELECTOR = os.getenv("CONTAINER_SELECTOR", "div.novel-entry")
NAME_SELECTOR = os.getenv("NAME_SELECTOR", ".novel-title")
LINK_SELECTOR = os.getenv("LINK_SELECTOR", "a.pdf-link")
IMAGE_HOLDER_TAG = os.getenv("IMAGE_HOLDER_TAG", "figure")
IMAGE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".gif", ".webp"]

# Storage Configuration
DATA_DIR = Path(os.getenv("DATA_DIR", "./output/catalog"))
MERGE_CHUNK_SIZE = int(os.getenv("MERGE_CHUNK_SIZE", "50"))
FRESHNESS_DAYS = int(os.getenv("FRESHNESS_DAYS", "7"))

# Pagination
INITIAL_PAGE_SIZE = int(os.getenv("INITIAL_PAGE_SIZE", "30"))
DEFAULT_DYNAMIC_PAGE_SIZE = int(os.getenv("DEFAULT_DYNAMIC_PAGE_SIZE", "20"))
SEARCH_MATCH_MODE = os.getenv("SEARCH_MATCH_MODE", "prefix")  # "prefix" or "substring"

# Scroll Velocity (samples are scroll events per second)
VELOCITY_WINDOW_SIZE = 5
VELOCITY_TICK_SECONDS = 0.5
VELOCITY_SCALE = 1000.0
VELOCITY_FAST_THRESHOLD = float(os.getenv("VELOCITY_FAST_THRESHOLD", "8"))
VELOCITY_MEDIUM_THRESHOLD = float(os.getenv("VELOCITY_MEDIUM_THRESHOLD", "3"))
FAST_SCROLL_PAGE_SIZE = 10
MEDIUM_SCROLL_PAGE_SIZE = 20
SLOW_SCROLL_PAGE_SIZE = 30

# Presentation
DEFAULT_THEME = "dark"
THEMES = ("light", "dark")
NOTIFICATION_DURATION_SECONDS = 5
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Ensure data directory exists
DATA_DIR.mkdir(parents=True, exist_ok=True)
