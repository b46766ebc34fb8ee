import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

REPO_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = Path(os.environ.get("GIGSYNC_DATA_DIR", REPO_ROOT / "data"))
DATABASE_PATH = Path(os.environ.get("DATABASE_PATH", DATA_DIR / "gigsync.db"))
STATUS_PATH = DATA_DIR / "scrape-status.json"
LOG_PATH = DATA_DIR / "scrape-log.txt"
LOG_RETENTION_DAYS = 14

LOCAL_TIMEZONE = os.environ.get("LOCAL_TIMEZONE", "America/Chicago")
CITY = "Austin"
HTTP_TIMEOUT = 15

CRON_SECRET = os.environ.get("CRON_SECRET")

SCRAPE_TIMEOUT = float(os.environ.get("SCRAPE_TIMEOUT", "120"))
SCRAPE_MAX_WORKERS = int(os.environ.get("SCRAPE_MAX_WORKERS", "8"))
ENABLE_MOCK_SCRAPER = os.environ.get("ENABLE_MOCK_SCRAPER", "false").lower() == "true"
REQUIRED_FIELDS = ["source", "venue_slug", "title", "start_datetime", "url"]
SCRAPER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

R2_ACCOUNT_ID = os.environ.get("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.environ.get("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.environ.get("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.environ.get("R2_BUCKET_NAME", "gigsync-data")
R2_DATABASE_KEY = "gigsync.db"

USE_TM_API = os.environ.get("USE_TM_API", "true").lower() == "true"
TM_API_KEY = os.environ.get("TM_API_KEY")
TM_BASE_URL = "https://app.ticketmaster.com/discovery/v2"
TM_MIN_INTERVAL = 0.25
TM_AUTO_MATCH_THRESHOLD = 0.85

SPOTIFY_CLIENT_ID = os.environ.get("SPOTIFY_CLIENT_ID")
SPOTIFY_CLIENT_SECRET = os.environ.get("SPOTIFY_CLIENT_SECRET")
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_SEARCH_URL = "https://api.spotify.com/v1/search"
SPOTIFY_MIN_POPULARITY = 10

GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY")
KG_SEARCH_URL = "https://kgsearch.googleapis.com/v1/entities:search"

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

DEFAULT_ENRICH_LIMIT = 50
ENRICH_EVENT_DELAY = 0.5
ENRICH_REQUEST_DELAY = 0.1

WEATHER_BASE_URL = "https://weather.googleapis.com/v1"
WEATHER_TTL_SECONDS = 60 * 60
FORECAST_HORIZON_DAYS = 10
WEATHER_CALL_DELAY = 0.2
WEATHER_COORD_PRECISION = 2


@dataclass(frozen=True)
class Settings:
    """Configuration snapshot handed to the trigger surface at startup."""
    cron_secret: Optional[str]
    database_path: Path
    tm_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None

    @classmethod
    def from_env(cls):
        return cls(
            cron_secret=CRON_SECRET,
            database_path=DATABASE_PATH,
            tm_api_key=TM_API_KEY,
            openai_api_key=OPENAI_API_KEY,
            google_api_key=GOOGLE_API_KEY,
            spotify_client_id=SPOTIFY_CLIENT_ID,
            spotify_client_secret=SPOTIFY_CLIENT_SECRET,
        )
