"""
Configuration settings for ReviewSync.

Centralized configuration for the upstream client, the review store
and the place table. Values come from environment variables (a local
.env file is honoured for development).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_ROOT = PROJECT_ROOT / "data"
OUTPUT_ROOT = PROJECT_ROOT / "output"

# Upstream review provider (SerpApi google_maps_reviews engine)
SERPAPI_API_KEY = os.getenv("SERPAPI_API_KEY", "")
SERPAPI_URL = os.getenv("SERPAPI_URL", "https://serpapi.com/search.json")
REVIEWS_LANGUAGE = os.getenv("REVIEWS_LANGUAGE", "pt-BR")
UPSTREAM_TIMEOUT_SECONDS = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30"))
UPSTREAM_MAX_RETRIES = int(os.getenv("UPSTREAM_MAX_RETRIES", "3"))
UPSTREAM_PAGE_SIZE = int(os.getenv("UPSTREAM_PAGE_SIZE", "20"))  # API max is 20
UPSTREAM_MAX_PAGES = int(os.getenv("UPSTREAM_MAX_PAGES", "100"))

# Review store
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_ROOT / 'reviews.db'}")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_POOL_TIMEOUT_SECONDS = float(os.getenv("DB_POOL_TIMEOUT_SECONDS", "2"))
DB_STATEMENT_TIMEOUT_SECONDS = float(os.getenv("DB_STATEMENT_TIMEOUT_SECONDS", "10"))

# Dedup identity: "review_id" or "published_iso_at". Pick one per deployment
# and never change it once reviews are stored.
REVIEW_IDENTITY = os.getenv("REVIEW_IDENTITY", "review_id")

# Places (context -> Google place_id)
PLACES = {
    "nema_humaita": "ChIJizElztN_mQARyfLk7REGZRc",
    "nema_visconde_de_piraja": "ChIJhxTcDIrVmwARm0brYm21Hkw",
    "nema_leblon": "ChIJF8dM_x_VmwARHGUmlUaKD5M",
}
PLACES_FILE = os.getenv("PLACES_FILE", "")  # optional JSON override

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = os.getenv("LOG_FILE", "reviewsync.log")
