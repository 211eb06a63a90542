"""Configuration for the LuthierGram backend."""
import os
from pathlib import Path

# Base paths
BACKEND_DIR = Path(__file__).parent.parent
DATA_DIR = BACKEND_DIR / "data"

# Database
DATABASE_PATH = Path(os.getenv("LUTHIERGRAM_DB_PATH", str(DATA_DIR / "luthiergram.db")))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = os.getenv("LOG_JSON", "true").lower() == "true"

# Picker thumbnails are requested at this size and cropped
THUMBNAIL_SUFFIX = os.getenv("THUMBNAIL_SUFFIX", "=w400-h400-c")

# CORS origins for the browser front end, comma separated
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
