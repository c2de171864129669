"""
Configuration settings for the Workshop Participant Portal.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

APP_ICON = "🎓"

# Base directory
BASE_DIR = Path(__file__).parent

# Data directory
DATA_DIR = os.path.join(BASE_DIR, "data")
TEMPLATE_DIR = os.path.join(DATA_DIR, "templates")

# Backend settings
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")

# Storage buckets
PHOTO_BUCKET = "photos"
PROFILE_BUCKET = "profiles"
MAX_PHOTO_SIZE_KB = 800
MAX_PROFILE_IMAGE_SIZE_KB = 300

# Logging
LOG_LEVEL = os.environ.get("PORTAL_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Directory sign-in
SESSION_KEY = "directory_user"
# No search debounce: the name box only submits on enter or blur.
SEARCH_RESULT_LIMIT = 50
PIN_LENGTH = 4
PIN_HASH_ROUNDS = 10

# Create necessary directories if they don't exist
os.makedirs(DATA_DIR, exist_ok=True)
os.makedirs(TEMPLATE_DIR, exist_ok=True)

# App settings
APP_NAME = "Scholarship Workshop Portal"
PRIMARY_COLOR = "#1E88E5"
SECONDARY_COLOR = "#FFC107"
SUCCESS_COLOR = "#4CAF50"
WARNING_COLOR = "#FF9800"
DANGER_COLOR = "#F44336"

# Assignment options
BUS_NAMES = ["Bus 1", "Bus 2", "Bus 3"]
ACTIVITY_PROGRAMS = ["Surfing", "Mio Costa"]
FAQ_DEFAULT_CATEGORY = "Other"

# Role definitions
ROLES = {
    "admin": {
        "name": "Admin",
        "permissions": ["view_portal", "view_dashboard", "manage_users", "manage_events",
                        "manage_notices", "manage_assignments", "upload_data"],
        "description": "Full access to the back-office"
    },
    "participant": {
        "name": "Participant",
        "permissions": ["view_portal"],
        "description": "Can use the participant pages"
    }
}
DEFAULT_ROLE = "participant"
