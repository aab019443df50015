import os
from dotenv import load_dotenv

load_dotenv()

DB_URL = os.getenv("DB_URL", "sqlite:///./printshelf.db")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

DB_CONNECT_ARGS = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

# Session cookie
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "userId")
SESSION_MAX_AGE_SECONDS = int(os.getenv("SESSION_MAX_AGE_SECONDS", str(60 * 60 * 24 * 7)))
BCRYPT_ROUNDS = max(4, min(31, int(os.getenv("BCRYPT_ROUNDS", "12"))))

# Cloudinary
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
UPLOAD_FOLDER_ROOT = os.getenv("UPLOAD_FOLDER_ROOT", "Printing").strip("/")

MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE_BYTES", str(10 * 1024 * 1024)))
UPLOAD_PROGRESS_INTERVAL_SECONDS = float(os.getenv("UPLOAD_PROGRESS_INTERVAL_SECONDS", "0.2"))

RECENTS_DEFAULT_LIMIT = int(os.getenv("RECENTS_DEFAULT_LIMIT", "20"))
RECENTS_MAX_LIMIT = int(os.getenv("RECENTS_MAX_LIMIT", "50"))

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
AUTH_RATE_LIMIT_PER_MINUTE = int(os.getenv("AUTH_RATE_LIMIT_PER_MINUTE", "20"))

# Redis Configuration
REDIS_URL = os.getenv("REDIS_URL", "")
