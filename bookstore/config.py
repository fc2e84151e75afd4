"""
Application settings

Every setting comes from the environment (or a local .env file) and is read
once at import time.
"""

import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Security settings
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 15))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 7))
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", 10))

# Pricing
TAX_RATE = float(os.getenv("TAX_RATE", 0.18))
SHIPPING_COST = float(os.getenv("SHIPPING_COST", 50))
CURRENCY = os.getenv("CURRENCY", "INR")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

# Default admin, created at startup when missing
ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - [%(levelname)s] - %(message)s"
