"""
Application configuration, loaded once at startup.
"""

import os

# Remote CRUD endpoints (e.g. https://shop.example.com/api). Takes precedence
# over DATABASE_URL when both are set.
STORE_API_URL = os.getenv("STORE_API_URL")

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

LOCAL_STORE_PATH = os.getenv("LOCAL_STORE_PATH", "storefront_local.json")
STORE_TIMEOUT = float(os.getenv("STORE_TIMEOUT", "10"))

PORT = int(os.getenv("PORT", "8000"))
