"""
Ecological Profile Configuration

All settings come from the environment. Read once at import time.
"""

import os

DATABASE_URL = os.getenv("DATABASE_URL")

# Staff endpoints fail open in dev when unset
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")

AUDIT_ENABLED = os.getenv("AUDIT_ENABLED", "true").lower() == "true"

SUBMISSION_NUMBER_PREFIX = os.getenv("SUBMISSION_NUMBER_PREFIX", "ECO")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Comma-separated list of allowed browser origins for the staff dashboard
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
