"""
Ecological Profile API Server
Household census submissions: moderation, reconciliation and CSV interchange

Routers:
- /api/v1/ecological/*  staff moderation and interchange endpoints
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ecoprofile import __version__, config
from ecoprofile.moderation.admin import router as ecological_router

# ============================================
# App Configuration
# ============================================
app = FastAPI(
    title="Ecological Profile API",
    description="Household census submission moderation and reconciliation",
    version=__version__,
)

# ============================================
# CORS Configuration
# ============================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.include_router(ecological_router)


# ============================================
# Core Endpoints
# ============================================
@app.get("/")
def root():
    return {
        "service": "Ecological Profile API",
        "version": __version__,
        "status": "operational",
    }


@app.get("/health")
def health():
    return {
        "status": "healthy",
        "version": __version__,
        "storage": "postgres" if config.DATABASE_URL else "memory",
        "audit_enabled": config.AUDIT_ENABLED,
    }
