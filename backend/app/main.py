import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import config

# Ensure all SQLAlchemy models are imported so relationships resolve
import app.models  # noqa: F401

from app.api import members, reference, register_numbers

# Ops/system endpoints (/health, /version)
from app.api.system import router as system_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title=config.APP_NAME, version=config.APP_VERSION)

# --- CORS for local frontend dev ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(system_router)  # /health, /version

app.include_router(members.router)           # /members
app.include_router(register_numbers.router)  # /register-numbers
app.include_router(reference.router)         # /reference
