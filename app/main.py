import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import auth
from app.api.routes import router
from app.config import CORS_ORIGINS, ENVIRONMENT
from app.core.exceptions import register_exception_handlers
from app.db import init_db

app = FastAPI(title="Printshelf API", version="1.0.0")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("printshelf")

origins = [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]
# Browsers reject credentialed requests against a wildcard origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()
logger.info("event=startup environment=%s", ENVIRONMENT)

app.include_router(auth.router)
app.include_router(router)
register_exception_handlers(app)
