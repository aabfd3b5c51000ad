import logging
import os

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# FastAPI imports
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Local imports
from src.backend.v1.api.refund_router import refund_router

load_dotenv(override=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage FastAPI application lifecycle - startup and shutdown."""
    logger = logging.getLogger(__name__)

    logger.info("🚀 Starting refund backend...")
    yield
    logger.info("👋 Refund backend shutdown complete")


# Configure logging levels from environment variables
logging.basicConfig(
    level=getattr(logging, os.environ.get("REFUND_LOG_LEVEL", "INFO").upper(), logging.INFO)
)

# Google client libraries are chatty at INFO.
google_level = getattr(
    logging, os.environ.get("GOOGLE_PACKAGE_LOGGING_LEVEL", "WARNING").upper(), logging.WARNING
)
for logger_name in ("googleapiclient", "google.auth", "urllib3"):
    logging.getLogger(logger_name).setLevel(google_level)

# Initialize the FastAPI app
app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("REFUND_CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app_v1 = APIRouter(prefix="/api/v1")
app_v1.include_router(refund_router)
app.include_router(app_v1)


@app.get("/health")
async def health():
    return {"status": "ok"}


# Run the app
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.backend.app:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
        log_level="info",
        access_log=False,
    )
