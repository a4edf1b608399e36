import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from catalog.config import get_settings
from catalog.database import engine, Base
from catalog.api import products, health
from catalog.api.errors import register_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting up application in {settings.ENVIRONMENT} mode...")

    # Create database tables
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    yield

    # Shutdown
    logger.info("Shutting down application...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    A CRUD API for a product catalog and its customer reviews:

    - **Products**: list with keyword search and pagination, create, update, delete
    - **Reviews**: one review per user per product, with running rating statistics
    - **Top rated**: the five products with the best average rating

    ## Responses
    Every response is wrapped in an envelope with a `success` flag.
    Errors carry `status` and `message` (plus `stack` outside production).

    ## Caching
    Product details and the top-rated list are cached in Redis.
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(health.router, prefix="/api")
app.include_router(products.router, prefix="/api")


@app.get("/", tags=["Root"])
def root():
    """Liveness message with API information."""
    return {
        "message": "Product CRUD API is live",
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/api/health"
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 5000))
    uvicorn.run(app, host="0.0.0.0", port=port)
