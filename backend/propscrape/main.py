from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from propscrape.api.routers import scraper
from propscrape.core.config import settings
from propscrape.core.database import Base, engine
from propscrape.db import models as db_models  # registers tables on Base
import logging

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Property Listing Scraper API",
    description="API for extracting, validating and staging commercial property listings",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(scraper.router, prefix="/api/v1/scraper", tags=["scraper"])

@app.on_event("startup")
async def startup_event():
    """Create tables on startup"""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Application startup completed successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

@app.get("/")
async def root():
    return {"message": "Property Listing Scraper API"}

@app.get("/health")
async def health_check():
    """Health check endpoint that reports which capabilities are configured"""
    services = {
        "scraping": "configured" if settings.FIRECRAWL_API_KEY else "not_configured",
        "ai_extraction": (
            "disabled" if not settings.AI_EXTRACTION_ENABLED
            else "configured" if settings.AI_EXTRACTION_API_KEY
            else "not_configured"
        ),
    }
    health_status = {
        "status": "healthy" if services["scraping"] == "configured" else "degraded",
        "services": services,
    }
    return health_status
