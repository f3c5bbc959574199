from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Database (search presets, reference import repository)
    DATABASE_URL: str = "sqlite:///./propscrape.db"
    
    # Redis (Celery broker and result backend)
    REDIS_URL: str = "redis://localhost:6379"
    
    # Scraping capability (Firecrawl v2)
    FIRECRAWL_API_KEY: str = ""
    FIRECRAWL_BASE_URL: str = "https://api.firecrawl.dev"
    SCRAPE_WAIT_FOR_MS: int = 5000
    SCRAPE_TIMEOUT_MS: int = 120000
    CRAWL_POLL_INTERVAL_SECONDS: float = 5.0
    CRAWL_MAX_POLL_ATTEMPTS: int = 60
    CRAWL_MAX_PAGES: int = 10
    
    # Review staging (in-memory, per process)
    STAGING_MAX_AGE_SECONDS: int = 86400
    
    # AI extraction capability (OpenAI-compatible chat completions)
    AI_EXTRACTION_ENABLED: bool = True
    AI_EXTRACTION_API_KEY: str = ""
    AI_EXTRACTION_BASE_URL: str = "https://api.thesys.dev/v1/embed"
    AI_EXTRACTION_MODEL: str = "c1/anthropic/claude-sonnet-4/v-20250815"
    AI_EXTRACTION_TIMEOUT_SECONDS: float = 60.0
    AI_EXTRACTION_MAX_TOKENS: int = 8000
    AI_EXTRACTION_TEMPERATURE: float = 0.3
    AI_FALLBACK_CONFIDENCE_THRESHOLD: float = 0.5
    
    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"


settings = Settings()
