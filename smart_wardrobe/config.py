# smart_wardrobe/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import Optional, List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Smart Wardrobe API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "smart_wardrobe"

    # JWT
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # Auth bypass for single-user / offline deployments
    DISABLE_AUTH: bool = True
    GUEST_USER_ID: str = "000000000000000000000000"

    # Vision / LLM providers ("auto" walks the whole chain)
    PREFERRED_AI_SERVICE: str = "auto"
    GEMINI_API_KEY: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None
    KIMI_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    GOOGLE_VISION_API_KEY: Optional[str] = None

    GEMINI_VISION_MODEL: str = "gemini-1.5-flash"
    GEMINI_TEXT_MODEL: str = "gemini-1.5-flash"
    OPENAI_VISION_MODEL: str = "gpt-4o-mini"
    OPENAI_TEXT_MODEL: str = "gpt-4o-mini"
    KIMI_VISION_MODEL: str = "moonshot-v1-8k-vision-preview"
    KIMI_BASE_URL: str = "https://api.moonshot.cn/v1"
    ANTHROPIC_VISION_MODEL: str = "claude-3-5-sonnet-20240620"

    AI_TIMEOUT_SECONDS: float = 15.0
    AI_RETRY_BACKOFF_SECONDS: float = 1.0
    LOW_CONFIDENCE_THRESHOLD: float = 0.6

    # Embeddings
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    GENERATE_EMBEDDINGS_ON_UPLOAD: bool = True

    # Behavior log retention (TTL index, 6 months)
    BEHAVIOR_RETENTION_DAYS: int = 180

    # Batch upload
    BATCH_UPLOAD_CONCURRENCY: int = 3
    MAX_BATCH_SIZE: int = 20

    # AWS S3
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_BUCKET_NAME: Optional[str] = None
    AWS_REGION: str = "us-east-1"

    # File Upload
    UPLOAD_DIR: str = "uploads"
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_EXTENSIONS: List[str] = [".jpg", ".jpeg", ".png", ".webp", ".gif"]

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:8081",
        "http://localhost:19006",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
