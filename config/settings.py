from typing import List
from functools import lru_cache
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class FileSettings(BaseModel):
    """File upload related configuration"""
    allowed_extensions: List[str] = Field(default_factory=lambda: ['.csv'])
    max_file_size: int = 10  # MB
    chunk_size: int = 1024 * 1024

class StorageSettings(BaseModel):
    """Backing store configuration"""
    backend: str = "memory"  # memory | s3
    bucket: str = "data-pipeline-bucket"
    storage_dir: str = "./storage"
    default_owner: str = "user123"

class QueueSettings(BaseModel):
    """Background job queue configuration"""
    max_size: int = 32

class CacheSettings(BaseModel):
    """Insights cache configuration"""
    insights_ttl: int = 3600 * 24

class APISettings(BaseModel):
    """API related configuration"""
    title: str = "Data Pipeline API"
    version: str = "1.0.0"
    description: str = "Upload CSV files, get statistical insights and ask questions about the data"
    cors_origins: List[str] = ["http://localhost:3001"]

class AISettings(BaseModel):
    """AI Provider configuration"""
    groq_api_key: str = ""
    model: str = "llama-3.3-70b-versatile"
    translate_timeout: float = 15.0
    summary_timeout: float = 30.0
    history_turns: int = 5

    @property
    def enabled(self) -> bool:
        return bool(self.groq_api_key.strip())


class AppSettings(BaseSettings):
    """Main application settings"""
    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # Nested configurations
    api: APISettings = Field(default_factory=APISettings)
    files: FileSettings = Field(default_factory=FileSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    ai: AISettings = Field(default_factory=AISettings)

    # Pydantic settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached settings instance.
    Using lru_cache ensures settings are loaded only once.
    """
    return AppSettings()
