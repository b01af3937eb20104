"""Configuration management for DataNexus"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # Service Configuration
    SERVICE_HOST: str = "0.0.0.0"
    SERVICE_PORT: int = 8000
    SERVICE_NAME: str = "DataNexus Query Engine"
    
    # Redis Configuration (activity channel)
    REDIS_URL: str = "redis://redis:6379/1"
    
    # SQL Execution
    QUERY_TIMEOUT_SECONDS: int = 30
    CONNECT_TIMEOUT_SECONDS: int = 10
    MAX_RESULT_ROWS: int = 1000
    DEFAULT_QUERY_LIMIT: int = 100
    SAMPLE_ROW_LIMIT: int = 5
    
    # MCP Configuration
    MCP_TIMEOUT_SECONDS: int = 60
    
    # Elasticsearch / MongoDB
    SEARCH_TIMEOUT_SECONDS: int = 30
    
    # AI Provider Configuration
    DEFAULT_AI_PROVIDER: str = "gemini"
    AI_TEMPERATURE: float = 0.2
    AI_CONNECT_TIMEOUT_SECONDS: int = 30
    AI_REQUEST_TIMEOUT_SECONDS: int = 60
    
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash-exp"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    
    CLAUDE_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-3-5-sonnet-20241022"
    CLAUDE_MAX_TOKENS: int = 4096
    CLAUDE_BASE_URL: str = "https://api.anthropic.com/v1"
    
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    
    EREN_ENABLED: bool = False
    EREN_BASE_URL: str = "http://localhost:8082"
    
    OLLAMA_HOST: Optional[str] = None
    OLLAMA_MODEL: str = "llama3.1:8b"
    
    # Conversation State
    CONVERSATION_TTL_SECONDS: int = 3600
    CONVERSATION_SWEEP_INTERVAL_SECONDS: float = 300
    
    # Schema Training Push
    SCHEMA_TRAINING_ENABLED: bool = False
    SCHEMA_TRAINING_URL: str = "http://localhost:8090/api/schema/train"
    SCHEMA_TRAINING_TIMEOUT_SECONDS: int = 10
    
    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
