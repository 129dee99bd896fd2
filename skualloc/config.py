"""
Configuration loader for environment variables.
"""

import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()


class Config:
    """Application configuration from environment variables."""
    
    # PostgreSQL
    POSTGRES_HOST = os.getenv('POSTGRES_HOST', 'localhost')
    POSTGRES_PORT = os.getenv('POSTGRES_PORT', '5432')
    POSTGRES_DATABASE = os.getenv('POSTGRES_DATABASE', 'skualloc')
    POSTGRES_USER = os.getenv('POSTGRES_USER')
    POSTGRES_PASSWORD = os.getenv('POSTGRES_PASSWORD')
    
    # Full SQLAlchemy URL, overrides the POSTGRES_* settings when present
    DATABASE_URL = os.getenv('DATABASE_URL')
    
    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    
    # Hierarchy paths are stored as separator-joined strings
    PATH_SEPARATOR = '/'
    
    # CSV import/export
    CSV_ENCODING = os.getenv('CSV_ENCODING', 'utf-8-sig')
    
    # Identity header set by the upstream auth gateway
    USER_HEADER = os.getenv('USER_HEADER', 'X-User-Id')
    
    @classmethod
    def get_postgres_url(cls):
        """Get SQLAlchemy PostgreSQL connection URL."""
        return (
            f"postgresql://{cls.POSTGRES_USER}:{cls.POSTGRES_PASSWORD}"
            f"@{cls.POSTGRES_HOST}:{cls.POSTGRES_PORT}/{cls.POSTGRES_DATABASE}"
        )
    
    @classmethod
    def get_database_url(cls):
        """Get the database URL, preferring DATABASE_URL."""
        return cls.DATABASE_URL or cls.get_postgres_url()
