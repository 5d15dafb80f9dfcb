from pydantic_settings import BaseSettings
from typing import List, Literal, Optional

class Settings(BaseSettings):
    # AWS / SES
    aws_region: str = "us-east-1"
    from_email: str
    support_email: str
    ses_configuration_set: Optional[str] = None
    campaign_from_name: str = "Taurean IT Logistics"

    # Database Settings
    database_url: Optional[str] = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    db_command_timeout: int = 60

    # App Settings
    frontend_url: str
    backend_url: str
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    environment: str = "development"
    cors_origins: List[str] = [
        "http://localhost:3000",  # Next.js dev server
        "http://localhost:5173",  # Vite admin dashboard
    ]

    # Pagination
    pagination_default_limit: int = 10
    pagination_max_limit: int = 100

    # Uploads
    upload_root: str = "uploads"
    upload_max_bytes: int = 10 * 1024 * 1024

    # Newsletter: "global" keeps one subscriber per email across all companies,
    # "company" makes email unique per company
    subscriber_email_scope: Literal["global", "company"] = "global"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
