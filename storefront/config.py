"""
Configuration management for the storefront service.
Loads settings from environment variables and AWS Secrets Manager.
"""
import os
import json
import logging
import boto3
import urllib.parse
from typing import List, Optional

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration"""

    # Application settings
    APP_PORT: int = int(os.getenv("APP_PORT", "5001"))
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "storefront")
    REGION: str = os.getenv("REGION", "ap-southeast-2")
    CORS_ALLOW_ORIGINS: List[str] = os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")

    # Redis settings
    REDIS_URL: Optional[str] = os.getenv("REDIS_URL")
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_AUTH_TOKEN: Optional[str] = os.getenv("REDIS_AUTH_TOKEN")
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_SSL: bool = _env_bool("REDIS_SSL", "false")

    # Cart settings
    DEFAULT_CART_ID: str = os.getenv("DEFAULT_CART_ID", "default")
    MIN_QUANTITY_PER_ITEM: int = 1
    MAX_QUANTITY_PER_ITEM: int = int(os.getenv("MAX_QUANTITY_PER_ITEM", "20"))

    # Catalog settings
    SEED_ON_STARTUP: bool = _env_bool("SEED_ON_STARTUP", "true")
    MIN_PRODUCT_COUNT: int = int(os.getenv("MIN_PRODUCT_COUNT", "20"))
    FAKE_STORE_API_URL: str = os.getenv("FAKE_STORE_API_URL", "https://fakestoreapi.com")
    FAKE_STORE_TIMEOUT_SECONDS: int = int(os.getenv("FAKE_STORE_TIMEOUT_SECONDS", "10"))

    # Redis connection settings
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_MAX_CONNECTIONS: int = 50
    # Attempts for idempotent reads only; 1 disables retrying
    REDIS_READ_RETRIES: int = int(os.getenv("REDIS_READ_RETRIES", "1"))

    @classmethod
    def redis_url(cls) -> str:
        """Build the Redis connection URL"""
        if cls.REDIS_URL:
            return cls.REDIS_URL

        scheme = "rediss" if cls.REDIS_SSL else "redis"
        auth = f":{urllib.parse.quote(cls.REDIS_AUTH_TOKEN, safe='')}@" if cls.REDIS_AUTH_TOKEN else ""
        return f"{scheme}://{auth}{cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB}"

    @classmethod
    def load_redis_secrets(cls) -> None:
        """Load Redis authentication token from AWS Secrets Manager"""
        if cls.REDIS_AUTH_TOKEN:
            return  # Already loaded from environment

        secret_name = os.getenv("REDIS_SECRET_NAME")
        if not secret_name:
            return  # No secret name provided, use no auth

        try:
            client = boto3.client("secretsmanager", region_name=cls.REGION)
            response = client.get_secret_value(SecretId=secret_name)
            secret_data = json.loads(response["SecretString"])

            cls.REDIS_AUTH_TOKEN = secret_data.get("auth_token")
            if "endpoint" in secret_data:
                cls.REDIS_HOST = secret_data["endpoint"]
        except Exception as e:
            logger.warning(f"Could not load Redis secrets from Secrets Manager: {e}")
            # Continue without auth token (may fail on connection)

# Load secrets at module import
Config.load_redis_secrets()
