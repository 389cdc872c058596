"""
Configuration management for the storefront service.
Loads settings from environment variables and AWS Secrets Manager.
"""
import os
import json
import logging
from decimal import Decimal
from typing import List, Optional

import boto3

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration"""

    # Application settings
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    APP_NAME: str = os.getenv("APP_NAME", "Storefront")
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "storefront")
    REGION: str = os.getenv("REGION", "ap-southeast-2")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    SENDER_EMAIL: str = os.getenv("SENDER_EMAIL", "onboarding@resend.dev")

    # Redis settings
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_AUTH_TOKEN: Optional[str] = os.getenv("REDIS_AUTH_TOKEN")
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_SSL: bool = _env_bool("REDIS_SSL", "false")

    # Cart settings
    CART_TTL_SECONDS: int = int(os.getenv("CART_TTL_SECONDS", str(30 * 24 * 60 * 60)))  # 30 days
    GUEST_CART_TTL_SECONDS: int = int(os.getenv("GUEST_CART_TTL_SECONDS", str(7 * 24 * 60 * 60)))  # 7 days for guests

    # Pricing settings
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "100"))
    SHIPPING_PRICE: Decimal = Decimal(os.getenv("SHIPPING_PRICE", "10"))
    TAX_RATE: Decimal = Decimal(os.getenv("TAX_RATE", "0.15"))

    # Catalog / listing settings
    LATEST_PRODUCTS_LIMIT: int = int(os.getenv("LATEST_PRODUCTS_LIMIT", "4"))
    PAGE_SIZE: int = int(os.getenv("PAGE_SIZE", "10"))

    # Checkout settings
    PAYMENT_METHODS: List[str] = [
        m.strip() for m in os.getenv("PAYMENT_METHODS", "PayPal,Stripe,CashOnDelivery").split(",") if m.strip()
    ]

    # Transaction settings
    TX_MAX_RETRIES: int = int(os.getenv("TX_MAX_RETRIES", "3"))

    # Redis connection settings
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_RETRY_ON_TIMEOUT: bool = True
    REDIS_MAX_CONNECTIONS: int = 50

    @classmethod
    def redis_url(cls) -> str:
        """Build the Redis connection URL (rediss:// when TLS is enabled)"""
        scheme = "rediss" if cls.REDIS_SSL else "redis"
        auth = f":{cls.REDIS_AUTH_TOKEN}@" if cls.REDIS_AUTH_TOKEN else ""
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
            # Continue without auth token (may fail on connection)
            logger.warning(f"Could not load Redis secrets from Secrets Manager: {e}")


# Load secrets at module import
Config.load_redis_secrets()
