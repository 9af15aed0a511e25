"""
Configuration management for the iDEAL merchant client.

Supports configuration via environment variables and .env files.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IdealConfig(BaseSettings):
    """
    Configuration settings for building iDEAL requests.

    All settings can be configured via environment variables with the IDEAL_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="IDEAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Merchant settings
    merchant_id: Optional[str] = Field(
        default=None,
        description="Merchant id assigned by the acquirer"
    )
    merchant_sub_id: int = Field(
        default=0,
        ge=0,
        description="Merchant sub id, 0 unless the acquirer assigned one"
    )

    # Signing key settings
    private_key_path: Optional[str] = Field(
        default=None,
        description="Path to the merchant's PEM encoded RSA private key"
    )
    private_key_pem: Optional[str] = Field(
        default=None,
        description="PEM encoded private key (alternative to file path)"
    )
    private_key_password: Optional[str] = Field(
        default=None,
        description="Password protecting the private key"
    )

    # Transaction defaults
    default_expiration_minutes: int = Field(
        default=30,
        ge=1,
        le=60,
        description="Expiration period used when a request does not set one"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )


# Global config instance
_config: Optional[IdealConfig] = None


def get_config() -> IdealConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = IdealConfig()
    return _config


def set_config(config: IdealConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
