# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Application configuration loaded from the environment."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the authorization service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "IT Asset Authorization"
    database_url: str = "sqlite:///./authz.db"
    log_level: str = "INFO"
    seed_on_startup: bool = True

    # Token issuer
    secret_key: str = "change-me-in-production-at-least-32-chars"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 8
    auth_cookie_name: str = "auth_token"

    # Permission cache
    permission_cache_ttl_seconds: int = 300


settings = Settings()
