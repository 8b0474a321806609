from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status

from assetstore.app_shell.config import Settings
from assetstore.app_shell.context import ServiceContext
from assetstore.app_shell.rate_limit import RateLimiter
from assetstore.components.assets import AssetService
from assetstore.core.ports.storage import StoragePort
from assetstore.rules.loader import load_rules
from assetstore.rules.models import Rules

OWNER_HEADER = "X-Owner-Id"


# --- Settings ---
@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    return load_rules(get_settings().rules_path)


# --- Context ---
@lru_cache
def get_context() -> ServiceContext:
    """One context per process so the thumbnail pool is shared by every request."""
    settings = get_settings()
    return ServiceContext.create(settings.db_path, settings.uploads_dir, get_rules())


# --- Services ---
def get_asset_service(ctx: ServiceContext = Depends(get_context)) -> AssetService:
    return ctx.asset_service


def get_storage(ctx: ServiceContext = Depends(get_context)) -> StoragePort:
    return ctx.storage


def get_rate_limiter(ctx: ServiceContext = Depends(get_context)) -> RateLimiter:
    return ctx.rate_limiter


def get_public_base_url(settings: Settings = Depends(get_settings)) -> str:
    return settings.public_base_url


# --- Identity ---
def get_current_owner(
    x_owner_id: str | None = Header(default=None, alias=OWNER_HEADER),
) -> str:
    """
    Caller identity, already verified by the gateway in front of this service.
    """
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return x_owner_id.strip()
