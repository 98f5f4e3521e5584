"""Health check and settings endpoints."""

from fastapi import APIRouter

from where_are_we import config

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get global app settings (AI connections, game options)."""
    return config.get_config()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update global app settings (partial merge)."""
    return config.update_config(body)
