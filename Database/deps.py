"""FastAPI dependencies exposing the shared store clients."""

from fastapi import Request

from .storage import AvatarStorage


def get_db(request: Request):
    """Return the Supabase client created once at startup."""
    return request.app.state.db


def get_storage(request: Request) -> AvatarStorage:
    return request.app.state.storage
