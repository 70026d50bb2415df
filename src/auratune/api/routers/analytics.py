"""Listening analytics endpoints (top artists and tracks)."""

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query

from auratune.api.dependencies import get_spotify_client, require_access_token
from auratune.domain.ports import ISpotifyClient

router = APIRouter()


def _summarize(item_type: str, item: dict[str, Any]) -> dict[str, Any]:
    images = item.get("images") or (item.get("album") or {}).get("images") or []
    summary: dict[str, Any] = {
        "id": item.get("id"),
        "name": item.get("name"),
        "image_url": images[0].get("url") if images else None,
        "spotify_url": (item.get("external_urls") or {}).get("spotify"),
    }
    if item_type == "artists":
        summary["genres"] = item.get("genres") or []
    else:
        summary["artists"] = [a.get("name") for a in item.get("artists") or []]
        summary["album_name"] = (item.get("album") or {}).get("name")
    return summary


@router.get("/top/{item_type}")
async def get_top_items(
    item_type: Literal["artists", "tracks"],
    time_range: Literal["short_term", "medium_term", "long_term"] = Query("medium_term"),
    limit: int = Query(20, ge=1, le=50),
    access_token: str = Depends(require_access_token),
    spotify: ISpotifyClient = Depends(get_spotify_client),
) -> dict[str, Any]:
    """Get the caller's top artists or tracks for a time range."""
    page = await spotify.get_user_top_items(
        item_type, access_token, time_range=time_range, limit=limit
    )
    items = page.get("items") or []
    return {
        "type": item_type,
        "time_range": time_range,
        "total": page.get("total", len(items)),
        "items": [_summarize(item_type, item) for item in items],
    }
