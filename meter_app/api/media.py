# meter_app/api/media.py

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from meter_app.services.image_store import ImageStore, get_image_store

router = APIRouter()


@router.get("/{key:path}")
async def get_media(key: str, store: ImageStore = Depends(get_image_store)):
    """Stored meter photos are public by URL; no auth on reads."""
    path = store.path_for(key)
    if path is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return FileResponse(path)
