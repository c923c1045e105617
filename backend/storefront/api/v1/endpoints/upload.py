from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import BaseModel
from pathlib import Path
from typing import List
import re
import secrets
import time

import aiofiles

from storefront.core.config import settings
from storefront.core.logging_config import logger
from storefront.models.user import User
from storefront.modules.auth.dependencies import get_current_user

router = APIRouter()

UPLOAD_CHUNK_SIZE = 64 * 1024


class UploadResponse(BaseModel):
    url: str
    filename: str
    size: int


def stored_filename(original: str, prefix: str = "") -> str:
    """{prefix}{stem}-{timestamp}-{random}{ext}, with the stem reduced to safe characters"""
    path = Path(original or "file")
    stem = re.sub(r"[^A-Za-z0-9_-]+", "-", path.stem).strip("-")[:50] or "file"
    return f"{prefix}{stem}-{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{path.suffix.lower()}"


async def _save(file: UploadFile, allowed: List[str], max_size: int, directory: Path, prefix: str = "") -> tuple:
    extension = Path(file.filename or "").suffix.lower().lstrip(".")
    if extension not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type. Allowed types: {', '.join(allowed)}"
        )

    # Read in chunks and stop as soon as the limit is passed
    chunks = []
    size = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > max_size:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large. Maximum size is {max_size // (1024 * 1024)}MB"
            )
        chunks.append(chunk)
    content = b"".join(chunks)

    filename = stored_filename(file.filename, prefix)
    directory.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(directory / filename, "wb") as f:
        await f.write(content)

    return filename, len(content)


@router.post("", response_model=UploadResponse)
async def upload_image(
    file: UploadFile = File(..., description="Product or invoice image (max 2MB)"),
    current_user: User = Depends(get_current_user)
):
    filename, size = await _save(
        file, settings.IMAGE_EXTENSIONS, settings.MAX_IMAGE_UPLOAD_SIZE, settings.UPLOAD_DIR
    )
    logger.info(f"[Upload] {current_user.email} uploaded {filename} ({size} bytes)")
    return UploadResponse(url=f"/uploads/{filename}", filename=filename, size=size)


@router.post("/claim", response_model=UploadResponse)
async def upload_claim_file(
    file: UploadFile = File(..., description="Claim photo or PDF (max 10MB)"),
    current_user: User = Depends(get_current_user)
):
    filename, size = await _save(
        file, settings.CLAIM_EXTENSIONS, settings.MAX_CLAIM_UPLOAD_SIZE, settings.CLAIM_UPLOAD_DIR,
        prefix="claim-",
    )
    logger.info(f"[Upload] {current_user.email} uploaded claim file {filename} ({size} bytes)")
    return UploadResponse(url=f"/uploads/claims/{filename}", filename=filename, size=size)
