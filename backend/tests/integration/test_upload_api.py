"""
Integration Tests for File Upload API
"""
import io
import pytest
from fastapi import HTTPException, UploadFile
from httpx import AsyncClient

from storefront.api.v1.endpoints.upload import UPLOAD_CHUNK_SIZE, _save, stored_filename
from storefront.core.config import settings

API = "/api/v1/upload"

JPEG = b"\xff\xd8\xff\xe0" + b"0" * 2048


class TestStoredFilename:

    def test_sanitises_stem(self):
        name = stored_filename("My Invoice (final).JPG")

        assert name.startswith("My-Invoice-final-")
        assert name.endswith(".jpg")

    def test_prefix_and_empty_name(self):
        assert stored_filename("", prefix="claim-").startswith("claim-file-")

    def test_names_are_unique(self):
        assert stored_filename("photo.png") != stored_filename("photo.png")


class TestSave:

    @pytest.mark.asyncio
    async def test_stops_reading_past_limit(self, tmp_path):
        data = b"0" * (5 * 1024 * 1024)
        upload = UploadFile(file=io.BytesIO(data), filename="big.png")

        with pytest.raises(HTTPException) as exc_info:
            await _save(upload, ["png"], 1024 * 1024, tmp_path)

        assert exc_info.value.status_code == 413
        assert upload.file.tell() <= 1024 * 1024 + UPLOAD_CHUNK_SIZE
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_saves_in_chunks(self, tmp_path):
        data = bytes(range(256)) * 1000
        upload = UploadFile(file=io.BytesIO(data), filename="scan.png")

        filename, size = await _save(upload, ["png"], 1024 * 1024, tmp_path)

        assert size == len(data)
        assert (tmp_path / filename).read_bytes() == data


class TestImageUpload:

    @pytest.mark.asyncio
    async def test_upload_image(self, client: AsyncClient, auth_headers):
        response = await client.post(API, headers=auth_headers, files={"file": ("photo.jpg", JPEG, "image/jpeg")})

        assert response.status_code == 200
        data = response.json()
        assert data["url"] == f"/uploads/{data['filename']}"
        assert data["size"] == len(JPEG)
        assert (settings.UPLOAD_DIR / data["filename"]).read_bytes() == JPEG

    @pytest.mark.asyncio
    async def test_rejects_extension(self, client: AsyncClient, auth_headers):
        response = await client.post(API, headers=auth_headers,
                                     files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid file type. Allowed types: jpeg, jpg, png, gif, webp"

    @pytest.mark.asyncio
    async def test_rejects_large_image(self, client: AsyncClient, auth_headers):
        big = b"0" * (2 * 1024 * 1024 + 1)

        response = await client.post(API, headers=auth_headers, files={"file": ("big.png", big, "image/png")})

        assert response.status_code == 413
        assert response.json()["detail"] == "File too large. Maximum size is 2MB"

    @pytest.mark.asyncio
    async def test_requires_login(self, client: AsyncClient):
        response = await client.post(API, files={"file": ("photo.jpg", JPEG, "image/jpeg")})

        assert response.status_code in (401, 403)


class TestClaimUpload:

    @pytest.mark.asyncio
    async def test_upload_pdf(self, client: AsyncClient, auth_headers):
        response = await client.post(f"{API}/claim", headers=auth_headers,
                                     files={"file": ("receipt.pdf", b"%PDF-1.4 receipt", "application/pdf")})

        assert response.status_code == 200
        data = response.json()
        assert data["filename"].startswith("claim-receipt-")
        assert data["url"] == f"/uploads/claims/{data['filename']}"
        assert (settings.CLAIM_UPLOAD_DIR / data["filename"]).exists()

    @pytest.mark.asyncio
    async def test_larger_limit_for_claims(self, client: AsyncClient, auth_headers):
        photo = b"0" * (3 * 1024 * 1024)

        response = await client.post(f"{API}/claim", headers=auth_headers,
                                     files={"file": ("damage.png", photo, "image/png")})

        assert response.status_code == 200
