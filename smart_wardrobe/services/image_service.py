import os
import uuid
from typing import Optional, Tuple
from fastapi import UploadFile, HTTPException, status
from PIL import Image
import boto3
from botocore.exceptions import ClientError
import asyncio
import logging

from smart_wardrobe.config import Settings

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


class ImageService:
    """Garment photo blob store: S3 when AWS keys exist, local disk otherwise."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.s3_client = None
        if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.AWS_REGION
            )

    @staticmethod
    def guess_mime_type(filename: Optional[str]) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        return MIME_TYPES.get(ext, "image/jpeg")

    def validate_upload(self, filename: Optional[str], content: bytes) -> None:
        """Validate extension, size and that the bytes are non-empty"""
        if not filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid filename"
            )

        file_ext = os.path.splitext(filename)[1].lower()
        allowed = self.settings.ALLOWED_EXTENSIONS
        if file_ext not in allowed:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"File type not allowed. Allowed types: {', '.join(allowed)}"
            )

        if len(content) == 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="File is empty"
            )

        max_size = self.settings.MAX_FILE_SIZE
        if len(content) > max_size:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"File too large. Max size: {max_size / (1024*1024)}MB"
            )

    async def read_upload(self, file: UploadFile) -> Tuple[bytes, str]:
        """Read and validate an uploaded file; returns (content, mime type)"""
        content = await file.read()
        self.validate_upload(file.filename, content)
        mime_type = file.content_type or self.guess_mime_type(file.filename)
        if not mime_type.startswith("image/"):
            mime_type = self.guess_mime_type(file.filename)
        return content, mime_type

    async def save_image(
        self,
        content: bytes,
        filename: str,
        content_type: str,
        folder: str = "garments",
    ) -> str:
        """Store image bytes under a generated name and return its URL"""
        file_ext = os.path.splitext(filename)[1].lower() or ".jpg"
        key = f"{folder}/{uuid.uuid4()}{file_ext}"

        if self.s3_client:
            url = await asyncio.to_thread(self._upload_to_s3_bytes, content, key, content_type)
        else:
            url = await asyncio.to_thread(self._upload_local_bytes, content, key)

        logger.info(f"Image saved: {url}")
        return url

    def _upload_to_s3_bytes(self, content: bytes, key: str, content_type: str) -> str:
        try:
            self.s3_client.put_object(
                Bucket=self.settings.AWS_BUCKET_NAME,
                Key=key,
                Body=content,
                ContentType=content_type
            )
        except ClientError as e:
            logger.error(f"S3 upload error: {e}")
            raise
        return self._s3_url(key)

    def _upload_local_bytes(self, content: bytes, relative_path: str) -> str:
        file_path = os.path.join(self.settings.UPLOAD_DIR, relative_path)
        os.makedirs(os.path.dirname(file_path), exist_ok=True)

        with open(file_path, "wb") as f:
            f.write(content)

        self._optimize_image(file_path)
        return f"/uploads/{relative_path}"

    def _s3_url(self, key: str) -> str:
        return f"https://{self.settings.AWS_BUCKET_NAME}.s3.{self.settings.AWS_REGION}.amazonaws.com/{key}"

    def _local_path(self, image_url: str) -> str:
        relative = image_url.split("/uploads/", 1)[-1]
        return os.path.join(self.settings.UPLOAD_DIR, relative)

    def _optimize_image(self, file_path: str, max_size: tuple = (1600, 1600)):
        """Shrink very large photos in place; keeps the format"""
        try:
            with Image.open(file_path) as img:
                if img.width <= max_size[0] and img.height <= max_size[1]:
                    return
                img.thumbnail(max_size, Image.Resampling.LANCZOS)
                img.save(file_path, optimize=True, quality=85)
        except Exception as e:
            logger.warning(f"Image optimization failed: {e}")

    async def read_image(self, image_url: str) -> bytes:
        """Fetch stored image bytes (used for re-analysis)"""
        if image_url.startswith("http"):
            if not self.s3_client:
                raise FileNotFoundError(image_url)
            key = image_url.split(".com/", 1)[-1]
            response = await asyncio.to_thread(
                self.s3_client.get_object, Bucket=self.settings.AWS_BUCKET_NAME, Key=key
            )
            return await asyncio.to_thread(response["Body"].read)

        path = self._local_path(image_url)
        return await asyncio.to_thread(_read_file, path)

    async def delete_image(self, image_url: Optional[str]) -> bool:
        """Delete image from storage"""
        try:
            if not image_url:
                return True

            if image_url.startswith('http'):
                if self.s3_client:
                    key = image_url.split('.com/')[-1]
                    await asyncio.to_thread(
                        self.s3_client.delete_object,
                        Bucket=self.settings.AWS_BUCKET_NAME,
                        Key=key
                    )
            else:
                file_path = self._local_path(image_url)
                if os.path.exists(file_path):
                    os.remove(file_path)

            logger.info(f"Image deleted: {image_url}")
            return True

        except (ClientError, OSError) as e:
            logger.error(f"Image deletion error: {e}")
            return False


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()

