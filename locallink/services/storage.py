import logging
import os
import uuid
from typing import Optional
from fastapi import UploadFile
from supabase import create_client, Client
from locallink.config.settings import settings
from locallink.errors import ServiceUnavailable, ValidationError

logger = logging.getLogger(__name__)

_client: Optional[Client] = None

def get_storage_client() -> Client:
    global _client
    if not settings.storage_configured:
        raise ServiceUnavailable("Image upload is not configured")
    if _client is None:
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    return _client

def check_image(content_type: Optional[str], size: int):
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Only image uploads are accepted")
    if size == 0:
        raise ValidationError("Uploaded file is empty")
    if size > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(f"Image larger than {settings.MAX_UPLOAD_BYTES} bytes")

async def upload_image(file: UploadFile, client: Client) -> str:
    """
    Upload an issue photo to Supabase storage
    Returns the public URL of the uploaded file
    """
    contents = await file.read()
    check_image(file.content_type, len(contents))

    file_extension = os.path.splitext(file.filename or "")[1].lower()
    path = f"issues/{uuid.uuid4()}{file_extension}"
    bucket = client.storage.from_(settings.SUPABASE_BUCKET)
    try:
        bucket.upload(path=path, file=contents, file_options={"content-type": file.content_type})
    except Exception as e:
        logger.exception(f"Error uploading file to Supabase: {e}")
        raise ServiceUnavailable("Image upload failed")

    return bucket.get_public_url(path)
