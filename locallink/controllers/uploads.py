from fastapi import APIRouter, Depends, File, UploadFile, status
from supabase import Client
from locallink.middleware.auth import get_current_identity
from locallink.services.identity import Identity
from locallink.services.storage import get_storage_client, upload_image

router = APIRouter()

@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_issue_image(
    file: UploadFile = File(...),
    identity: Identity = Depends(get_current_identity),
    client: Client = Depends(get_storage_client)
):
    image_url = await upload_image(file, client)
    return {"imageUrl": image_url}
