import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from locallink.config.db import get_db
from locallink.middleware.auth import get_current_identity
from locallink.services import users as user_directory
from locallink.services.identity import Identity

router = APIRouter()

logger = logging.getLogger(__name__)

@router.post("")
async def sync_user(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    logger.info(f"Syncing user record: uid={identity.uid}")
    user = user_directory.upsert_user(db, identity)
    return {"user": user.to_dict()}

@router.get("")
async def get_current_user(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    user = user_directory.get_by_uid(db, identity.uid)
    return {"user": user.to_dict()}
