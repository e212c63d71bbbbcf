from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from locallink.config.db import get_db
from locallink.services import comments as comment_store

router = APIRouter()

@router.get("")
async def get_comments_by_issue(issueId: str, db: Session = Depends(get_db)):
    return [c.to_dict() for c in comment_store.list_by_issue(db, issueId)]
