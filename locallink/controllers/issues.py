import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session
from locallink.config.db import get_db
from locallink.errors import ValidationError
from locallink.middleware.auth import get_current_identity, get_optional_identity
from locallink.services import comments as comment_store
from locallink.services import issues as issue_store
from locallink.services.identity import Identity

logger = logging.getLogger(__name__)

router = APIRouter()

class IssueCreateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    imageUrl: Optional[str] = None

# only the fields actually sent are applied (exclude_unset); status has its own admin route
class IssueUpdateRequest(IssueCreateRequest):
    model_config = ConfigDict(extra="forbid")

class CommentCreateRequest(BaseModel):
    text: Optional[str] = None
    username: Optional[str] = None

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_issue(
    request: IssueCreateRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    issue = issue_store.create_issue(db, request.model_dump(), identity)
    return issue.to_dict()

@router.get("")
async def get_issues(db: Session = Depends(get_db)):
    return [issue.to_dict() for issue in issue_store.list_all_issues(db)]

@router.get("/{issue_id}")
async def get_issue(issue_id: str, db: Session = Depends(get_db)):
    issue = issue_store.get_issue(db, issue_id)
    comments = comment_store.list_by_issue(db, issue.id)
    return {
        "issue": issue.to_dict(),
        "comments": [c.to_dict() for c in comments]
    }

@router.patch("/{issue_id}")
async def update_issue(
    issue_id: str,
    request: IssueUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    patch = request.model_dump(exclude_unset=True)
    issue = issue_store.update_issue(db, issue_id, identity, patch)
    return issue.to_dict()

@router.delete("/{issue_id}")
async def delete_issue(
    issue_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    issue_store.delete_issue(db, issue_id, identity)
    return {"message": "Issue deleted successfully"}

@router.post("/{issue_id}/upvote")
async def toggle_upvote(
    issue_id: str,
    request: Request,
    x_user_id: Optional[str] = Header(None),
    identity: Optional[Identity] = Depends(get_optional_identity),
    db: Session = Depends(get_db)
):
    user_id = identity.uid if identity else None

    # Fallback: user id from the request body or X-User-Id header
    if not user_id:
        try:
            body = await request.json()
        except ValueError:
            body = {}
        if isinstance(body, dict):
            user_id = body.get("userId")
        user_id = user_id or x_user_id
        if user_id:
            logger.debug(f"Unverified upvote identity {user_id} on issue {issue_id}")

    if not user_id:
        raise ValidationError("User ID required")

    upvotes, upvoted = issue_store.toggle_upvote(db, issue_id, str(user_id))
    return {"upvotes": upvotes, "upvoted": upvoted}

@router.get("/{issue_id}/comments")
async def get_comments(issue_id: str, db: Session = Depends(get_db)):
    comments = comment_store.list_for_existing_issue(db, issue_id)
    return {"comments": [c.to_dict() for c in comments]}

@router.post("/{issue_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    issue_id: str,
    request: CommentCreateRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    comment = comment_store.create_comment(db, issue_id, identity, request.text, request.username)
    return {"comment": comment.to_dict()}
