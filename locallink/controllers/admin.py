from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from locallink.config.db import get_db
from locallink.middleware.auth import require_admin
from locallink.services import analytics
from locallink.services import comments as comment_store
from locallink.services import issues as issue_store
from locallink.services import users as user_directory
from locallink.services.identity import Identity

router = APIRouter()

class StatusChangeRequest(BaseModel):
    action: Optional[str] = None
    status: Optional[str] = None

class RoleChangeRequest(BaseModel):
    role: Optional[str] = None

@router.get("/issues")
async def get_all_issues(
    page: int = 1,
    limit: int = 10,
    status: str = "",
    category: str = "",
    search: str = "",
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    result = issue_store.list_issues(db, status=status, category=category, search=search, page=page, limit=limit)
    return {
        "issues": [issue.to_dict() for issue in result.items],
        "pagination": result.pagination(),
        "analytics": analytics.issue_analytics(db),
    }

@router.patch("/issues/{issue_id}/status")
async def update_issue_status(
    issue_id: str,
    request: StatusChangeRequest,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    issue = issue_store.set_status(db, issue_id, request.action, request.status)
    return {"message": f"Status updated to {issue.status}", "issue": issue.to_dict()}

@router.get("/users")
async def get_users(
    page: int = 1,
    limit: int = 10,
    search: str = "",
    role: str = "",
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    result = user_directory.list_users(db, search=search, role=role or None, page=page, limit=limit)
    return {
        "users": [user.to_dict() for user in result.items],
        "pagination": result.pagination(),
    }

@router.patch("/users/{user_id}")
async def update_user_role(
    user_id: str,
    request: RoleChangeRequest,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = user_directory.set_role(db, user_id, request.role)
    return {"user": user.to_dict(), "message": "User role updated successfully"}

@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user_directory.delete_user(db, user_id)
    return {"message": "User deleted successfully"}

@router.get("/comments")
async def get_comments(
    page: int = 1,
    limit: int = 10,
    search: str = "",
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    result = comment_store.list_comments(db, search=search, page=page, limit=limit)
    titles = comment_store.issue_titles(db, result.items)
    comments = []
    for comment in result.items:
        entry = comment.to_dict()
        entry["issueTitle"] = titles.get(comment.issue_id)
        comments.append(entry)
    return {"comments": comments, "pagination": result.pagination()}

@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db)
):
    comment_store.delete_comment(db, comment_id)
    return {"message": "Comment deleted successfully"}
