import logging
import uuid
from typing import List, Optional
from sqlalchemy.orm import Session
from locallink.database.models import Comment, Issue
from locallink.errors import NotFound, ValidationError
from locallink.services.analytics import Page, paginate
from locallink.services.identity import Identity

logger = logging.getLogger(__name__)

def _parse_id(value, what: str) -> uuid.UUID:
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except ValueError:
        raise NotFound(f"{what} not found")

def _require_issue(db: Session, issue_id) -> uuid.UUID:
    issue_pk = _parse_id(issue_id, "Issue")
    if db.get(Issue, issue_pk) is None:
        raise NotFound("Issue not found")
    return issue_pk

def create_comment(db: Session, issue_id, author: Identity, text: Optional[str], username: Optional[str] = None) -> Comment:
    if not text or not text.strip():
        raise ValidationError("Comment text is required")
    issue_pk = _require_issue(db, issue_id)

    comment = Comment(
        issue_id=issue_pk,
        # snapshot; later renames do not touch old comments
        username=(username or "").strip() or author.name or author.email or "Anonymous",
        text=text.strip(),
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment

def list_by_issue(db: Session, issue_id) -> List[Comment]:
    issue_pk = _parse_id(issue_id, "Issue")
    return (
        db.query(Comment)
        .filter(Comment.issue_id == issue_pk)
        .order_by(Comment.created_at.desc())
        .all()
    )

def list_for_existing_issue(db: Session, issue_id) -> List[Comment]:
    return list_by_issue(db, _require_issue(db, issue_id))

def list_comments(db: Session, search: str = "", page: int = 1, limit: int = 10) -> Page:
    query = db.query(Comment)
    if search:
        query = query.filter(Comment.text.icontains(search, autoescape=True))
    return paginate(query.order_by(Comment.created_at.desc()), page, limit)

def issue_titles(db: Session, comments: List[Comment]) -> dict:
    """Titles of the issues the given comments point at, for those still present."""
    ids = {c.issue_id for c in comments}
    if not ids:
        return {}
    rows = db.query(Issue.id, Issue.title).filter(Issue.id.in_(ids)).all()
    return {issue_id: title for issue_id, title in rows}

def delete_comment(db: Session, comment_id):
    comment = db.get(Comment, _parse_id(comment_id, "Comment"))
    if not comment:
        raise NotFound("Comment not found")
    db.delete(comment)
    db.commit()
    logger.info(f"Comment {comment_id} deleted")

def delete_for_issue(db: Session, issue_id) -> int:
    removed = (
        db.query(Comment)
        .filter(Comment.issue_id == _parse_id(issue_id, "Issue"))
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed
