import logging
import uuid
from typing import List, Optional, Tuple
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from locallink.database.models import Issue, IssueUpvote, ISSUE_CATEGORIES, ISSUE_STATUSES
from locallink.errors import Forbidden, NotFound, NoTransition, ValidationError
from locallink.services import comments
from locallink.services.analytics import Page, paginate
from locallink.services.identity import Identity

logger = logging.getLogger(__name__)

# Status transition order: Pending -> In Progress -> Resolved
STATUS_TRANSITION = {
    "Pending": "In Progress",
    "In Progress": "Resolved",
    "Resolved": "Resolved",
}

# request field -> column
EDITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "latitude": "latitude",
    "longitude": "longitude",
    "imageUrl": "image_url",
}

def parse_issue_id(issue_id) -> uuid.UUID:
    try:
        return issue_id if isinstance(issue_id, uuid.UUID) else uuid.UUID(str(issue_id))
    except ValueError:
        raise NotFound("Issue not found")

def ensure_owner(issue: Issue, identity: Identity):
    if issue.author_uid != identity.uid:
        raise Forbidden("Forbidden: Not the issue owner")

def check_choice(name: str, value: Optional[str], choices) -> Optional[str]:
    if value and value not in choices:
        raise ValidationError(f"Invalid {name}. Must be one of: {', '.join(choices)}")
    return value or None

def _require_text(data: dict, name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()

def _require_coordinate(data: dict, name: str, bound: float) -> float:
    value = data.get(name)
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} is required")
    if not -bound <= value <= bound:
        raise ValidationError(f"{name} must be between -{bound:g} and {bound:g}")
    return float(value)

def _require_category(data: dict) -> str:
    category = data.get("category")
    if category not in ISSUE_CATEGORIES:
        raise ValidationError(f"Invalid category. Must be one of: {', '.join(ISSUE_CATEGORIES)}")
    return category

def _clean_field(data: dict, name: str):
    if name in ("title", "description"):
        return _require_text(data, name)
    if name == "category":
        return _require_category(data)
    if name == "latitude":
        return _require_coordinate(data, name, 90)
    if name == "longitude":
        return _require_coordinate(data, name, 180)
    if name == "imageUrl":
        return data.get(name) or None
    raise ValidationError(f"Unknown field: {name}")

def create_issue(db: Session, data: dict, author: Identity) -> Issue:
    fields = {column: _clean_field(data, name) for name, column in EDITABLE_FIELDS.items()}
    issue = Issue(
        **fields,
        status="Pending",
        upvotes=0,
        author_uid=author.uid,
        author_email=author.email,
        author_name=author.display_name,
    )
    db.add(issue)
    db.commit()
    db.refresh(issue)
    logger.info(f"Issue {issue.id} created by {author.uid}")
    return issue

def get_issue(db: Session, issue_id) -> Issue:
    issue = db.get(Issue, parse_issue_id(issue_id))
    if not issue:
        raise NotFound("Issue not found")
    return issue

def lock_issue(db: Session, issue_pk: uuid.UUID) -> Issue:
    issue = db.query(Issue).filter(Issue.id == issue_pk).with_for_update().first()
    if not issue:
        raise NotFound("Issue not found")
    return issue

def list_all_issues(db: Session) -> List[Issue]:
    return db.query(Issue).order_by(Issue.created_at.desc()).all()

def list_issues(
    db: Session,
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    status = check_choice("status", status, ISSUE_STATUSES)
    category = check_choice("category", category, ISSUE_CATEGORIES)

    query = db.query(Issue)
    if status:
        query = query.filter(Issue.status == status)
    if category:
        query = query.filter(Issue.category == category)
    if search:
        query = query.filter(or_(
            Issue.title.icontains(search, autoescape=True),
            Issue.description.icontains(search, autoescape=True),
        ))
    return paginate(query.order_by(Issue.created_at.desc()), page, limit)

def update_issue(db: Session, issue_id, identity: Identity, patch: dict) -> Issue:
    issue = get_issue(db, issue_id)
    ensure_owner(issue, identity)

    unknown = set(patch) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    # validate everything before touching the row
    changes = {EDITABLE_FIELDS[name]: _clean_field(patch, name) for name in patch}
    for column, value in changes.items():
        setattr(issue, column, value)
    db.commit()
    db.refresh(issue)
    return issue

def delete_issue(db: Session, issue_id, identity: Identity):
    issue = get_issue(db, issue_id)
    ensure_owner(issue, identity)

    # comments go first; a failure after this point leaves the issue without comments
    removed = comments.delete_for_issue(db, issue.id)
    db.delete(issue)
    db.commit()
    logger.info(f"Issue {issue_id} deleted by {identity.uid} ({removed} comments removed)")

def set_status(db: Session, issue_id, action: str, value: Optional[str] = None) -> Issue:
    issue = get_issue(db, issue_id)

    if action == "next":
        next_status = STATUS_TRANSITION[issue.status]
        if next_status == issue.status:
            raise NoTransition("Issue is already resolved or no further transitions available")
        issue.status = next_status
    elif action == "set":
        if value not in ISSUE_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(ISSUE_STATUSES)}")
        issue.status = value
    else:
        raise ValidationError("Invalid action. Use 'next' for automatic transition or 'set' for manual override")

    db.commit()
    db.refresh(issue)
    logger.info(f"Issue {issue.id} status -> {issue.status}")
    return issue

def toggle_upvote(db: Session, issue_id, uid: str) -> Tuple[int, bool]:
    """Flip ``uid``'s membership in the upvoter set.

    The issue row is locked (SELECT ... FOR UPDATE) for the whole
    transaction, so toggles on one issue run one after another and the
    voter count below always sees every committed voter. Removal is a
    conditional DELETE and insertion relies on the (issue_id, uid) unique
    constraint, so the set never holds a duplicate voter.
    """
    issue_pk = parse_issue_id(issue_id)
    lock_issue(db, issue_pk)

    removed = db.execute(
        delete(IssueUpvote).where(IssueUpvote.issue_id == issue_pk, IssueUpvote.uid == uid)
    ).rowcount
    if removed:
        upvoted = False
    else:
        db.add(IssueUpvote(issue_id=issue_pk, uid=uid))
        try:
            db.flush()
        except IntegrityError:
            # voter already present; rollback released the lock, take it again
            db.rollback()
            lock_issue(db, issue_pk)
        upvoted = True

    voter_count = (
        select(func.count(IssueUpvote.id))
        .where(IssueUpvote.issue_id == issue_pk)
        .scalar_subquery()
    )
    db.execute(
        update(Issue)
        .where(Issue.id == issue_pk)
        .values(upvotes=voter_count)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    upvotes = db.execute(select(Issue.upvotes).where(Issue.id == issue_pk)).scalar_one()
    db.expire_all()
    return upvotes, upvoted
