import logging
import uuid
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from locallink.database.models import User, USER_ROLES
from locallink.errors import NotFound, ValidationError
from locallink.services.analytics import Page, paginate
from locallink.services.identity import Identity

logger = logging.getLogger(__name__)

def _parse_id(user_id) -> uuid.UUID:
    try:
        return user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
    except ValueError:
        raise NotFound("User not found")

def upsert_user(db: Session, identity: Identity) -> User:
    """Create the local record for an identity, or refresh its profile fields."""
    if not identity.email:
        raise ValidationError("Token carries no email address")

    user = db.query(User).filter(User.uid == identity.uid).first()
    if user:
        user.email = identity.email
        user.name = identity.name
        user.photo_url = identity.picture
    else:
        user = User(
            uid=identity.uid,
            email=identity.email,
            name=identity.name,
            photo_url=identity.picture,
            role="user",
        )
        db.add(user)
        logger.info(f"New user registered: uid={identity.uid}")
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Email already registered")
    db.refresh(user)
    return user

def get_by_uid(db: Session, uid: str) -> User:
    user = db.query(User).filter(User.uid == uid).first()
    if not user:
        raise NotFound("User not found")
    return user

def get_user(db: Session, user_id) -> User:
    user = db.query(User).filter(User.id == _parse_id(user_id)).first()
    if not user:
        raise NotFound("User not found")
    return user

def list_users(db: Session, search: str = "", role: Optional[str] = None, page: int = 1, limit: int = 10) -> Page:
    if role and role not in USER_ROLES:
        raise ValidationError("Invalid role")

    query = db.query(User)
    if search:
        query = query.filter(or_(
            User.name.icontains(search, autoescape=True),
            User.email.icontains(search, autoescape=True),
        ))
    if role:
        query = query.filter(User.role == role)
    return paginate(query.order_by(User.created_at.desc()), page, limit)

def set_role(db: Session, user_id, role: str) -> User:
    if role not in USER_ROLES:
        raise ValidationError("Invalid role")
    user = get_user(db, user_id)
    user.role = role
    db.commit()
    db.refresh(user)
    logger.info(f"Role of user {user.uid} set to {role}")
    return user

def delete_user(db: Session, user_id):
    # issues and comments keep their author/username snapshots
    user = get_user(db, user_id)
    uid = user.uid
    db.delete(user)
    db.commit()
    logger.info(f"User {uid} deleted")
