import logging
from functools import lru_cache
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from locallink.config.db import get_db
from locallink.config.settings import settings
from locallink.database.models import User
from locallink.errors import Unauthenticated, Forbidden
from locallink.services.identity import Identity, Verifier, build_verifier

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

@lru_cache
def get_verifier() -> Verifier:
    return build_verifier(settings)

def get_admin_emails() -> set:
    return settings.admin_emails

def _token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise Unauthenticated("Unauthorized: No token provided")
    return credentials.credentials

def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: Verifier = Depends(get_verifier),
) -> Identity:
    token = _token(credentials)
    try:
        return verifier.verify(token)
    except Unauthenticated as e:
        logger.warning(f"Authentication failed: {e.message}")
        raise

def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: Verifier = Depends(get_verifier),
) -> Optional[Identity]:
    if credentials is None:
        return None
    try:
        return verifier.verify(credentials.credentials)
    except Unauthenticated as e:
        logger.info(f"Ignoring unverifiable token: {e.message}")
        return None

def is_admin(identity: Identity, db: Session, admin_emails: set) -> bool:
    if identity.has_admin_claim:
        return True
    user = db.query(User).filter(User.uid == identity.uid).first()
    if user is not None and user.role == "admin":
        return True
    # bootstrap allow-list for the first administrators
    return bool(identity.email) and identity.email.lower() in admin_emails

def require_admin(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    admin_emails: set = Depends(get_admin_emails),
) -> Identity:
    if not is_admin(identity, db, admin_emails):
        logger.warning(f"Admin access denied for uid={identity.uid}")
        raise Forbidden("Forbidden: Admin privileges required")
    return identity
