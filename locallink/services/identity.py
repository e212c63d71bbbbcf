"""Bearer token verification.

Three strategies share the ``Verifier`` protocol:

* ``FirebaseTokenVerifier`` checks RS256 ID tokens against the identity
  provider's published keys.
* ``InsecureDevVerifier`` trusts whatever payload the token carries. It only
  exists for local development and must be switched on explicitly with
  ``INSECURE_DEV_AUTH``.
* ``UnconfiguredVerifier`` rejects everything, so a deployment without
  credentials fails closed.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol
import requests
from jose import jwt, JWTError, ExpiredSignatureError
from locallink.config.settings import Settings
from locallink.errors import Unauthenticated

logger = logging.getLogger(__name__)

DEV_IDENTITY = {
    "uid": "dev-user-123",
    "email": "dev@example.com",
    "name": "Development User",
}

@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    claims: dict = field(default_factory=dict, compare=False)

    @property
    def display_name(self) -> Optional[str]:
        return self.name or self.email

    @property
    def has_admin_claim(self) -> bool:
        return self.claims.get("role") == "admin" or self.claims.get("admin") is True

DEV_UID_CLAIMS = ("uid", "user_id", "sub")
VERIFIED_UID_CLAIMS = ("sub", "user_id")

def identity_from_claims(claims: dict, uid_claims=VERIFIED_UID_CLAIMS, fallback_uid: Optional[str] = None) -> Identity:
    uid = next((claims[name] for name in uid_claims if claims.get(name)), fallback_uid)
    if not uid:
        raise Unauthenticated("Invalid token: missing user ID")
    return Identity(
        uid=str(uid),
        email=claims.get("email"),
        name=claims.get("name"),
        picture=claims.get("picture"),
        claims=dict(claims),
    )

class Verifier(Protocol):
    mode: str

    def verify(self, token: str) -> Identity:
        ...

class FirebaseTokenVerifier:
    mode = "firebase"

    def __init__(self, project_id: str, jwks_url: str, cache_seconds: int = 3600):
        self.project_id = project_id
        self.jwks_url = jwks_url
        self.cache_seconds = cache_seconds
        self.issuer = f"https://securetoken.google.com/{project_id}"
        self._keys = None
        self._fetched_at = 0.0
        self._lock = threading.Lock()

    def fetch_keys(self) -> dict:
        response = requests.get(self.jwks_url, timeout=10)
        response.raise_for_status()
        return response.json()

    def _get_keys(self) -> dict:
        with self._lock:
            if self._keys is None or time.monotonic() - self._fetched_at > self.cache_seconds:
                try:
                    self._keys = self.fetch_keys()
                except requests.RequestException as e:
                    logger.error(f"Could not fetch identity provider keys: {e}")
                    if self._keys is None:
                        raise Unauthenticated("Unable to verify token")
                else:
                    self._fetched_at = time.monotonic()
            return self._keys

    def verify(self, token: str) -> Identity:
        keys = self._get_keys()
        try:
            claims = jwt.decode(
                token,
                keys,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
            )
        except ExpiredSignatureError:
            raise Unauthenticated("Token expired")
        except JWTError as e:
            logger.warning(f"Token rejected: {e}")
            raise Unauthenticated("Invalid token")
        if not claims.get("sub"):
            raise Unauthenticated("Invalid token: missing user ID")
        # custom claims never override the signed subject
        return identity_from_claims(claims, VERIFIED_UID_CLAIMS)

class InsecureDevVerifier:
    """Accepts forged tokens. Never enable outside local development."""
    mode = "insecure-dev"

    def verify(self, token: str) -> Identity:
        logger.warning("INSECURE_DEV_AUTH: token signature NOT verified")
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return Identity(**DEV_IDENTITY)
        return identity_from_claims(claims, DEV_UID_CLAIMS, fallback_uid=DEV_IDENTITY["uid"])

class UnconfiguredVerifier:
    mode = "unconfigured"

    def verify(self, token: str) -> Identity:
        raise Unauthenticated("Authentication is not configured on this server")

def build_verifier(config: Settings) -> Verifier:
    if config.FIREBASE_PROJECT_ID:
        if config.INSECURE_DEV_AUTH:
            logger.error("INSECURE_DEV_AUTH ignored because FIREBASE_PROJECT_ID is configured")
        logger.info(f"Token verification: Firebase project {config.FIREBASE_PROJECT_ID}")
        return FirebaseTokenVerifier(
            config.FIREBASE_PROJECT_ID,
            config.FIREBASE_JWKS_URL,
            config.JWKS_CACHE_SECONDS,
        )
    if config.INSECURE_DEV_AUTH:
        logger.warning("!" * 60)
        logger.warning("INSECURE_DEV_AUTH is on: bearer tokens are NOT verified")
        logger.warning("Any caller can impersonate any user. Development only.")
        logger.warning("!" * 60)
        return InsecureDevVerifier()
    logger.warning("No identity provider configured - all authenticated routes will answer 401")
    return UnconfiguredVerifier()
