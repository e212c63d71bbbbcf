from datetime import datetime, timezone
from sqlalchemy import Column, String, UUID, Double, Text, Integer, TIMESTAMP, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
import uuid

Base = declarative_base()

ISSUE_STATUSES = ("Pending", "In Progress", "Resolved")
ISSUE_CATEGORIES = ("Infrastructure", "Sanitation", "Safety", "Environment", "Traffic", "Noise", "Other")
USER_ROLES = ("user", "moderator", "admin")

def utcnow():
    return datetime.now(timezone.utc)

def _iso(value):
    return value.isoformat() if value else None

class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    uid = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    role = Column(Enum(*USER_ROLES, name="user_role"), nullable=False, default="user")
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": str(self.id),
            "uid": self.uid,
            "email": self.email,
            "name": self.name,
            "photoURL": self.photo_url,
            "role": self.role,
            "createdAt": _iso(self.created_at),
        }

class Issue(Base):
    __tablename__ = "issues"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Enum(*ISSUE_CATEGORIES, name="issue_category"), nullable=False)
    latitude = Column(Double, nullable=False)
    longitude = Column(Double, nullable=False)
    status = Column(Enum(*ISSUE_STATUSES, name="issue_status"), nullable=False, default="Pending")
    upvotes = Column(Integer, nullable=False, default=0)
    # author snapshot, copied from the verified identity at creation
    author_uid = Column(String, nullable=False, index=True)
    author_email = Column(String, nullable=True)
    author_name = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, index=True)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    upvote_rows = relationship(
        "IssueUpvote",
        back_populates="issue",
        cascade="all, delete-orphan",
    )

    @property
    def upvoters(self):
        return [row.uid for row in self.upvote_rows]

    def to_dict(self):
        return {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "status": self.status,
            "upvotes": self.upvotes,
            "upvoters": self.upvoters,
            "author": {
                "uid": self.author_uid,
                "email": self.author_email,
                "name": self.author_name,
            },
            "imageUrl": self.image_url,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

class IssueUpvote(Base):
    __tablename__ = "issue_upvotes"
    __table_args__ = (UniqueConstraint("issue_id", "uid", name="unique_issue_upvoter"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    issue_id = Column(UUID(as_uuid=True), ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    uid = Column(String, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)

    issue = relationship("Issue", back_populates="upvote_rows")

class Comment(Base):
    __tablename__ = "comments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # loose reference, checked only when the comment is created
    issue_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    username = Column(String, nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, index=True)

    def to_dict(self):
        return {
            "id": str(self.id),
            "issueId": str(self.issue_id),
            "username": self.username,
            "text": self.text,
            "createdAt": _iso(self.created_at),
        }
