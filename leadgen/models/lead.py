"""
Lead model — one row per (GitHub owner, repository), deduplicated by that pair.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from leadgen.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    github_username = Column(Text, nullable=False)
    repo_name = Column(Text, nullable=False)
    repo_url = Column(Text, nullable=False, default='')
    repo_description = Column(Text, default='')
    repo_stars = Column(Integer, nullable=True)
    repo_forks = Column(Integer, nullable=True)
    repo_language = Column(Text, nullable=True)
    repo_created_at = Column(DateTime(timezone=True), nullable=True)
    repo_updated_at = Column(DateTime(timezone=True), nullable=True)
    last_activity = Column(DateTime(timezone=True), nullable=True)  # last push

    # Owner profile (GitHub /users/{login})
    email = Column(Text, nullable=True)
    owner_name = Column(Text, nullable=True)
    owner_company = Column(Text, nullable=True)
    owner_blog = Column(Text, nullable=True)
    owner_location = Column(Text, nullable=True)
    owner_bio = Column(Text, nullable=True)
    owner_twitter_username = Column(Text, nullable=True)

    # Qualification
    ai_score = Column(Float, nullable=True)
    ai_recommendation = Column(Text, nullable=True)  # approve | reject | review
    ai_analysis = Column(Text, nullable=True)
    analyzed_at = Column(DateTime(timezone=True), nullable=True)

    # Outreach
    status = Column(Text, nullable=False, default='new')
    email_sent = Column(Boolean, nullable=False, default=False)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)
    email_pending_approval = Column(Boolean, nullable=False, default=False)
    email_approved = Column(Boolean, nullable=False, default=False)
    email_rejected = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint('github_username', 'repo_name', name='uq_lead_github_repo'),
    )

    @property
    def full_name(self) -> str:
        return f"{self.github_username}/{self.repo_name}"

    def to_dict(self) -> dict:
        def iso(value):
            return value.isoformat() if value else None

        return {
            'id': self.id,
            'github_username': self.github_username,
            'repo_name': self.repo_name,
            'repo_url': self.repo_url,
            'repo_description': self.repo_description or '',
            'repo_stars': self.repo_stars,
            'repo_forks': self.repo_forks,
            'repo_language': self.repo_language,
            'repo_created_at': iso(self.repo_created_at),
            'repo_updated_at': iso(self.repo_updated_at),
            'last_activity': iso(self.last_activity),
            'email': self.email,
            'owner_name': self.owner_name,
            'owner_company': self.owner_company,
            'owner_blog': self.owner_blog,
            'owner_location': self.owner_location,
            'owner_bio': self.owner_bio,
            'owner_twitter_username': self.owner_twitter_username,
            'ai_score': self.ai_score,
            'ai_recommendation': self.ai_recommendation,
            'ai_analysis': self.ai_analysis,
            'analyzed_at': iso(self.analyzed_at),
            'status': self.status,
            'email_sent': bool(self.email_sent),
            'email_sent_at': iso(self.email_sent_at),
            'email_pending_approval': bool(self.email_pending_approval),
            'email_approved': bool(self.email_approved),
            'email_rejected': bool(self.email_rejected),
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
