# pathway/models.py
from datetime import datetime, timezone

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    Text,
    JSON,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from pathway.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Interaction(Base):
    """
    One exchange: what the user said and what we answered.

    Append-only. This is the log the intake session is replayed from
    when no session row is available.
    """
    __tablename__ = "interactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    user_utterance: Mapped[str] = mapped_column(Text, nullable=False)
    system_response: Mapped[str] = mapped_column(Text, nullable=False)
    session_type: Mapped[str] = mapped_column(String, nullable=False, default="intake")
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "session_type IN ('intake', 'companion')",
            name="ck_interactions_session_type_valid",
        ),
        Index("ix_interactions_user_ts", "user_id", "ts"),
    )


class IntakeSession(Base):
    __tablename__ = "intake_sessions"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    script_version: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class IntakeResponse(Base):
    __tablename__ = "intake_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    field: Mapped[str] = mapped_column(String, nullable=False)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    referral_tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    severity: Mapped[str] = mapped_column(String, nullable=False, default="low")
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "severity IN ('low', 'medium', 'high')",
            name="ck_intake_responses_severity_valid",
        ),
    )


class ScoreContribution(Base):
    __tablename__ = "score_contributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_score_contributions_points_non_negative"),
    )


class DeadLetter(Base):
    """
    Trigger events the notification gateway never accepted.
    """
    __tablename__ = "dead_letters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    priority: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Reflection(Base):
    """
    A free-text check-in on one life domain, outside the intake script.
    """
    __tablename__ = "reflections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    domain: Mapped[str] = mapped_column(String, nullable=False)
    reflection_text: Mapped[str] = mapped_column(Text, nullable=False)
    tone: Mapped[str] = mapped_column(String, nullable=False)
    action_step: Mapped[str | None] = mapped_column(Text, nullable=True)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
