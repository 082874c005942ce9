# pathway/storage.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pathway.db import SessionLocal, engine, Base
from pathway.errors import StaleSessionError, TransientStorageError
from pathway.intake.state import SessionState
from pathway.models import (
    DeadLetter,
    Interaction,
    IntakeResponse,
    IntakeSession,
    Reflection,
    ScoreContribution,
)

logger = logging.getLogger(__name__)


def init_db() -> None:
    """
    Create all tables.
    Call this once at startup (e.g. from the FastAPI startup hook).
    """
    Base.metadata.create_all(bind=engine)


def as_utc(ts: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo even for timezone=True columns.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class InteractionRecord:
    user_id: str
    timestamp: datetime
    user_utterance: str
    system_response: str
    session_type: str = "intake"


class InteractionLog:
    """
    Append/query contract over the relational store.

    Every SQLAlchemy failure leaves this class as a TransientStorageError so
    callers can recover without knowing about the database driver.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    @contextmanager
    def db_session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise TransientStorageError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    def append(
        self,
        user_id: str,
        user_utterance: str,
        system_response: str,
        session_type: str = "intake",
        timestamp: Optional[datetime] = None,
    ) -> None:
        with self.db_session() as session:
            session.add(
                Interaction(
                    user_id=user_id,
                    user_utterance=user_utterance,
                    system_response=system_response,
                    session_type=session_type,
                    ts=timestamp or datetime.now(timezone.utc),
                )
            )

    def query(
        self,
        user_id: str,
        limit: int = 20,
        session_type: Optional[str] = None,
    ) -> List[InteractionRecord]:
        """
        Most recent `limit` interactions for a user, oldest first.
        """
        stmt = select(Interaction).where(Interaction.user_id == user_id)
        if session_type is not None:
            stmt = stmt.where(Interaction.session_type == session_type)
        stmt = stmt.order_by(Interaction.ts.desc(), Interaction.id.desc()).limit(limit)

        with self.db_session() as session:
            rows = list(session.scalars(stmt))
            records = [
                InteractionRecord(
                    user_id=row.user_id,
                    timestamp=as_utc(row.ts),
                    user_utterance=row.user_utterance,
                    system_response=row.system_response,
                    session_type=row.session_type,
                )
                for row in rows
            ]
        records.reverse()
        return records

    def last_interaction_at(self, user_id: str) -> Optional[datetime]:
        stmt = select(func.max(Interaction.ts)).where(Interaction.user_id == user_id)
        with self.db_session() as session:
            ts = session.scalar(stmt)
        return as_utc(ts) if ts is not None else None

    # ------------------------------------------------------------------
    # Intake responses
    # ------------------------------------------------------------------

    def append_intake_response(
        self,
        user_id: str,
        category: str,
        field: str,
        raw_text: str,
        referral_tags: Sequence[str],
        severity: str,
    ) -> None:
        with self.db_session() as session:
            session.add(
                IntakeResponse(
                    user_id=user_id,
                    category=category,
                    field=field,
                    raw_text=raw_text,
                    referral_tags=list(referral_tags),
                    severity=severity,
                    ts=datetime.now(timezone.utc),
                )
            )

    def intake_responses(self, user_id: str) -> List[IntakeResponse]:
        stmt = (
            select(IntakeResponse)
            .where(IntakeResponse.user_id == user_id)
            .order_by(IntakeResponse.ts.asc(), IntakeResponse.id.asc())
        )
        with self.db_session() as session:
            rows = list(session.scalars(stmt))
            session.expunge_all()
        return rows

    # ------------------------------------------------------------------
    # Score contributions
    # ------------------------------------------------------------------

    def append_score_contribution(
        self,
        user_id: str,
        category: str,
        points: int,
        source: str,
        description: Optional[str] = None,
    ) -> int:
        """
        Returns the id of the new contribution. Ids are the ledger's order.
        """
        row = ScoreContribution(
            user_id=user_id,
            category=category,
            points=points,
            source=source,
            description=description,
            ts=datetime.now(timezone.utc),
        )
        with self.db_session() as session:
            session.add(row)
            session.flush()
            return row.id

    def score_total(self, user_id: str, through_id: Optional[int] = None) -> int:
        """
        Sum of the user's points, optionally only up to and including `through_id`.
        """
        stmt = select(func.coalesce(func.sum(ScoreContribution.points), 0)).where(
            ScoreContribution.user_id == user_id
        )
        if through_id is not None:
            stmt = stmt.where(ScoreContribution.id <= through_id)
        with self.db_session() as session:
            return int(session.scalar(stmt) or 0)

    def score_breakdown(self, user_id: str) -> List[Tuple[str, str, int]]:
        """
        (source, category, points) sums for the user, sorted by source then category.
        """
        stmt = (
            select(
                ScoreContribution.source,
                ScoreContribution.category,
                func.sum(ScoreContribution.points),
            )
            .where(ScoreContribution.user_id == user_id)
            .group_by(ScoreContribution.source, ScoreContribution.category)
            .order_by(ScoreContribution.source, ScoreContribution.category)
        )
        with self.db_session() as session:
            return [
                (source, category, int(points or 0))
                for source, category, points in session.execute(stmt)
            ]

    # ------------------------------------------------------------------
    # Reflections
    # ------------------------------------------------------------------

    def append_reflection(
        self,
        user_id: str,
        domain: str,
        reflection_text: str,
        tone: str,
        action_step: Optional[str],
        points_awarded: int,
    ) -> None:
        with self.db_session() as session:
            session.add(
                Reflection(
                    user_id=user_id,
                    domain=domain,
                    reflection_text=reflection_text,
                    tone=tone,
                    action_step=action_step,
                    points_awarded=points_awarded,
                    ts=datetime.now(timezone.utc),
                )
            )

    def reflections(self, user_id: str) -> List[Reflection]:
        stmt = (
            select(Reflection)
            .where(Reflection.user_id == user_id)
            .order_by(Reflection.ts.asc(), Reflection.id.asc())
        )
        with self.db_session() as session:
            rows = list(session.scalars(stmt))
            session.expunge_all()
        return rows

    # ------------------------------------------------------------------
    # Session rows
    # ------------------------------------------------------------------

    def load_session(self, user_id: str) -> Optional[SessionState]:
        with self.db_session() as session:
            row = session.get(IntakeSession, user_id)
            if row is None:
                return None
            return SessionState.from_dict(
                row.data, version=row.version, script_version=row.script_version
            )

    def save_session(
        self,
        user_id: str,
        state: SessionState,
        script_version: str,
        expected_version: int,
    ) -> int:
        """
        Write the session row only if nobody else has since `expected_version`.

        Returns the new version. Raises StaleSessionError when the check fails.
        """
        new_version = expected_version + 1
        data = state.to_dict()
        try:
            with self.db_session() as session:
                if expected_version == 0:
                    session.add(
                        IntakeSession(
                            user_id=user_id,
                            version=new_version,
                            script_version=script_version,
                            data=data,
                        )
                    )
                    session.flush()
                else:
                    result = session.execute(
                        update(IntakeSession)
                        .where(
                            IntakeSession.user_id == user_id,
                            IntakeSession.version == expected_version,
                        )
                        .values(
                            version=new_version,
                            script_version=script_version,
                            data=data,
                            updated_at=datetime.now(timezone.utc),
                        )
                    )
                    if result.rowcount != 1:
                        raise StaleSessionError(user_id, expected_version)
        except TransientStorageError as e:
            # A concurrent first insert loses on the primary key.
            if isinstance(e.__cause__, IntegrityError):
                raise StaleSessionError(user_id, expected_version) from e
            raise
        return new_version

    # ------------------------------------------------------------------
    # Dead letters
    # ------------------------------------------------------------------

    def append_dead_letter(
        self,
        user_id: str,
        event_type: str,
        priority: str,
        payload: dict,
        error: Optional[str],
        attempts: int,
    ) -> None:
        with self.db_session() as session:
            session.add(
                DeadLetter(
                    user_id=user_id,
                    event_type=event_type,
                    priority=priority,
                    payload=payload,
                    error=error,
                    attempts=attempts,
                    created_at=datetime.now(timezone.utc),
                )
            )

    def dead_letters(self, user_id: Optional[str] = None) -> List[DeadLetter]:
        stmt = select(DeadLetter).order_by(DeadLetter.id.asc())
        if user_id is not None:
            stmt = stmt.where(DeadLetter.user_id == user_id)
        with self.db_session() as session:
            rows = list(session.scalars(stmt))
            session.expunge_all()
        return rows
