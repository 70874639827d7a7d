# backend/logic/progress.py
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from logic.errors import StorageWriteFailure
from models.user_progress import UserProgress

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def upsert_progress(db: Session, user_id: int, question_id: int, is_solved: bool, solved_at: datetime = None) -> UserProgress:
    """
    Insert or overwrite the single progress row for (user_id, question_id).

    Solved rows default `solved_at` to now; unsolved rows always clear it.
    """
    if is_solved and solved_at is None:
        solved_at = utcnow()
    if not is_solved:
        solved_at = None

    try:
        record = db.query(UserProgress).filter_by(user_id=user_id, question_id=question_id).first()
        if record:
            record.is_solved = is_solved
            record.solved_at = solved_at
        else:
            record = UserProgress(
                user_id=user_id,
                question_id=question_id,
                is_solved=is_solved,
                solved_at=solved_at,
            )
            db.add(record)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Error updating user progress (user=%s, question=%s): %s", user_id, question_id, e)
        raise StorageWriteFailure(user_id, question_id, e) from e

    return record


def get_progress(db: Session, user_id: int):
    return db.query(UserProgress).filter_by(user_id=user_id).order_by(UserProgress.question_id).all()
