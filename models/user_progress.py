# backend/models/user_progress.py

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, UniqueConstraint

from db import Base


class UserProgress(Base):
    __tablename__ = "user_progress"
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="uq_user_progress_user_question"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    is_solved = Column(Boolean, nullable=False, default=False)
    solved_at = Column(DateTime(timezone=True), nullable=True)
