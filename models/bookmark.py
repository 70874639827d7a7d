# backend/models/bookmark.py

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint, func

from db import Base


class Bookmark(Base):
    __tablename__ = "user_bookmarks"
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="uq_user_bookmarks_user_question"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    bookmarked_at = Column(DateTime(timezone=True), server_default=func.now())
