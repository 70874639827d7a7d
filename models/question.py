# backend/models/question.py

from sqlalchemy import Column, DateTime, Integer, String, func

from db import Base

QUESTION_TYPES = ("homework", "classwork")
DIFFICULTIES = ("easy", "medium", "hard")


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question_name = Column(String, nullable=False)
    question_link = Column(String, nullable=False)
    type = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
