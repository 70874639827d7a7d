# backend/models/user.py

from sqlalchemy import Column, DateTime, Integer, String, func

from db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")  # user | admin
    full_name = Column(String)
    leetcode_username = Column(String, nullable=True)
    geeksforgeeks_username = Column(String, nullable=True)
    profile_photo = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
