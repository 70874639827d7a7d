# setup_db.py
import sys

from db import Base, engine
from models.bookmark import Bookmark
from models.question import Question
from models.user import User
from models.user_progress import UserProgress

if "--reset" in sys.argv:
    print("🗑️  Dropping tables...")
    Base.metadata.drop_all(bind=engine)
print("📦 Creating tables...")
Base.metadata.create_all(bind=engine)
print("✅ Done.")
