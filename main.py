#backend/main.py
import logging
import sys
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config import CORS_ORIGINS, SyncSettings
from db import SessionLocal
from logic.errors import SyncError
from logic.fetcher import UpstreamFetcher
from logic.leaderboard import build_leaderboard
from logic.progress import get_progress, upsert_progress, utcnow
from logic.sync import SyncCoordinator, outcome_to_dict
from models.bookmark import Bookmark
from models.question import Question
from models.user import User
from models.user_progress import UserProgress

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


# --------- App Setup ---------
app = FastAPI(title="Practice Progress API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SyncError)
def sync_error_handler(request: Request, exc: SyncError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# --------- Dependencies ---------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_sync_settings() -> SyncSettings:
    return SyncSettings.from_env()


def get_coordinator(db: Session = Depends(get_db), settings: SyncSettings = Depends(get_sync_settings)) -> SyncCoordinator:
    return SyncCoordinator(db, UpstreamFetcher(settings), settings)


# --------- Pydantic Models ---------
class QuestionInput(BaseModel):
    question_name: str = Field(..., min_length=1, examples=["Two Sum"])
    question_link: str = Field(..., min_length=1, examples=["https://leetcode.com/problems/two-sum/"])
    type: Literal["homework", "classwork"]
    difficulty: Literal["easy", "medium", "hard"]


class QuestionOutput(BaseModel):
    id: int
    question_name: str
    question_link: str
    type: str
    difficulty: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserProfileInput(BaseModel):
    full_name: Optional[str] = None
    leetcode_username: Optional[str] = Field(None, examples=["alice_codes"])
    geeksforgeeks_username: Optional[str] = None


class UserOutput(BaseModel):
    id: int
    username: str
    role: str
    full_name: Optional[str] = None
    leetcode_username: Optional[str] = None
    geeksforgeeks_username: Optional[str] = None
    profile_photo: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProgressInput(BaseModel):
    question_id: int
    is_solved: bool


class ProgressOutput(BaseModel):
    question_id: int
    is_solved: bool
    solved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


def _get_question_or_404(db: Session, question_id: int) -> Question:
    question = db.query(Question).filter_by(id=question_id).first()
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    return question


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter_by(id=user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# --------- Questions ---------
@app.post("/questions")
def submit_question(data: QuestionInput, db: Session = Depends(get_db)):
    question = Question(**data.model_dump())
    db.add(question)
    db.commit()
    db.refresh(question)
    logger.info("New question added with ID: %s", question.id)
    return {"success": True, "id": question.id, "message": "Question submitted successfully!"}


@app.get("/questions", response_model=List[QuestionOutput])
def list_questions(type: Optional[str] = None, difficulty: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Question)
    if type:
        query = query.filter(Question.type == type)
    if difficulty:
        query = query.filter(Question.difficulty == difficulty)
    return query.order_by(Question.created_at.desc(), Question.id.desc()).all()


@app.put("/questions/{question_id}")
def update_question(question_id: int, data: QuestionInput, db: Session = Depends(get_db)):
    question = _get_question_or_404(db, question_id)
    for key, value in data.model_dump().items():
        setattr(question, key, value)
    db.commit()
    return {"success": True, "message": "Question updated successfully!"}


@app.delete("/questions/{question_id}")
def delete_question(question_id: int, db: Session = Depends(get_db)):
    question = _get_question_or_404(db, question_id)
    db.delete(question)
    db.commit()
    return {"success": True, "message": "Question deleted successfully!"}


# --------- Users ---------
@app.get("/users/{user_id}", response_model=UserOutput)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return _get_user_or_404(db, user_id)


@app.put("/users/{user_id}")
def update_user(user_id: int, data: UserProfileInput, db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        # blank handles unbind the platform
        setattr(user, key, (value.strip() or None) if isinstance(value, str) else value)
    db.commit()
    db.refresh(user)
    logger.info("Profile updated for user %s", user.id)
    return {"success": True, "message": "Profile updated successfully!", "data": UserOutput.model_validate(user)}


@app.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    db.query(UserProgress).filter_by(user_id=user.id).delete(synchronize_session=False)
    db.query(Bookmark).filter_by(user_id=user.id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info("Deleted user %s with their progress and bookmarks", user_id)
    return {"success": True, "message": "User deleted successfully!"}


# --------- Progress ---------
@app.get("/users/{user_id}/progress", response_model=List[ProgressOutput])
def user_progress(user_id: int, db: Session = Depends(get_db)):
    return get_progress(db, user_id)


@app.post("/users/{user_id}/progress")
def update_user_progress(user_id: int, data: ProgressInput, db: Session = Depends(get_db)):
    _get_user_or_404(db, user_id)
    _get_question_or_404(db, data.question_id)
    record = upsert_progress(db, user_id, data.question_id, data.is_solved, utcnow() if data.is_solved else None)
    return {"success": True, "message": "Progress updated", "data": ProgressOutput.model_validate(record)}


# --------- Bookmarks ---------
@app.get("/users/{user_id}/bookmarks")
def user_bookmarks(user_id: int, db: Session = Depends(get_db)):
    bookmarks = db.query(Bookmark).filter_by(user_id=user_id).all()
    return {str(b.question_id): True for b in bookmarks}


@app.post("/users/{user_id}/bookmarks/{question_id}")
def toggle_bookmark(user_id: int, question_id: int, db: Session = Depends(get_db)):
    _get_user_or_404(db, user_id)
    _get_question_or_404(db, question_id)
    existing = db.query(Bookmark).filter_by(user_id=user_id, question_id=question_id).first()
    if existing:
        db.delete(existing)
        db.commit()
        return {"success": True, "action": "removed", "message": "Bookmark removed"}

    db.add(Bookmark(user_id=user_id, question_id=question_id))
    db.commit()
    return {"success": True, "action": "added", "message": "Bookmark added"}


# --------- Leaderboard ---------
@app.get("/leaderboard")
def leaderboard(period: Literal["daily", "weekly", "all-time"] = "all-time", db: Session = Depends(get_db)):
    return build_leaderboard(db, period)


# --------- Sync ---------
@app.get("/sync/readiness")
def sync_readiness(coordinator: SyncCoordinator = Depends(get_coordinator)):
    return {"success": True, "message": "Sync readiness computed", "stats": coordinator.readiness()}


@app.get("/sync/all/{user_id}")
def sync_all_providers(user_id: int, coordinator: SyncCoordinator = Depends(get_coordinator)):
    outcomes = coordinator.sync_all_providers(user_id)
    return {
        "success": True,
        "message": "Progress synchronization completed for all platforms",
        "results": {provider: outcome_to_dict(outcome) for provider, outcome in outcomes.items()},
    }


@app.get("/sync/{provider}/{user_id}")
def sync_provider(provider: str, user_id: int, coordinator: SyncCoordinator = Depends(get_coordinator)):
    return coordinator.sync_provider(user_id, provider).to_dict()


@app.post("/sync/all-users")
def sync_all_users(coordinator: SyncCoordinator = Depends(get_coordinator)):
    results = coordinator.sync_all_users()
    return {"success": True, "message": "Bulk sync completed for all users", "results": results}
