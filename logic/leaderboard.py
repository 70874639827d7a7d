# backend/logic/leaderboard.py
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, desc, func
from sqlalchemy.orm import Session

from models.question import Question
from models.user import User
from models.user_progress import UserProgress

PERIODS = ("daily", "weekly", "all-time")
LEADERBOARD_SIZE = 50


def period_start(period: str, now: datetime = None):
    now = now or datetime.now(timezone.utc)
    if period == "daily":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "weekly":
        return now - timedelta(days=7)
    return None


def build_leaderboard(db: Session, period: str = "all-time", now: datetime = None, limit: int = LEADERBOARD_SIZE):
    """
    Rank users by solved questions. The period filter sits in the JOIN
    condition so users with nothing solved still appear with a zero count.
    """
    total_questions = db.query(func.count(Question.id)).scalar() or 0

    join_condition = and_(UserProgress.user_id == User.id, UserProgress.is_solved.is_(True))
    since = period_start(period, now)
    if since is not None:
        join_condition = and_(join_condition, UserProgress.solved_at >= since)

    solved_count = func.count(UserProgress.id).label("solved_count")
    rows = (
        db.query(User.id, User.username, User.full_name, solved_count)
        .outerjoin(UserProgress, join_condition)
        .filter(User.role == "user")
        .group_by(User.id, User.username, User.full_name)
        .order_by(desc("solved_count"), User.username.asc())
        .limit(limit)
        .all()
    )

    leaderboard = []
    for rank, row in enumerate(rows, start=1):
        success_rate = round(row.solved_count / total_questions * 100, 2) if total_questions else 0
        leaderboard.append({
            "id": row.id,
            "username": row.username,
            "full_name": row.full_name,
            "solved_count": row.solved_count,
            "rank": rank,
            "success_rate": success_rate,
        })
    return leaderboard
