# backend/logic/sync.py
"""
Per-user / per-provider synchronization of solved questions.

    Idle -> Fetching -> Normalizing -> Matching -> Upserting -> Done
                -> Failed (identity missing or every upstream attempt exhausted)

Network fetches for independent providers and users run on a small thread
pool. The database session is only ever used from the calling thread, after
the fetches have joined.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import SyncSettings
from logic.errors import (
    MissingExternalIdentity,
    StorageWriteFailure,
    SyncError,
    UnsupportedProvider,
    UserNotFound,
)
from logic.fetcher import FetchResult, UpstreamFetcher
from logic.matcher import match_solved
from logic.normalizer import PayloadShape, ProviderStats, normalize
from logic.platform import GFG, LEETCODE, SYNC_PROVIDERS, display_name, identify_platform
from logic.progress import upsert_progress, utcnow
from models.question import Question
from models.user import User

logger = logging.getLogger(__name__)

USERNAME_FIELDS = {
    LEETCODE: "leetcode_username",
    GFG: "geeksforgeeks_username",
}

PARTIAL_LIMITATION = "APIs only provide recent submissions, not complete solved problems list"


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    MATCHING = "matching"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncResult:
    provider: str
    total_provider_questions: int
    solved_questions: int
    updated_questions: int
    api_stats: ProviderStats
    shape: Optional[PayloadShape] = None
    limitation: Optional[str] = None
    failed_writes: int = 0
    state: SyncState = SyncState.DONE

    success = True

    @property
    def message(self) -> str:
        name = display_name(self.provider)
        if self.limitation:
            stats = self.api_stats
            return (
                f"{name} sync completed with limitations. The API shows you have solved {stats.total} problems "
                f"({stats.easy} easy, {stats.medium} medium, {stats.hard} hard), but the available APIs only "
                f"provide recent submissions or aggregate counts, not your complete solved problems list."
            )
        return f"{name} progress synchronized. Updated {self.updated_questions} questions."

    def to_dict(self) -> dict:
        stats = {
            f"total{display_name(self.provider)}Questions": self.total_provider_questions,
            "solvedQuestions": self.solved_questions,
            "updatedQuestions": self.updated_questions,
            "apiStats": self.api_stats.to_dict(include_basic=self.provider == GFG),
        }
        if self.limitation:
            stats["limitation"] = self.limitation
        return {"success": True, "message": self.message, "stats": stats}


ProviderOutcome = Union[SyncResult, SyncError]


def outcome_to_dict(outcome: Optional[ProviderOutcome]) -> Optional[dict]:
    if outcome is None:
        return None
    return outcome.to_dict()


class SyncCoordinator:
    def __init__(
        self,
        db: Session,
        fetcher: UpstreamFetcher = None,
        settings: SyncSettings = None,
        sleep: Callable[[float], None] = time.sleep,
        providers=SYNC_PROVIDERS,
    ):
        self.db = db
        self.settings = settings or SyncSettings.from_env()
        self.fetcher = fetcher or UpstreamFetcher(self.settings)
        self.sleep = sleep
        self.providers = tuple(providers)

    # --------- Lookups ---------
    def _load_user(self, user_id: int) -> User:
        user = self.db.query(User).filter_by(id=user_id).first()
        if user is None:
            raise UserNotFound(user_id)
        return user

    def _external_username(self, user: User, provider: str) -> str:
        if provider not in USERNAME_FIELDS:
            raise UnsupportedProvider(provider)
        username = (getattr(user, USERNAME_FIELDS[provider]) or "").strip()
        if not username:
            raise MissingExternalIdentity(provider, display_name(provider))
        return username

    def _catalog(self, provider: str) -> List[Question]:
        questions = self.db.query(Question).order_by(Question.id).all()
        return [q for q in questions if identify_platform(q.question_link) == provider]

    def _transition(self, user: User, provider: str, state: SyncState):
        logger.debug("sync user=%s provider=%s -> %s", user.id, provider, state.value)

    # --------- Pipeline ---------
    def _fetch_many(self, jobs: Dict[Tuple[int, str], Tuple[str, str]]) -> Dict[Tuple[int, str], Union[FetchResult, SyncError]]:
        """Fetch every (provider, username) job concurrently and join on all of them."""
        if not jobs:
            return {}
        results = {}
        workers = min(len(jobs), self.settings.batch_size * max(len(self.providers), 1))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sync-fetch") as pool:
            futures = {key: pool.submit(self.fetcher.fetch, provider, username) for key, (provider, username) in jobs.items()}
            for key, future in futures.items():
                try:
                    results[key] = future.result()
                except SyncError as e:
                    logger.error("Fetching %s data for user %s failed: %s", display_name(key[1]), key[0], e.to_dict())
                    results[key] = e
                except Exception as e:
                    logger.exception("Unexpected error fetching %s data for user %s", display_name(key[1]), key[0])
                    results[key] = SyncError(f"Failed to fetch {display_name(key[1])} data: {e}")
        return results

    def _apply(self, user: User, provider: str, fetched: FetchResult) -> SyncResult:
        self._transition(user, provider, SyncState.NORMALIZING)
        normalized = normalize(provider, fetched.payload)
        catalog = self._catalog(provider)
        logger.info(
            "%s stats for user %s: %s (%d solved items, shape=%s)",
            display_name(provider), user.id, normalized.stats.to_dict(True),
            len(normalized.solved_items), normalized.shape.value,
        )

        if normalized.is_partial:
            self._transition(user, provider, SyncState.DONE)
            return SyncResult(
                provider=provider,
                total_provider_questions=len(catalog),
                solved_questions=0,
                updated_questions=0,
                api_stats=normalized.stats,
                shape=normalized.shape,
                limitation=PARTIAL_LIMITATION,
            )

        self._transition(user, provider, SyncState.MATCHING)
        matched = match_solved(normalized.solved_items, catalog)
        logger.info("Found %d solved %s questions for user %s", len(matched), display_name(provider), user.id)

        self._transition(user, provider, SyncState.UPSERTING)
        solved_at = utcnow()
        updated = failed = 0
        for question in matched:
            try:
                upsert_progress(self.db, user.id, question.id, True, solved_at)
            except StorageWriteFailure as e:
                failed += 1
                logger.warning("Skipping question %s: %s", question.id, e)
                continue
            updated += 1

        self._transition(user, provider, SyncState.DONE)
        return SyncResult(
            provider=provider,
            total_provider_questions=len(catalog),
            solved_questions=len(matched),
            updated_questions=updated,
            api_stats=normalized.stats,
            shape=normalized.shape,
            failed_writes=failed,
        )

    def _sync_users(self, users: List[User], report_missing: bool):
        """
        Run every bound provider for every user in `users`.
        Returns ({user_id: {provider: outcome}}, fetched results keyed by (user_id, provider)).
        """
        missing = {}
        jobs = {}
        for user in users:
            for provider in self.providers:
                try:
                    jobs[(user.id, provider)] = (provider, self._external_username(user, provider))
                except MissingExternalIdentity as e:
                    if report_missing:
                        missing[(user.id, provider)] = e
                    continue
                self._transition(user, provider, SyncState.FETCHING)

        fetched = self._fetch_many(jobs)

        outcomes = {}
        for user in users:
            per_provider = {}
            for provider in self.providers:
                key = (user.id, provider)
                if key in missing:
                    per_provider[provider] = missing[key]
                elif key in fetched:
                    per_provider[provider] = self._apply_safely(user, provider, fetched[key])
            outcomes[user.id] = per_provider
        return outcomes, fetched

    def _apply_safely(self, user: User, provider: str, fetched) -> ProviderOutcome:
        if isinstance(fetched, SyncError):
            self._transition(user, provider, SyncState.FAILED)
            return fetched
        try:
            return self._apply(user, provider, fetched)
        except Exception as e:
            if isinstance(e, SQLAlchemyError):
                self.db.rollback()
            logger.exception("Error synchronizing %s progress for user %s", display_name(provider), user.id)
            self._transition(user, provider, SyncState.FAILED)
            return SyncError(f"Failed to synchronize {display_name(provider)} progress: {e}")

    # --------- Public operations ---------
    def sync_provider(self, user_id: int, provider: str) -> SyncResult:
        """Sync one provider for one user. Raises SyncError subclasses on failure."""
        if provider not in self.providers:
            raise UnsupportedProvider(provider)
        user = self._load_user(user_id)
        username = self._external_username(user, provider)

        self._transition(user, provider, SyncState.FETCHING)
        try:
            fetched = self.fetcher.fetch(provider, username)
        except SyncError:
            self._transition(user, provider, SyncState.FAILED)
            raise
        return self._apply(user, provider, fetched)

    def sync_all_providers(self, user_id: int) -> Dict[str, ProviderOutcome]:
        user = self._load_user(user_id)
        outcomes, _ = self._sync_users([user], report_missing=True)
        return outcomes[user.id]

    def sync_all_users(self) -> dict:
        users = self.db.query(User).filter_by(role="user").order_by(User.id).all()
        report = {"success": [], "failed": [], "total": len(users), "profiles_updated": 0}
        batch_size = self.settings.batch_size

        for start in range(0, len(users), batch_size):
            if start:
                logger.info("Waiting %.1fs before next batch", self.settings.inter_batch_delay)
                self.sleep(self.settings.inter_batch_delay)

            batch = users[start:start + batch_size]
            logger.info("Syncing users %d-%d of %d", start + 1, start + len(batch), len(users))
            outcomes, fetched = self._sync_users(batch, report_missing=False)

            for user in batch:
                per_provider = outcomes[user.id]
                photo = self._update_profile_photo(user, fetched.get((user.id, GFG)))
                if photo:
                    report["profiles_updated"] += 1

                entry = {"id": user.id, "username": user.username, "profile_photo": photo}
                for provider in self.providers:
                    entry[provider] = outcome_to_dict(per_provider.get(provider))

                if any(isinstance(outcome, SyncResult) for outcome in per_provider.values()):
                    report["success"].append(entry)
                else:
                    report["failed"].append(entry)

        return report

    def _update_profile_photo(self, user: User, fetched) -> Optional[str]:
        if not isinstance(fetched, FetchResult):
            return None
        info = fetched.payload.get("info")
        photo = info.get("profilePicture") if isinstance(info, dict) else None
        if not photo:
            return None
        try:
            user.profile_photo = photo
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Failed to update profile photo for %s: %s", user.username, e)
            return None
        return photo

    def readiness(self) -> dict:
        """How many users could be synced, per platform binding."""
        users = self.db.query(User).filter_by(role="user").all()
        breakdown = {
            provider: sum(1 for u in users if (getattr(u, field_name) or "").strip())
            for provider, field_name in USERNAME_FIELDS.items()
        }
        with_platforms = sum(
            1 for u in users if any((getattr(u, f) or "").strip() for f in USERNAME_FIELDS.values())
        )
        return {
            "total_users": len(users),
            "users_with_platforms": with_platforms,
            "platform_breakdown": breakdown,
        }
