# backend/logic/normalizer.py
"""
Convert the JSON returned by the unofficial LeetCode / GFG mirrors into one
canonical shape: a list of solved items plus per-difficulty counts.

Every mirror answers differently, so the payload shape is detected first
(`detect_shape`) and then handed to exactly one extractor.
"""
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from logic.platform import GFG

_GFG_NUMERIC_SUFFIX = re.compile(r"-\d+$")

ACCEPTED_STATUSES = {"accepted", "ac"}
STATUS_FIELDS = ("statusDisplay", "status", "status_display")


class PayloadShape(str, Enum):
    GFG_SOLVED_STATS = "gfg_solved_stats"
    SOLVED_LIST = "solved_list"
    NESTED_DATA = "nested_data"
    RECENT_SUBMISSIONS = "recent_submissions"
    STATS_ONLY = "stats_only"


@dataclass(frozen=True)
class SolvedItem:
    title: Optional[str] = None
    slug: Optional[str] = None

    @property
    def key(self) -> Optional[str]:
        return self.slug or self.title

    def is_usable(self) -> bool:
        return bool(self.key)


@dataclass
class ProviderStats:
    easy: int = 0
    medium: int = 0
    hard: int = 0
    total: int = 0
    basic: int = 0

    def to_dict(self, include_basic: bool = False) -> Dict[str, int]:
        data = asdict(self)
        if not include_basic:
            data.pop("basic")
        return data


@dataclass
class NormalizedPayload:
    shape: PayloadShape
    solved_items: List[SolvedItem] = field(default_factory=list)
    stats: ProviderStats = field(default_factory=ProviderStats)

    @property
    def is_partial(self) -> bool:
        """Valid payload that carried counts but no enumerable solved list."""
        return not self.solved_items


# --------- Helpers ---------
def extract_gfg_problem_name(url: str) -> str:
    """
    `https://www.geeksforgeeks.org/problems/two-sum-1587115620/1` -> `two-sum`.
    Links without a `/problems/` segment come back unchanged.
    """
    if not url:
        return ""
    parts = url.split("/problems/", 1)
    if len(parts) < 2 or not parts[1]:
        return url
    base_name = parts[1].split("/")[0]
    return _GFG_NUMERIC_SUFFIX.sub("", base_name)


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _as_text(value) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    return None


def _count(value) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def _first_count(payload: dict, *keys) -> int:
    for key in keys:
        value = _count(payload.get(key))
        if value:
            return value
    return 0


def _is_accepted(submission: dict) -> bool:
    for status_field in STATUS_FIELDS:
        status = submission.get(status_field)
        if isinstance(status, str) and status.strip().lower() in ACCEPTED_STATUSES:
            return True
    return False


def _item_from_entry(entry) -> Optional[SolvedItem]:
    if isinstance(entry, str):
        return SolvedItem(title=_as_text(entry))
    if isinstance(entry, dict):
        title = _as_text(entry.get("title")) or _as_text(entry.get("name")) or _as_text(entry.get("question"))
        slug = _as_text(entry.get("titleSlug")) or _as_text(entry.get("slug")) or _as_text(entry.get("title_slug"))
        return SolvedItem(title=title, slug=slug)
    return None


def dedupe(items) -> List[SolvedItem]:
    """Drop entries without a title or slug and keep the first occurrence of each key."""
    seen = set()
    unique = []
    for item in items:
        if item is None or not item.is_usable():
            continue
        if item.key in seen:
            continue
        seen.add(item.key)
        unique.append(item)
    return unique


def _finalize_total(stats: ProviderStats, explicit_total: int, item_count: int) -> ProviderStats:
    computed = stats.basic + stats.easy + stats.medium + stats.hard
    stats.total = max(explicit_total, computed)
    if not stats.total:
        stats.total = item_count
    return stats


def _flat_stats(payload: dict) -> ProviderStats:
    return ProviderStats(
        easy=_first_count(payload, "easySolved", "easy"),
        medium=_first_count(payload, "mediumSolved", "medium"),
        hard=_first_count(payload, "hardSolved", "hard"),
    )


# --------- Shape detection ---------
def _solved_list_value(payload: dict):
    for key in ("solvedProblem", "solved", "problemsSolved"):
        if payload.get(key) is not None:
            return payload[key]
    return None


def detect_shape(provider: str, payload) -> PayloadShape:
    if not isinstance(payload, dict):
        return PayloadShape.STATS_ONLY
    if provider == GFG and isinstance(payload.get("solvedStats"), dict):
        return PayloadShape.GFG_SOLVED_STATS
    if _solved_list_value(payload) is not None:
        return PayloadShape.SOLVED_LIST
    if isinstance(payload.get("data"), dict):
        return PayloadShape.NESTED_DATA
    if isinstance(payload.get("recentSubmissions"), list):
        return PayloadShape.RECENT_SUBMISSIONS
    return PayloadShape.STATS_ONLY


# --------- Extractors ---------
def _from_gfg(payload: dict) -> NormalizedPayload:
    solved_stats = _as_dict(payload.get("solvedStats"))
    stats = ProviderStats()
    items = []
    for level in ("basic", "easy", "medium", "hard"):
        bucket = solved_stats.get(level)
        if not isinstance(bucket, dict):
            continue
        questions = _as_list(bucket.get("questions"))
        setattr(stats, level, _count(bucket.get("count")) or len(questions))
        for question in questions:
            if not isinstance(question, dict):
                continue
            url = _as_text(question.get("questionUrl")) or ""
            slug = extract_gfg_problem_name(url) if "/problems/" in url else None
            items.append(SolvedItem(title=_as_text(question.get("question")), slug=slug or None))
    items = dedupe(items)
    explicit = _count(payload.get("totalProblemsSolved")) or _count(_as_dict(payload.get("info")).get("totalProblemsSolved"))
    return NormalizedPayload(PayloadShape.GFG_SOLVED_STATS, items, _finalize_total(stats, explicit, len(items)))


def _from_solved_list(payload: dict) -> NormalizedPayload:
    value = _solved_list_value(payload)
    stats = _flat_stats(payload)
    explicit = _first_count(payload, "totalSolved", "total")
    if isinstance(value, list):
        items = dedupe(_item_from_entry(entry) for entry in value)
    else:
        # alfa-leetcode-api `/solved` reports a bare number here
        items = []
        explicit = max(explicit, _count(value))
    return NormalizedPayload(PayloadShape.SOLVED_LIST, items, _finalize_total(stats, explicit, len(items)))


def _from_nested(payload: dict) -> NormalizedPayload:
    data = _as_dict(payload.get("data"))
    submissions = _as_list(data.get("recentSubmissionList")) or _as_list(data.get("recentAcSubmissionList"))
    items = dedupe(
        _item_from_entry(sub) for sub in submissions if isinstance(sub, dict) and _is_accepted(sub)
    )

    stats = ProviderStats()
    explicit = 0
    submit_stats = _as_dict(data.get("submitStats")) or _as_dict(_as_dict(data.get("matchedUser")).get("submitStats"))
    for row in _as_list(submit_stats.get("acSubmissionNum")):
        if not isinstance(row, dict):
            continue
        difficulty = str(row.get("difficulty") or "").lower()
        count = _count(row.get("count"))
        if difficulty in ("easy", "medium", "hard"):
            setattr(stats, difficulty, count)
        elif difficulty == "all":
            explicit = count
    return NormalizedPayload(PayloadShape.NESTED_DATA, items, _finalize_total(stats, explicit, len(items)))


def _from_recent_submissions(payload: dict) -> NormalizedPayload:
    items = dedupe(
        _item_from_entry(sub)
        for sub in _as_list(payload.get("recentSubmissions"))
        if isinstance(sub, dict) and _is_accepted(sub)
    )
    stats = _flat_stats(payload)
    explicit = _first_count(payload, "totalSolved", "total")
    return NormalizedPayload(PayloadShape.RECENT_SUBMISSIONS, items, _finalize_total(stats, explicit, len(items)))


def _from_stats_only(payload) -> NormalizedPayload:
    payload = _as_dict(payload)
    stats = _flat_stats(payload)
    explicit = _first_count(payload, "totalSolved", "total")
    return NormalizedPayload(PayloadShape.STATS_ONLY, [], _finalize_total(stats, explicit, 0))


_EXTRACTORS = {
    PayloadShape.GFG_SOLVED_STATS: _from_gfg,
    PayloadShape.SOLVED_LIST: _from_solved_list,
    PayloadShape.NESTED_DATA: _from_nested,
    PayloadShape.RECENT_SUBMISSIONS: _from_recent_submissions,
    PayloadShape.STATS_ONLY: _from_stats_only,
}


def normalize(provider: str, payload) -> NormalizedPayload:
    """Fields of the wrong type are treated as absent."""
    return _EXTRACTORS[detect_shape(provider, payload)](payload)
