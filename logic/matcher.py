# backend/logic/matcher.py
"""
Fuzzy reconciliation between upstream solved items and the local catalog.

There is no ID shared with the judges, so a question counts as solved when any
solved item agrees with it on any of five loose predicates:

    (a) slug equality
    (b) the question's slug appears inside the item's normalized title
    (c) normalized titles are equal
    (d) the item's title contains the question's title
    (e) the question's title contains the item's title

The policy prefers false positives over a solved problem silently staying
unsolved. It is a heuristic, not a correctness guarantee.
"""
import logging
import re
from typing import Iterable, List, Optional

from logic.normalizer import SolvedItem, extract_gfg_problem_name
from logic.platform import GFG, identify_platform

logger = logging.getLogger(__name__)

_LEETCODE_SLUG = re.compile(r"/problems/([^/?#]+)/?")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_title(title) -> str:
    if not title:
        return ""
    return _NON_ALNUM.sub("-", str(title).lower()).strip("-")


def extract_leetcode_slug(url) -> Optional[str]:
    if not url:
        return None
    match = _LEETCODE_SLUG.search(url)
    return match.group(1) if match else None


def question_slug(question) -> Optional[str]:
    link = question.question_link or ""
    if identify_platform(link) == GFG:
        return extract_gfg_problem_name(link) if "/problems/" in link else None
    return extract_leetcode_slug(link)


def _item_matches(db_slug: Optional[str], db_title: str, item: SolvedItem) -> bool:
    item_title = normalize_title(item.title or item.slug)

    if db_slug and item.slug and db_slug == item.slug:
        return True
    if db_slug and item_title and db_slug in item_title:
        return True
    if not db_title or not item_title:
        return False
    return db_title == item_title or db_title in item_title or item_title in db_title


def usable_items(items: Iterable[SolvedItem]) -> List[SolvedItem]:
    return [item for item in items if item is not None and item.is_usable()]


def match_solved(solved_items: Iterable[SolvedItem], questions: Iterable, provider: str = None) -> list:
    """
    Return the questions (in catalog order) matched by at least one solved item.
    When `provider` is given, questions from other platforms are ignored.
    """
    items = list(solved_items)
    usable = usable_items(items)
    skipped = len(items) - len(usable)
    if skipped:
        logger.info("Skipping %d solved item(s) with neither title nor slug", skipped)

    matched = []
    for question in questions:
        if provider and identify_platform(question.question_link) != provider:
            continue
        db_slug = question_slug(question)
        db_title = normalize_title(question.question_name)
        for item in usable:
            if _item_matches(db_slug, db_title, item):
                logger.debug("Matched: %s <-> %s", question.question_name, item.title or item.slug)
                matched.append(question)
                break
    return matched
