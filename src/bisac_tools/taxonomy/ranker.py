"""
Heuristic ranking of candidate taxonomy entries for a book.

Scores are small integers built from substring matches against the book's
description and its loose (free-text) categories. This is best effort and
makes no claim of correctness.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from bisac_tools.data_models import CandidateEntry, ScoredCandidate
from bisac_tools.logger import get_logger

logger = get_logger(__name__)

LOOSE_CATEGORY_WEIGHT = 5
HEADING_IN_DESCRIPTION_WEIGHT = 2
SUB_LABEL_IN_DESCRIPTION_WEIGHT = 3
COMICS_BONUS = 8

COMICS_LABEL_MARKERS = ("comics", "graphic novel")
COMICS_TRIGGER_WORDS = ("comic", "marvel", "superhero", "graphic novel")


@dataclass(frozen=True)
class RankingSignals:
    """Weak evidence about a book taken from its metadata."""

    description: str = ""
    loose_categories: Sequence[str] = field(default_factory=tuple)


def _comics_triggered(description: str) -> bool:
    return any(word in description for word in COMICS_TRIGGER_WORDS)


def score_candidate(candidate: CandidateEntry, signals: RankingSignals) -> int:
    """Integer score of one candidate against the signals."""
    description = signals.description.lower()
    full_label = candidate.full_label.lower()
    heading = candidate.heading.lower()
    sub_label = candidate.sub_label.lower()

    score = 0
    for loose in signals.loose_categories:
        if full_label in loose.lower():
            score += LOOSE_CATEGORY_WEIGHT
    if heading and heading in description:
        score += HEADING_IN_DESCRIPTION_WEIGHT
    if sub_label and sub_label in description:
        score += SUB_LABEL_IN_DESCRIPTION_WEIGHT
    if _comics_triggered(description) and any(marker in full_label for marker in COMICS_LABEL_MARKERS):
        score += COMICS_BONUS
    return score


def score_candidates(candidates: Sequence[CandidateEntry], signals: RankingSignals) -> list[ScoredCandidate]:
    """Scored candidates sorted by descending score; ties keep input order."""
    scored = [ScoredCandidate(candidate=c, score=score_candidate(c, signals)) for c in candidates]
    # sorted() is stable
    return sorted(scored, key=lambda s: s.score, reverse=True)


def rank(candidates: Iterable[CandidateEntry], signals: RankingSignals) -> Optional[CandidateEntry]:
    """Best candidate, or None when there are none. A single candidate is returned unscored."""
    candidates = list(candidates)
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    scored = score_candidates(candidates, signals)
    for s in scored:
        logger.debug("score=%d %s %s", s.score, s.candidate.entry.code, s.candidate.full_label)
    best = scored[0]
    logger.info("Best match %s (%s) with score %d", best.candidate.entry.code, best.candidate.full_label, best.score)
    return best.candidate
