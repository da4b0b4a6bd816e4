"""Hybrid re-ranking: cosine similarity, BM25 and heuristic keyword bonuses.

Ranking runs in two stages:
1. Cosine similarity against every chunk keeps the best ``max(take, 50)``
   candidates.
2. Each candidate is re-scored as ``0.55*cosine + 0.35*bm25 + 0.10*bonus``
   and the top ``take`` are returned.

Query expansion and the bonus heuristics are ordered rule tables so new rules
can be added without touching the scoring code.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from .index import Chunk, Index, tokenize

logger = logging.getLogger(__name__)

BM25_K1 = 1.5
BM25_B = 0.75

COSINE_WEIGHT = 0.55
BM25_WEIGHT = 0.35
BONUS_WEIGHT = 0.10

MAX_BONUS = 2.0
MIN_CANDIDATES = 50


@dataclass(frozen=True)
class ExpansionRule:
    """Adds ``terms`` to the query when any trigger is a substring of the lower-cased query."""

    triggers: tuple[str, ...]
    terms: tuple[str, ...]

    def applies(self, query_lower: str) -> bool:
        return any(trigger in query_lower for trigger in self.triggers)


QUERY_EXPANSION_RULES: tuple[ExpansionRule, ...] = (
    ExpansionRule(("incharge", "in charge"), ("responsible", "contact", "head")),
    ExpansionRule(
        ("admission", "admissions"),
        ("enrolment", "studierendensekretariat", "admissions", "admissions office"),
    ),
    ExpansionRule(("uniassist", "uni-assist", "uni assist"), ("uni-assist", "uni", "assist")),
    ExpansionRule(("aps",), ("akademische", "prüfstelle")),
    ExpansionRule(("deadline", "last date", "closing date"), ("application", "closing", "date")),
    ExpansionRule(("ects", "credit", "credits", "points"), ("ects", "credit", "module", "thesis")),
)


def expand_query_terms(query: str, rules: Sequence[ExpansionRule] = QUERY_EXPANSION_RULES) -> list[str]:
    """Tokenize the query and add the terms of every matching expansion rule.

    Returns:
        Distinct terms in first-seen order
    """
    terms = dict.fromkeys(tokenize(query))
    query_lower = query.lower()
    for rule in rules:
        if rule.applies(query_lower):
            terms.update(dict.fromkeys(rule.terms))
    return list(terms)


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity over the common prefix of two vectors.

    Empty or zero-norm vectors score exactly 0.0.
    """
    length = min(len(a), len(b))
    if length == 0:
        return 0.0
    va = np.asarray(a[:length], dtype=np.float64)
    vb = np.asarray(b[:length], dtype=np.float64)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def bm25_score(
    query_terms: Sequence[str],
    chunk: Chunk,
    document_frequency: dict[str, int],
    total_docs: int,
    avg_doc_length: float,
) -> float:
    """Okapi BM25 of one chunk for the given query terms.

    Terms absent from the chunk or the corpus contribute nothing. The IDF is
    ``ln(1 + (N - df + 0.5) / (df + 0.5))``, which is never negative.
    """
    if total_docs == 0 or avg_doc_length == 0:
        return 0.0

    length_norm = 1.0 - BM25_B + BM25_B * (chunk.token_length / avg_doc_length)
    score = 0.0
    for term in query_terms:
        tf = chunk.term_frequency.get(term, 0)
        if tf <= 0:
            continue
        df = document_frequency.get(term, 0)
        if df <= 0:
            continue
        idf = math.log(1.0 + (total_docs - df + 0.5) / (df + 0.5))
        score += idf * (tf * (BM25_K1 + 1.0)) / (tf + BM25_K1 * length_norm)
    return score


# ---------------------------------------------------------------------------
# Keyword bonus
# ---------------------------------------------------------------------------

_NAME_PATTERN = re.compile(r"[A-Z][a-z]+ [A-Z][a-z]+")
_ROOM_PATTERN = re.compile(r"room\s*\d+")
_SMALL_NUMBER = re.compile(r"\b\d{1,3}\b")


@dataclass(frozen=True)
class BonusContext:
    """Query and chunk views shared by all bonus rules."""

    query_lower: str
    text: str
    text_lower: str
    source_lower: str

    def mentions(self, phrase: str) -> bool:
        return phrase in self.text_lower or phrase in self.source_lower


@dataclass(frozen=True)
class BonusRule:
    name: str
    score: Callable[[BonusContext], float]


def _phrase_bonus(phrases: tuple[str, ...], weight: float) -> Callable[[BonusContext], float]:
    def score(ctx: BonusContext) -> float:
        return sum(weight for phrase in phrases if phrase in ctx.query_lower and ctx.mentions(phrase))

    return score


CURRICULUM_PHRASES = (
    "ects",
    "credit",
    "credits",
    "thesis",
    "module",
    "modules",
    "study plan",
    "curriculum",
    "program structure",
    "pflichtbereich",
    "wahlpflichtbereich",
)
ADMISSION_PHRASES = (
    "uni-assist",
    "uni assist",
    "aps",
    "application deadline",
    "admissions office",
    "studierendensekretariat",
)
DEGREE_TITLES = ("master of science", "master of arts", "master of laws", "english-taught")
CONTACT_TRIGGERS = ("who", "incharge", "in charge", "responsible", "contact")


def _degree_bonus(ctx: BonusContext) -> float:
    if not ("english" in ctx.query_lower or "program" in ctx.query_lower):
        return 0.0
    return 0.6 if any(title in ctx.text_lower for title in DEGREE_TITLES) else 0.0


def _contact_bonus(ctx: BonusContext) -> float:
    if not any(trigger in ctx.query_lower for trigger in CONTACT_TRIGGERS):
        return 0.0
    score = 0.0
    if _NAME_PATTERN.search(ctx.text):
        score += 0.5
    if "@" in ctx.text_lower or _ROOM_PATTERN.search(ctx.text_lower):
        score += 0.3
    return score


def _number_bonus(ctx: BonusContext) -> float:
    return sum(0.2 for number in _SMALL_NUMBER.findall(ctx.query_lower) if ctx.mentions(number))


BONUS_RULES: tuple[BonusRule, ...] = (
    BonusRule("curriculum", _phrase_bonus(CURRICULUM_PHRASES, 0.9)),
    BonusRule("admissions", _phrase_bonus(ADMISSION_PHRASES, 0.8)),
    BonusRule("degree", _degree_bonus),
    BonusRule("contact", _contact_bonus),
    BonusRule("numbers", _number_bonus),
)


def keyword_bonus(text: str, source_id: str, query: str, rules: Sequence[BonusRule] = BONUS_RULES) -> float:
    """Heuristic bonus for a chunk, capped at 2.0."""
    ctx = BonusContext(query_lower=query.lower(), text=text, text_lower=text.lower(), source_lower=source_id.lower())
    return min(sum(rule.score(ctx) for rule in rules), MAX_BONUS)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def rank(
    query: str,
    query_embedding: Sequence[float],
    index: Index,
    take: int,
    min_candidates: int = MIN_CANDIDATES,
) -> list[tuple[Chunk, float]]:
    """Rank the index's chunks for a query.

    Sorting is stable in both stages, so equal scores keep index order.

    Args:
        query: Question text (used for BM25 and bonuses)
        query_embedding: Embedding of the question
        index: Index to search
        take: Number of results to return
        min_candidates: Smallest cosine shortlist passed to the hybrid stage

    Returns:
        List of (chunk, combined score), best first
    """
    if take <= 0 or not index.chunks:
        return []

    preliminary = [(chunk, cosine(query_embedding, chunk.embedding)) for chunk in index.chunks]
    preliminary.sort(key=lambda pair: pair[1], reverse=True)
    candidates = preliminary[: max(take, min_candidates)]

    query_terms = expand_query_terms(query)
    logger.debug(f"[RAG] Expanded query terms: {query_terms}")

    scored = []
    for chunk, similarity in candidates:
        lexical = bm25_score(query_terms, chunk, index.document_frequency, index.total_docs, index.avg_doc_length)
        bonus = keyword_bonus(chunk.text, chunk.source_id, query)
        scored.append((chunk, COSINE_WEIGHT * similarity + BM25_WEIGHT * lexical + BONUS_WEIGHT * bonus))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:take]


def primary_source(ranked: Sequence[tuple[Chunk, float]]) -> str:
    """Source id of the best-ranked chunk, or "" when nothing was ranked."""
    return ranked[0][0].source_id if ranked else ""
