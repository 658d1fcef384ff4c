"""
Query normalization for the fuzzy response cache.

Turns a raw question into a canonical, order-independent token set so
that paraphrases ("how do I create a dashboard" / "creating dashboards")
collapse onto the same or a similar fingerprint.  Also derives the
fixed-width cache key and the Jaccard similarity used by fuzzy lookup.
"""

import hashlib
import logging
import re
import unicodedata
from functools import lru_cache
from typing import AbstractSet, Any, Dict, Iterable, List, Optional, Set

from nltk.stem.porter import PorterStemmer

logger = logging.getLogger(__name__)

# Pronouns, auxiliaries, articles/prepositions, question words and fillers.
STOP_WORDS = frozenset({
    # articles, conjunctions, prepositions
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if",
    "in", "into", "is", "it", "no", "not", "of", "on", "or", "such", "that",
    "the", "their", "then", "there", "these", "this", "to", "was", "were",
    "with", "from", "about", "so", "than",
    # pronouns
    "i", "me", "my", "mine", "you", "your", "yours", "we", "us", "our",
    "ours", "he", "she", "him", "her", "his", "its", "they", "them", "those",
    # auxiliary and modal verbs
    "am", "been", "being", "do", "does", "did", "doing", "done", "have",
    "has", "had", "having", "can", "could", "would", "should", "will",
    "shall", "may", "might", "must",
    # question words
    "how", "what", "whats", "which", "who", "whom", "whose", "when", "where",
    "why",
    # fillers
    "want", "need", "like", "please", "help", "let", "lets", "just",
    "really", "very", "also", "some", "any", "thing", "things", "way",
    "know", "understand", "learn", "tell", "explain", "describe", "overview",
    "wondering",
})

# Each group maps every variant onto its first member.
SYNONYM_GROUPS: List[List[str]] = [
    ["chart", "graph", "visualization", "visualisation", "viz", "visual", "plot"],
    ["dashboard", "dash", "board", "panel"],
    ["query", "queries", "sql", "search"],
    ["datasource", "datasources", "connection", "database", "db", "source"],
    ["widget", "widgets", "component", "tile", "element"],
    ["report", "reports", "reporting"],
    ["alert", "alerts", "notification", "notifications"],
    ["filter", "filters", "filtering", "criteria"],
    ["user", "users", "account", "accounts", "member"],
    ["permission", "permissions", "access", "role", "roles", "privilege"],
    ["analytics", "analysis", "insights", "bi", "intelligence"],
    ["selfservice", "adhoc", "explore", "exploration", "selfserve"],
    ["create", "add", "make", "build"],
    ["delete", "remove", "drop", "clear"],
    ["edit", "update", "modify", "change", "alter"],
    ["configure", "setup", "config", "settings", "set"],
    ["connect", "link", "integrate", "join"],
    ["show", "display", "give", "provide", "list"],
    ["run", "execute", "perform"],
]

_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)
_MAX_REDUCTION_PASSES = 4

_stemmer = PorterStemmer()


@lru_cache(maxsize=8192)
def _stem(word: str) -> str:
    return _stemmer.stem(word)


def _fold_ascii(token: str) -> str:
    """café -> cafe, naïve -> naive; characters with no ASCII form are dropped."""
    decomposed = unicodedata.normalize("NFKD", token)
    return decomposed.encode("ascii", "ignore").decode("ascii")


class QueryNormalizer:
    """Tokenize, canonicalize and compare natural-language queries.

    Pipeline applied by :meth:`tokenize`: split on non-alphanumeric
    boundaries, lowercase, fold accents to ASCII, drop stop words,
    replace synonyms by their group's canonical word, Porter-stem, and
    drop one-character tokens.  Each token is reduced until it stops
    changing so that normalizing an already normalized string is a
    no-op.

    Args:
        stop_words: Override the default stop-word list.
        synonym_groups: Override the default synonym table.
    """

    def __init__(
        self,
        stop_words: Optional[Iterable[str]] = None,
        synonym_groups: Optional[List[List[str]]] = None,
    ) -> None:
        self._stop_words = frozenset(stop_words) if stop_words is not None else STOP_WORDS
        self._synonyms: Dict[str, str] = {}
        self._stemmed_synonyms: Dict[str, str] = {}
        self._build_synonym_maps(synonym_groups if synonym_groups is not None else SYNONYM_GROUPS)
        logger.info(
            "QueryNormalizer initialized",
            extra={
                "stop_words": len(self._stop_words),
                "synonyms": len(self._synonyms),
            },
        )

    def _build_synonym_maps(self, groups: List[List[str]]) -> None:
        # Canonical members win over variants that happen to share a stem.
        for group in groups:
            if not group:
                continue
            canonical = group[0].lower()
            self._synonyms[canonical] = canonical
            self._stemmed_synonyms[_stem(canonical)] = canonical
        for group in groups:
            if len(group) < 2:
                continue
            canonical = group[0].lower()
            for variant in group[1:]:
                variant = variant.lower()
                self._synonyms.setdefault(variant, canonical)
                self._stemmed_synonyms.setdefault(_stem(variant), canonical)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(self, text: str) -> str:
        """Return the canonical string: sorted unique tokens joined by a space."""
        if not text or not text.strip():
            return ""
        return " ".join(sorted(self.tokenize(text)))

    def tokenize(self, text: str) -> Set[str]:
        """Return the normalized token set of *text* (empty for blank input)."""
        if not text or not text.strip():
            return set()
        try:
            return self._analyze(text)
        except Exception as exc:
            logger.warning(
                "Query analysis failed, using whitespace fallback",
                extra={"error": str(exc), "query_prefix": text[:40]},
            )
            return self._fallback_tokens(text)

    def generate_cache_key(self, canonical: str) -> str:
        """Hex-encoded MD5 digest of a canonical string (32 characters)."""
        return hashlib.md5(canonical.encode("utf-8")).hexdigest()

    @staticmethod
    def jaccard_similarity(set_a: AbstractSet[str], set_b: AbstractSet[str]) -> float:
        """J(A, B) = |A & B| / |A | B|, or 0.0 when either set is empty."""
        if not set_a or not set_b:
            return 0.0
        return len(set_a & set_b) / len(set_a | set_b)

    def calculate_similarity(self, query1: str, query2: str) -> float:
        """Jaccard similarity of two raw queries after normalization."""
        return self.jaccard_similarity(self.tokenize(query1), self.tokenize(query2))

    def is_similar(self, query1: str, query2: str, threshold: float) -> bool:
        return self.calculate_similarity(query1, query2) >= threshold

    def get_tokens_for_debug(self, query: str) -> List[str]:
        return sorted(self.tokenize(query))

    def compare_queries(
        self, query1: str, query2: str, threshold: float
    ) -> Dict[str, Any]:
        """Explain how two queries normalize and whether they would share a cache entry.

        Args:
            query1: First raw query.
            query2: Second raw query.
            threshold: Similarity threshold the cache is running with.

        Returns:
            Dict with a block per query (original, normalized, tokens,
            cache key), the similarity and threshold as percentages, and
            the ``would_match_cache`` / ``same_exact_key`` verdicts.
        """
        result: Dict[str, Any] = {}
        keys = []
        for label, query in (("query1", query1), ("query2", query2)):
            normalized = self.normalize(query)
            cache_key = self.generate_cache_key(normalized)
            keys.append(cache_key)
            result[label] = {
                "original": query,
                "normalized": normalized,
                "tokens": self.get_tokens_for_debug(query),
                "cache_key": cache_key,
            }

        similarity = self.calculate_similarity(query1, query2)
        result["similarity"] = f"{similarity * 100:.2f}%"
        result["threshold"] = f"{threshold * 100:.2f}%"
        result["would_match_cache"] = similarity >= threshold
        result["same_exact_key"] = keys[0] == keys[1]
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _analyze(self, text: str) -> Set[str]:
        tokens: Set[str] = set()
        for raw in _TOKEN_RE.findall(text):
            token = _fold_ascii(raw.lower())
            if not token or token in self._stop_words:
                continue
            token = self._reduce(token)
            if len(token) <= 1 or token in self._stop_words:
                continue
            tokens.add(token)
        return tokens

    def _reduce(self, token: str) -> str:
        """Apply synonym replacement then stemming until the token is stable."""
        current = token
        for _ in range(_MAX_REDUCTION_PASSES):
            canonical = (
                self._synonyms.get(current)
                or self._stemmed_synonyms.get(_stem(current))
                or current
            )
            reduced = _stem(canonical)
            if reduced == current:
                break
            current = reduced
        return current

    def _fallback_tokens(self, text: str) -> Set[str]:
        return {
            word
            for word in text.lower().split()
            if len(word) > 1 and word not in self._stop_words
        }
