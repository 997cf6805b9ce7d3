"""Precomputed recommendation tables: association rules and popularity.

Both tables are produced offline and loaded once. Ranking is deterministic:
score descending, then menu-catalog position, then name.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional
import csv
import json
import os
import threading

from ..app.config import Config
from ..utils.logger import get_logger

logger = get_logger()


@dataclass(frozen=True)
class RecommendationEntry:
    item: str
    score: float
    category: str = ""


class RecommendationStore:
    def __init__(self, apriori_path: Optional[str] = None, popularity_path: Optional[str] = None,
                 rules: Optional[Dict[str, List[RecommendationEntry]]] = None,
                 popularity: Optional[List[RecommendationEntry]] = None,
                 position: Optional[Callable[[str], int]] = None):
        self.apriori_path = apriori_path or Config.APRIORI_PATH
        self.popularity_path = popularity_path or Config.POPULARITY_PATH
        self.rules: Dict[str, List[RecommendationEntry]] = rules if rules is not None else self._load_rules()
        self.popularity: List[RecommendationEntry] = (
            popularity if popularity is not None else self._load_popularity()
        )
        # item name -> catalog position, used as the tie-break
        self.position = position or (lambda name: 0)

    def _load_rules(self) -> Dict[str, List[RecommendationEntry]]:
        if not os.path.exists(self.apriori_path):
            logger.warning(f"[RECOMMEND] No association table at {self.apriori_path}")
            return {}
        with open(self.apriori_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        rules = {}
        for antecedent, consequents in raw.items():
            rules[antecedent.lower()] = [
                RecommendationEntry(
                    item=c["product"],
                    score=float(c.get("confidence", 0)),
                    category=c.get("product_category", ""),
                )
                for c in consequents
            ]
        logger.info(f"[RECOMMEND] Loaded association rules for {len(rules)} items")
        return rules

    def _load_popularity(self) -> List[RecommendationEntry]:
        if not os.path.exists(self.popularity_path):
            logger.warning(f"[RECOMMEND] No popularity table at {self.popularity_path}")
            return []
        entries = []
        with open(self.popularity_path, newline="", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                entries.append(RecommendationEntry(
                    item=row["product"].strip(),
                    score=float(row.get("number_of_transactions") or 0),
                    category=(row.get("product_category") or "").strip(),
                ))
        logger.info(f"[RECOMMEND] Loaded popularity table with {len(entries)} items")
        return entries

    def _rank(self, entries: Iterable[RecommendationEntry]) -> List[RecommendationEntry]:
        return sorted(entries, key=lambda e: (-e.score, self.position(e.item), e.item.lower()))

    @staticmethod
    def _take(ranked: List[RecommendationEntry], top_n: int, exclude: set,
              max_per_category: Optional[int] = None) -> List[RecommendationEntry]:
        picked = []
        per_category: Dict[str, int] = {}
        for entry in ranked:
            if entry.item.lower() in exclude:
                continue
            key = entry.category.lower()
            if max_per_category and per_category.get(key, 0) >= max_per_category:
                continue
            per_category[key] = per_category.get(key, 0) + 1
            picked.append(entry)
            if len(picked) >= top_n:
                break
        return picked

    def apriori(self, items: List[str], top_n: int = None,
                max_per_category: int = None) -> List[RecommendationEntry]:
        """
        Items frequently bought together with the given items.

        Args:
            items: Item names currently in the order
            top_n: Maximum number of suggestions
            max_per_category: Cap on suggestions from one category

        Returns:
            Ranked suggestions, excluding the input items
        """
        top_n = top_n or Config.RECOMMENDATION_TOP_N
        max_per_category = max_per_category or Config.RECOMMENDATION_MAX_PER_CATEGORY
        best: Dict[str, RecommendationEntry] = {}
        for name in items:
            for entry in self.rules.get(name.lower(), []):
                key = entry.item.lower()
                if key not in best or entry.score > best[key].score:
                    best[key] = entry
        exclude = {name.lower() for name in items}
        return self._take(self._rank(best.values()), top_n, exclude, max_per_category)

    def popular(self, category: Optional[str] = None, top_n: int = None,
                exclude: Optional[Iterable[str]] = None) -> List[RecommendationEntry]:
        """Best sellers, optionally within one category."""
        top_n = top_n or Config.RECOMMENDATION_TOP_N
        entries = self.popularity
        if category:
            wanted = category.strip().lower()
            entries = [e for e in entries if e.category.lower() == wanted]
        excluded = {name.lower() for name in (exclude or [])}
        return self._take(self._rank(entries), top_n, excluded)

    def categories(self) -> List[str]:
        seen = []
        for entry in self.popularity:
            if entry.category and entry.category not in seen:
                seen.append(entry.category)
        return seen


_store: Optional[RecommendationStore] = None
_store_lock = threading.Lock()


def get_recommendation_store() -> RecommendationStore:
    global _store
    if _store is None:
        from .menu_store import get_menu_store

        position = get_menu_store().position
        with _store_lock:
            if _store is None:
                _store = RecommendationStore(position=position)
    return _store
