"""Menu helpers: load menu.csv and resolve free-text item mentions.

`MenuStore.resolve` is the only way an order line gets a catalog item. It tries
three tiers in order (exact, substring, token overlap) and only accepts a tier
that produces exactly one candidate.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
import csv
import difflib
import re
import threading

from ..app.config import Config

_WORD = re.compile(r"[a-z0-9]+")
MIN_TOKEN_LENGTH = 3


@dataclass(frozen=True)
class MenuItem:
    name: str
    price: float
    category: str = ""
    description: str = ""


class MatchStatus(str, Enum):
    matched = "matched"
    ambiguous = "ambiguous"
    unmatched = "unmatched"


@dataclass
class MenuMatch:
    mention: str
    status: MatchStatus
    item: Optional[MenuItem] = None
    candidates: List[MenuItem] = field(default_factory=list)
    tier: Optional[str] = None


def _singular(token: str) -> str:
    if len(token) > 4 and token.endswith("es") and token[-3] in "sxz":
        return token[:-2]
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def normalize(text: str) -> str:
    """Lowercase, split on punctuation and drop plural endings."""
    return " ".join(_singular(t) for t in _WORD.findall((text or "").lower()))


def tokens(text: str) -> set:
    return {_singular(t) for t in _WORD.findall((text or "").lower()) if len(t) >= MIN_TOKEN_LENGTH}


class MenuStore:
    def __init__(self, menu_path: Optional[str] = None, items: Optional[List[MenuItem]] = None):
        self.menu_path = menu_path or Config.MENU_PATH
        self.items: List[MenuItem] = []
        if items is not None:
            self.items = list(items)
        else:
            self._load()
        self._positions: Dict[str, int] = {i.name.lower(): pos for pos, i in enumerate(self.items)}

    def _load(self):
        with open(self.menu_path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            for row in reader:
                name = (row.get("item") or row.get("name") or "").strip()
                if not name:
                    continue
                # normalize price to float (strip $ and commas)
                price_raw = (row.get("price") or "0").replace("$", "").replace(",", "")
                self.items.append(MenuItem(
                    name=name,
                    price=float(price_raw or 0),
                    category=(row.get("category") or "").strip(),
                    description=(row.get("description") or "").strip(),
                ))

    @property
    def item_names(self) -> List[str]:
        return [i.name for i in self.items]

    def list_all_items(self) -> List[MenuItem]:
        return list(self.items)

    def get(self, name: str) -> Optional[MenuItem]:
        pos = self._positions.get((name or "").strip().lower())
        return self.items[pos] if pos is not None else None

    def position(self, name: str) -> int:
        """Catalog position of an item; unknown names sort last."""
        return self._positions.get((name or "").strip().lower(), len(self.items))

    def get_items_by_category(self, category: str) -> List[MenuItem]:
        c = (category or "").strip().lower()
        return [i for i in self.items if i.category.lower() == c]

    def resolve(self, mention: str) -> MenuMatch:
        """
        Resolve a free-text mention to exactly one menu item.

        Args:
            mention: Item name as the customer phrased it

        Returns:
            MenuMatch with status matched, ambiguous or unmatched
        """
        q = normalize(mention)
        if not q:
            return MenuMatch(mention=mention, status=MatchStatus.unmatched)

        tiers = [
            ("exact", lambda item: normalize(item.name) == q),
            ("substring", lambda item: self._contains(normalize(item.name), q)),
            ("token", lambda item: bool(tokens(mention) & tokens(item.name))),
        ]
        for tier, predicate in tiers:
            candidates = [item for item in self.items if predicate(item)]
            if len(candidates) == 1:
                return MenuMatch(mention=mention, status=MatchStatus.matched,
                                 item=candidates[0], candidates=candidates, tier=tier)
            if len(candidates) > 1:
                return MenuMatch(mention=mention, status=MatchStatus.ambiguous,
                                 candidates=candidates, tier=tier)
        return MenuMatch(mention=mention, status=MatchStatus.unmatched)

    @staticmethod
    def _contains(name: str, query: str) -> bool:
        # word-boundary containment so "tea" does not match inside "steak"
        return f" {query} " in f" {name} " or f" {name} " in f" {query} "

    def suggest(self, mention: str, n: int = 3, cutoff: float = 0.5) -> List[str]:
        """Closest menu names for a 'did you mean' hint."""
        lowered = {i.name.lower(): i.name for i in self.items}
        matches = difflib.get_close_matches(normalize(mention), list(lowered), n=n, cutoff=cutoff)
        return [lowered[m] for m in matches]


# Provide a module-level singleton for convenience
_store: Optional[MenuStore] = None
_store_lock = threading.Lock()


def get_menu_store() -> MenuStore:
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = MenuStore()
    return _store
