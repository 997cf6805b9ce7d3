"""Deterministic phrase detectors used alongside the model.

These never call the model. Order completion and checkout confirmation are
decided here so that one bad model reply cannot finalize a purchase.
"""
import re
from typing import List

COMPLETION = [
    "that will be all", "that'll be all", "that's all", "thats all", "that is all",
    "all done", "i'm done", "im done", "nothing else", "finish order", "finish my order",
    "complete order", "complete my order", "place order", "place my order",
    "checkout", "check out", "proceed to checkout", "confirm order", "finalize order",
    "submit order", "buy now", "order now",
]
CONFIRMATION = [
    "yes", "yep", "yeah", "confirm", "confirmed", "place order", "place the order",
    "place my order", "that's correct", "that is correct", "sounds good", "looks good",
    "proceed", "go ahead", "finalize", "complete order", "submit order", "place it",
    "order it", "buy it", "checkout", "check out",
]
NEGATION = ["not", "don't", "dont", "wait", "hold on", "change", "add more", "no", "cancel", "stop", "remove"]


def _normalize(text: str) -> str:
    t = (text or "").lower().replace("’", "'")
    t = re.sub(r"[^a-z0-9'\s]", " ", t)
    return re.sub(r"\s+", " ", t).strip()


def _contains_any(text: str, vocab: List[str]) -> bool:
    padded = f" {_normalize(text)} "
    return any(f" {phrase} " in padded for phrase in vocab)


def is_order_completion(text: str) -> bool:
    """True when the customer says they are finished adding items."""
    return _contains_any(text, COMPLETION)


def is_strong_confirmation(text: str) -> bool:
    """Explicit go-ahead to hand the order to checkout. Any negation wins."""
    if _contains_any(text, NEGATION):
        return False
    return _contains_any(text, CONFIRMATION)


FILLER = ["please", "thanks", "thank you", "ok", "okay", "cheers", "great"]


def is_bare_order_phrase(text: str) -> bool:
    """True when the message is only a completion or confirmation phrase, give or take pleasantries."""
    t = _normalize(text)
    for word in FILLER:
        t = re.sub(rf"\b{re.escape(word)}\b", " ", t)
    t = " ".join(t.split())
    if not t or _contains_any(t, NEGATION):
        return False
    return t in COMPLETION or t in CONFIRMATION
