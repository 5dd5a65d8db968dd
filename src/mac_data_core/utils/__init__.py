"""Text normalization helpers shared by the mail components."""

from __future__ import annotations

import re

RE_PREFIX = re.compile(r"^(?:(?:re|fwd?)\s*:\s*)+", re.IGNORECASE)
RE_WHITESPACE = re.compile(r"\s+")
RE_ANGLE_ADDR = re.compile(r"<([^>]*)>")
RE_SENDER_PUNCT = re.compile(r"[\"'\s]")


def normalize_subject(subject: str | None) -> str:
    """Lowercase a subject, drop reply/forward prefixes and collapse whitespace."""

    if not subject:
        return ""
    s = subject.strip().lower()
    s = RE_PREFIX.sub("", s)
    return RE_WHITESPACE.sub(" ", s).strip()


def normalize_sender(sender: str | None) -> str:
    """Reduce a From value to a comparable token.

    ``"Alice Smith" <alice@example.com>`` becomes ``alicesmith``. When only an
    address is present the address itself is used.
    """

    if not sender:
        return ""
    s = sender.lower()
    match = RE_ANGLE_ADDR.search(s)
    address = match.group(1).strip() if match else ""
    s = RE_ANGLE_ADDR.sub("", s, count=1)
    s = RE_SENDER_PUNCT.sub("", s).strip()
    return s or address


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""

    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Case-insensitive edit-distance similarity in [0, 1].

    Identical strings score 1.0; an empty string against a non-empty one scores 0.0.
    """

    s1 = a.lower()
    s2 = b.lower()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    longest = max(len(s1), len(s2))
    return 1.0 - levenshtein_distance(s1, s2) / longest
