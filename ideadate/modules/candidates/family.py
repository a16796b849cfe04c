"""
modules/candidates/family.py
----------------------------
Coarse place families (food, culture, nightlife, dessert, outdoors, other)
used by the diversity ranking and the duplicate-family constraint.

Place types decide first (first matching family wins); the name is only
consulted when the types say nothing.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

FAMILY_OTHER = "other"

TYPE_FAMILY_MAP: tuple[tuple[str, frozenset[str]], ...] = (
    ("food", frozenset({"restaurant", "cafe", "coffee_shop", "bakery", "meal_takeaway", "meal_delivery"})),
    ("culture", frozenset({"museum", "art_gallery", "cultural_center", "historical_landmark", "book_store"})),
    ("nightlife", frozenset({"bar", "cocktail_bar", "night_club"})),
    ("dessert", frozenset({"dessert_shop", "ice_cream_shop", "tea_house"})),
    ("outdoors", frozenset({"park", "hiking_area", "tourist_attraction"})),
)

NAME_FAMILY_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("culture", re.compile(r"\b(museum|gallery)\b")),
    ("nightlife", re.compile(r"\b(bar|lounge|club)\b")),
    ("dessert", re.compile(r"\b(dessert|gelato|ice cream|boba|tea)\b")),
    ("outdoors", re.compile(r"\b(park|garden|trail)\b")),
    ("food", re.compile(r"\b(cafe|coffee|restaurant|bistro|bakery)\b")),
)


def classify_by_name(name: Optional[str]) -> Optional[str]:
    normalized = (name or "").strip().lower()
    if not normalized:
        return None
    for family, pattern in NAME_FAMILY_PATTERNS:
        if pattern.search(normalized):
            return family
    return None


def classify_place_family(types: Iterable[str], name: Optional[str] = None) -> str:
    type_set = {t.strip().lower() for t in types or () if isinstance(t, str) and t.strip()}
    for family, family_types in TYPE_FAMILY_MAP:
        if type_set & family_types:
            return family
    return classify_by_name(name) or FAMILY_OTHER
