"""Deterministic colors for vote choices.

Well-known choice names get fixed colors (green for "For"/"Yes", red for
"Against"/"No", yellow for "Abstain"); every other label hashes into a fixed
palette so the same label is drawn with the same color everywhere.
"""
import re
from typing import List, Optional

from proposals_feed.data_models.schemas import DEFAULT_CHOICE_COLOR

FOR_COLOR = "#69E000"
AGAINST_COLOR = "#FF4C42"
ABSTAIN_COLOR = "#FFCC33"

CHOICE_PALETTE = [
    "#3B82F6",  # Blue
    "#8B5CF6",  # Purple
    "#EC4899",  # Pink
    "#F97316",  # Orange
    "#6EE7B7",  # Teal
    "#A855F7",  # Deep Purple
    "#F43F5E",  # Rose
    "#14B8A6",  # Cyan
    "#FBBF24",  # Amber
    "#6366F1",  # Indigo
    "#22C55E",  # Emerald
    "#0EA5E9",  # Sky Blue
    "#D946EF",  # Fuchsia
    "#84CC16",  # Lime
    "#2563EB",  # Dark Blue
    "#7C3AED",  # Dark Purple
    "#DB2777",  # Dark Pink
    "#EA580C",  # Dark Orange
    "#059669",  # Dark Teal
    "#4F46E5",  # Dark Indigo
]

_FOR_PATTERN = re.compile(r"^(for|yes|yae)")
_AGAINST_PATTERN = re.compile(r"^(against|no|nay)")


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def _leading_code_unit(char: str) -> int:
    # First UTF-16 code unit, so astral characters hash like the web client
    code_point = ord(char)
    if code_point < 0x10000:
        return code_point
    return 0xD800 + ((code_point - 0x10000) >> 10)


def label_hash(label: str) -> int:
    """32-bit rolling hash (``h * 31 + c``) of a label."""
    acc = 0
    for char in label:
        acc = _to_int32((acc << 5) - acc + _leading_code_unit(char))
    return acc


def get_color_for_choice(choice: Optional[str]) -> str:
    if not choice:
        return DEFAULT_CHOICE_COLOR
    lower = choice.lower()
    if _FOR_PATTERN.match(lower):
        return FOR_COLOR
    if _AGAINST_PATTERN.match(lower):
        return AGAINST_COLOR
    if lower == "abstain":
        return ABSTAIN_COLOR
    return CHOICE_PALETTE[abs(label_hash(lower)) % len(CHOICE_PALETTE)]


def colors_for_choices(choices: List[str]) -> List[str]:
    return [get_color_for_choice(choice) for choice in choices]
