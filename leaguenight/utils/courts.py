"""
Canonical helpers for league night court lists.

Courts live on the instance as an ordered list of {"number", "label"} dicts.
Numbers are stable identities (matches reference them); labels are what
players see. Handles both string ("1,5,6") and list (["1","5","6"]) label
inputs so we never silently corrupt labels (e.g. list("1,5,6") -> ['1', ',', '5', ...]).
"""
from typing import Any, Dict, Iterable, List, Optional, Union

from leaguenight.services.errors import InvalidCourts


def parse_court_labels(court_labels: Optional[Union[str, List[Any]]]) -> List[str]:
    """
    Normalize court labels to a list of non-empty strings.

    - None or "" -> []
    - String (e.g. "1,5,6") -> split on commas, strip whitespace, drop empties -> ["1","5","6"]
    - List (e.g. ["1","5","6"]) -> coerce each to str(x).strip(), drop empties
    """
    if court_labels is None:
        return []
    if isinstance(court_labels, str):
        s = court_labels.strip()
        if not s:
            return []
        return [x.strip() for x in s.split(",") if x.strip()]
    if isinstance(court_labels, list):
        return [str(x).strip() for x in court_labels if str(x).strip()]
    return []


def validate_court_labels(court_labels: Optional[Union[str, List[Any]]]) -> List[str]:
    """
    Strict variant for admin edits: blanks and duplicates are errors, not dropped.

    Raises:
        InvalidCourts
    """
    if isinstance(court_labels, str):
        raw = court_labels.split(",") if court_labels.strip() else []
    else:
        raw = list(court_labels or [])
    if not raw:
        raise InvalidCourts("At least one court is required")

    labels = [str(x).strip() if x is not None else "" for x in raw]
    if any(not label for label in labels):
        raise InvalidCourts("Court labels cannot be blank")

    seen = set()
    for label in labels:
        key = label.lower()
        if key in seen:
            raise InvalidCourts(f"Duplicate court label: {label}")
        seen.add(key)
    return labels


def number_courts(labels: List[str]) -> List[Dict[str, Any]]:
    """Fresh court list numbered 1..n in the given order."""
    return [{"number": i, "label": label} for i, label in enumerate(labels, start=1)]


def renumber_courts(
    existing: List[Dict[str, Any]],
    labels: List[str],
    reserved: Iterable[int] = (),
) -> List[Dict[str, Any]]:
    """
    Court list for ``labels`` that keeps the number of every surviving label.
    New labels get numbers above both ``existing`` and ``reserved`` (numbers
    referenced by match history), so a removed court's number is never
    handed to a different court.
    """
    by_label = {str(c["label"]).lower(): c["number"] for c in existing}
    next_number = max([c["number"] for c in existing] + list(reserved), default=0) + 1

    courts = []
    for label in labels:
        number = by_label.get(label.lower())
        if number is None:
            number = next_number
            next_number += 1
        courts.append({"number": number, "label": label})
    return courts
