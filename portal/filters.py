from typing import Any, Dict, Iterable, List, Optional, Sequence

ALL = "all"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).lower()


def matches_search(search: Optional[str], *values: Any) -> bool:
    """Case-insensitive substring match against any of the values."""
    needle = _text(search).strip()
    if not needle:
        return True
    return any(needle in _text(value) for value in values)


def matches_choice(selected: Optional[str], value: Any) -> bool:
    """Exact match; only the "all" sentinel and blanks are case-insensitive."""
    if selected is None or _text(selected).strip() in ("", ALL):
        return True
    return str(selected) == ("" if value is None else str(value))


def filter_items(
    items: Iterable[Dict],
    search: Optional[str] = None,
    fields: Sequence[str] = (),
    **choices: Optional[str],
) -> List[Dict]:
    result = []
    for item in items:
        if not matches_search(search, *(item.get(field) for field in fields)):
            continue
        if all(matches_choice(selected, item.get(key)) for key, selected in choices.items()):
            result.append(item)
    return result


def full_name(item: Dict) -> str:
    return " ".join(part for part in (item.get("first_name"), item.get("last_name")) if part)
