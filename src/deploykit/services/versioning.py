"""Next image version derivation."""

from typing import Iterable, Optional

from deploykit.models import VersionLedgerEntry


def ledger_key(environment: str, image: str) -> str:
    return f"{environment}/{image}"


def is_numeric_tag(tag: Optional[str]) -> bool:
    """True for tags made only of ASCII digits."""
    if tag is None:
        return False
    text = str(tag).strip()
    return text.isascii() and text.isdigit()


def coerce_tag(tag: Optional[str]) -> int:
    """Return the integer value of a tag, or 0 for anything non-numeric."""
    if not is_numeric_tag(tag):
        return 0
    return int(str(tag).strip())


def next_version_from_tags(tags: Iterable[Optional[str]]) -> int:
    highest = max((coerce_tag(tag) for tag in tags), default=0)
    return max(highest, 0) + 1


def next_version_from_ledger(
    entries: Iterable[VersionLedgerEntry], environment: str, image: str
) -> int:
    key = ledger_key(environment, image)
    for entry in entries:
        if entry.name == key:
            return entry.version + 1
    return 1
