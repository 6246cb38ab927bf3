"""Room-name canonicalization used to join rooms against schedule rows."""
import re
from typing import Optional

_STRIP_PATTERN = re.compile(r"[\s.&-]")


def normalize(name: Optional[str]) -> str:
    """Lower-case ``name`` and drop whitespace, periods, ampersands and hyphens.

    The result is a join key only and is never shown to users. Distinct rooms
    may collide ("Lab A-1" and "Lab A1") and that is accepted.
    """

    if not name:
        return ""
    return _STRIP_PATTERN.sub("", name.lower())
