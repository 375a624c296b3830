"""
api/params.py -- Shared path/query parameter checks for the CRUD routes.

Record ids are 32 lowercase hex characters (uuid4().hex). Anything else is
rejected with 400 before a store is queried.
"""

import re
from typing import Optional

from auth.exceptions import ValidationError

_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def require_id(value: Optional[str], entity: str) -> str:
    """Return value if it is a well-formed record id, else raise ValidationError."""
    if value is None or not _ID_RE.match(value):
        label = f"Invalid {entity} ID format"
        raise ValidationError(label, error=label)
    return value
