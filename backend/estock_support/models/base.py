"""
Shared model base - camelCase wire format with snake_case attributes.
"""

import itertools
import time

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys (sessionId, userQuery, ...)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


_id_sequence = itertools.count(1)


def time_id(suffix: str = "") -> str:
    """Time-based id, unique within the process (e.g. "1730000000000_img_3f2a")."""
    return f"{now_ms()}{suffix}_{next(_id_sequence):04x}"
