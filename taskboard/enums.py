from __future__ import annotations

import logging
from enum import Enum
from typing import Union

logger = logging.getLogger(__name__)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        # urgency order: high first
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, raw: Union[str, Priority]) -> Priority:
        if isinstance(raw, Priority):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError as e:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Invalid priority '{raw}'. Must be one of: {valid}") from e


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class StatusFilter(str, Enum):
    COMPLETED = "completed"
    ACTIVE = "active"
    OVERDUE = "overdue"

    @classmethod
    def parse(cls, raw: Union[str, StatusFilter]) -> StatusFilter:
        if isinstance(raw, StatusFilter):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError as e:
            valid = ", ".join(s.value for s in cls)
            raise ValueError(f"Invalid status '{raw}'. Must be one of: {valid}") from e


class SortKey(str, Enum):
    DUE_DATE = "due_date"
    PRIORITY = "priority"
    TITLE = "title"
    CREATED_AT = "created_at"

    @classmethod
    def parse(cls, raw: Union[str, SortKey, None]) -> SortKey:
        """
        Accepts the enum values and their camelCase spellings (dueDate, createdAt).
        Anything unrecognized sorts by due date.
        """
        if isinstance(raw, SortKey):
            return raw
        if raw:
            text = str(raw).strip()
            for key in cls:
                if text in (key.value, _camel(key.value)):
                    return key
            logger.debug("Unknown sort criteria %r, falling back to due_date", raw)
        return cls.DUE_DATE


def _camel(snake: str) -> str:
    head, *rest = snake.split("_")
    return head + "".join(part.capitalize() for part in rest)
