"""
Models for notices; messages shown to users of the application between two dates.
"""

import datetime
import enum

from pydantic import Field

from dal.models.common import TimestampedModel


class NoticeLevel(enum.IntEnum):
    INFO = 1
    WARN = 2
    CRITICAL = 3


class Notice(TimestampedModel):
    level: int = NoticeLevel.INFO.value
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    from_date: datetime.datetime
    to_date: datetime.datetime
