"""
Models for canvasses.

A canvass ties an election and a survey to a set of addresses and canvassers.
Canvassers are assigned addresses through canvass assignments, and each visit produces a canvass result.
"""

import datetime

from pydantic import Field

from dal.models.common import TimestampedModel, PyObjectId


class Canvass(TimestampedModel):
    name: str = Field(min_length=1)
    description: str = ""
    start_date: datetime.datetime | None = None
    end_date: datetime.datetime | None = None
    election: PyObjectId | None = None
    survey: PyObjectId | None = None
    addresses: list[PyObjectId] = Field(default_factory=list)
    canvassers: list[PyObjectId] = Field(default_factory=list)
    results: list[PyObjectId] = Field(default_factory=list)


class CanvassAssignment(TimestampedModel):
    canvass: PyObjectId | None = None
    canvasser: PyObjectId | None = None
    addresses: list[PyObjectId] = Field(default_factory=list)


class CanvassResult(TimestampedModel):
    """
    The outcome of one canvass visit.
    NOTE: supporter is a preference level index from the election's voting system; 0 is unknown.
    """

    available: bool = True
    dont_canvass_again: bool = False
    try_again: bool = True
    supporter: int = 0
    date: datetime.datetime | None = None
    answers: list[PyObjectId] = Field(default_factory=list)
    canvasser: PyObjectId | None = None
    voter: PyObjectId | None = None
    address: PyObjectId | None = None
