"""
Models for elections and the documents they reference.
"""

import datetime

from pydantic import Field

from dal.models.common import TimestampedModel, PyObjectId


class VotingSystem(TimestampedModel):
    """
    A voting system, for example, First Past The Post.
    preference_levels lists the answers a voter can give for a candidate.
    """

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    abbreviation: str = Field(min_length=1)
    preference_levels: list[str] = Field(default_factory=list)


class VotingDistrict(TimestampedModel):
    name: str = Field(min_length=1)
    description: str | None = None
    towns: list[str] = Field(default_factory=list)
    cities: list[str] = Field(default_factory=list)
    counties: list[str] = Field(default_factory=list)


class Party(TimestampedModel):
    name: str = Field(min_length=1)
    description: str = ""
    note: str = ""
    address: PyObjectId | None = None
    contact_details: PyObjectId | None = None


class Candidate(TimestampedModel):
    person: PyObjectId | None = None
    party: PyObjectId | None = None


class Election(TimestampedModel):
    name: str = Field(min_length=1)
    description: str = ""
    seats: int = Field(1, ge=0)
    election_date: datetime.datetime | None = None
    system: PyObjectId | None = None
    candidates: list[PyObjectId] = Field(default_factory=list)
