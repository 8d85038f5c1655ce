"""
Models for role and user documents.

Roles are stored in the `roles` collection, one document per role level.
They control access via their level and a privilege mask per resource category (see dal.privileges).
"""

from pydantic import Field

from dal.models.common import MongoBaseModel, TimestampedModel, PyObjectId


class Role(MongoBaseModel):
    """
    A role document.

    The privilege masks are bit fields; see dal.privileges for the layout.
    """

    name: str = Field(min_length=1)
    level: int = Field(ge=0)
    votingsys: int = Field(0, ge=0)
    roles: int = Field(0, ge=0)
    users: int = Field(0, ge=0)
    elections: int = Field(0, ge=0)
    candidates: int = Field(0, ge=0)
    canvasses: int = Field(0, ge=0)
    notices: int = Field(0, ge=0)


class User(TimestampedModel):
    """
    A user document; the login identity of a person.
    The password is stored only as a hash and is never returned to clients.
    """

    username: str = Field(min_length=1)
    password_hash: str | None = None
    oauth_id: str | None = None
    oauth_token: str | None = None
    role: PyObjectId
    person: PyObjectId | None = None
