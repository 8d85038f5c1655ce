"""
Models for people and the documents they own.

A person owns one address and one set of contact details; the `owner` field of the address and
the contact details points back at the person. Parties use the same address/contact details documents.
"""

from pydantic import Field

from dal.models.common import TimestampedModel, PyObjectId


class Address(TimestampedModel):
    addr_line1: str = ""
    addr_line2: str = ""
    addr_line3: str = ""
    town: str = ""
    city: str = ""
    county: str = ""
    country: str = ""
    postcode: str = ""
    gps: str = ""
    voting_district: PyObjectId | None = None
    owner: PyObjectId | None = None


class ContactDetails(TimestampedModel):
    phone: str | None = None
    mobile: str | None = None
    email: str | None = None
    website: str | None = None
    facebook: str | None = None
    twitter: str | None = None
    owner: PyObjectId | None = None


class Person(TimestampedModel):
    """
    A person; voters, canvassers, candidates and users are all people.
    The owner of a person created as part of user registration is the user.
    """

    firstname: str = Field(min_length=1)
    lastname: str = Field(min_length=1)
    note: str = ""
    address: PyObjectId | None = None
    contact_details: PyObjectId | None = None
    owner: PyObjectId | None = None
