"""
Pydantic models for the canvasstrac data access layer.

These models represent the MongoDB document schemas used throughout the application.
They are organized by domain: people, roles and users, elections, surveys, canvasses and notices.
"""

from dal.models.people import Address, ContactDetails, Person
from dal.models.roles import Role, User
from dal.models.elections import (
    VotingSystem,
    VotingDistrict,
    Party,
    Candidate,
    Election,
)
from dal.models.surveys import QuestionType, Question, Answer, Survey
from dal.models.canvasses import Canvass, CanvassAssignment, CanvassResult
from dal.models.notices import NoticeLevel, Notice
from dal.models.common import PyObjectId, FieldKind, field_kinds

__all__ = [
    # Common
    "PyObjectId",
    "FieldKind",
    "field_kinds",
    # People
    "Address",
    "ContactDetails",
    "Person",
    # Roles and users
    "Role",
    "User",
    # Elections
    "VotingSystem",
    "VotingDistrict",
    "Party",
    "Candidate",
    "Election",
    # Surveys
    "QuestionType",
    "Question",
    "Answer",
    "Survey",
    # Canvasses
    "Canvass",
    "CanvassAssignment",
    "CanvassResult",
    # Notices
    "NoticeLevel",
    "Notice",
]
