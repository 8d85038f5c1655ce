"""
Common types and base model configuration shared across all models.

Besides the base model, this module classifies the declared type of each document field into a FieldKind.
The query decoder uses the FieldKind table of a model to decide how a query string value is compared.
"""

import datetime
import enum
import types
from typing import Annotated, Any, Union, get_args, get_origin

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, BeforeValidator, Field


def _validate_object_id(v: Any) -> ObjectId:
    if isinstance(v, ObjectId):
        return v
    if isinstance(v, str) and ObjectId.is_valid(v):
        return ObjectId(v)
    raise ValueError(f"Invalid ObjectId: {v}")


PyObjectId = Annotated[ObjectId, BeforeValidator(_validate_object_id)]
"""A BSON ObjectId that accepts both ObjectId instances and valid hex strings."""


class MongoBaseModel(BaseModel):
    """Base model for all MongoDB document models."""

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
    )

    id: PyObjectId | None = Field(None, alias="_id")


class TimestampedModel(MongoBaseModel):
    """Documents that record their creation and last modification times."""

    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None


class FieldKind(enum.Enum):
    """
    How values of a document field are compared in a query.
    """
    NUMERIC = "numeric"
    IDENTIFIER = "identifier"
    TEXT = "text"
    DATE = "date"
    BOOLEAN = "boolean"


def _base_types(annotation):
    """
    Strip Annotated, Optional/Union and container wrappers; return the set of underlying types.
    """
    origin = get_origin(annotation)
    if origin is Annotated:
        return _base_types(get_args(annotation)[0])
    if origin in (Union, types.UnionType):
        ret = set()
        for arg in get_args(annotation):
            if arg is not type(None):
                ret |= _base_types(arg)
        return ret
    if origin in (list, set, tuple, frozenset):
        args = get_args(annotation)
        return _base_types(args[0]) if args else {Any}
    return {annotation}


def kind_of(annotation):
    """
    Classify a field annotation. Anything that is not numeric, an id, a date or a boolean is treated as text.
    """
    base = _base_types(annotation)
    if base and all(isinstance(t, type) for t in base):
        if all(issubclass(t, ObjectId) for t in base):
            return FieldKind.IDENTIFIER
        if all(issubclass(t, bool) for t in base):
            return FieldKind.BOOLEAN
        if all(issubclass(t, (int, float)) and not issubclass(t, bool) for t in base):
            return FieldKind.NUMERIC
        if all(issubclass(t, (datetime.datetime, datetime.date)) for t in base):
            return FieldKind.DATE
    return FieldKind.TEXT


def field_kinds(model_cls):
    """
    The field name -> FieldKind table for a document model; field names are the stored names (aliases).
    """
    return { (finfo.alias or name): kind_of(finfo.annotation) for name, finfo in model_cls.model_fields.items() }
