'''
Various small utilties.
'''
import json
import math
import collections.abc

from bson import ObjectId
from datetime import datetime

class JSONEncoder(json.JSONEncoder):
    def default(self, o):
        if isinstance(o, ObjectId):
            return str(o)
        elif isinstance(o, float) and not math.isfinite(o):
            return str(o)
        elif isinstance(o, datetime):
            # Use var d = new Date(str) in JS to deserialize
            return o.isoformat()
        elif isinstance(o, (set, frozenset)):
            return list(o)
        return json.JSONEncoder.default(self, o)


def to_object_id(value):
    """
    Convert a value to an ObjectId; returns None if this is not possible.
    """
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def remove_path(doc, dotted_path):
    """
    Remove a dotted path from a (possibly populated) document.
    Lists along the path are descended into element by element.
    """
    if isinstance(doc, list):
        for elem in doc:
            remove_path(elem, dotted_path)
        return
    if not isinstance(doc, collections.abc.MutableMapping):
        return
    head, _, rest = dotted_path.partition(".")
    if not rest:
        doc.pop(head, None)
    elif head in doc:
        remove_path(doc[head], rest)


def apply_exclusion_projection(docs, projection):
    """
    Strip the paths excluded (value 0) by projection from docs.
    Used after sub documents have been populated, when the database projection no longer applies.
    """
    if not projection:
        return docs
    excluded = [k for k, v in projection.items() if not v]
    for path in excluded:
        remove_path(docs, path)
    return docs

