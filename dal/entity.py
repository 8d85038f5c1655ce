'''
A document type stored in its own MongoDB collection.

An Entity ties together the pydantic model for the documents, the collection they are stored in and the root of the entity's relationship tree.
The database is bound once at startup using bind_database; tests bind a mongomock database instead.
'''

import logging
import datetime

import pytz
from pymongo import ReturnDocument, ASCENDING

from dal.model_node import ModelNode
from dal.models.common import TimestampedModel, field_kinds
from dal.utils import to_object_id

logger = logging.getLogger(__name__)

_database = None


def bind_database(db):
    """
    Bind all entities to the specified pymongo (or mongomock) database.
    """
    global _database
    _database = db


def get_database():
    if _database is None:
        raise RuntimeError("The database has not been bound; call bind_database first")
    return _database


class Entity(object):
    """
    :param name - display name, used in messages, for example, Person
    :param collection_name - the MongoDB collection, for example, people
    :param model - the pydantic model for the documents
    :param projection - exclusion projection applied to documents returned to clients
    :param ex_paths - fields that may not be used in queries
    :param unique - fields with a unique index
    """
    def __init__(self, name, collection_name, model, projection=None, ex_paths=None, unique=None):
        self.name = name
        self.collection_name = collection_name
        self.model = model
        self.field_kinds = field_kinds(model)
        self.ex_paths = list(ex_paths or [])
        self.unique = list(unique or [])
        self.tree = ModelNode(self, projection=projection)

    def __repr__(self):
        return "Entity(%s)" % self.name

    @property
    def collection(self):
        return get_database()[self.collection_name]

    def ensure_indexes(self):
        for field in self.unique:
            self.collection.create_index([(field, ASCENDING)], unique=True)

    def find(self, filter=None, projection=None, sort=None):
        cursor = self.collection.find(filter or {}, projection or None)
        if sort:
            cursor = cursor.sort(sort)
        return list(cursor)

    def find_one(self, filter, projection=None):
        return self.collection.find_one(filter, projection or None)

    def find_by_id(self, objid, projection=None):
        oid = to_object_id(objid)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid}, projection or None)

    def count(self, filter=None):
        return self.collection.count_documents(filter or {})

    def _validated(self, fields):
        """
        Validate fields against the model; return the document to store, keyed by the stored field names.
        """
        obj = self.model.model_validate(fields)
        doc = obj.model_dump(by_alias=True)
        if doc.get("_id") is None:
            doc.pop("_id", None)
        return doc

    def create(self, fields):
        """
        Validate and insert a new document.
        :return: The inserted document, including its _id
        """
        doc = self._validated(fields)
        if issubclass(self.model, TimestampedModel):
            now = datetime.datetime.now(pytz.utc)
            doc["created_at"] = now
            doc["updated_at"] = now
        doc["_id"] = self.collection.insert_one(doc).inserted_id
        logger.debug("Created %s %s", self.name, doc["_id"])
        return doc

    def update(self, objid, fields, upsert=False):
        """
        Update the specified fields of a document; the document as a whole must still be valid after the update.
        :param upsert - create the document if it does not exist
        :return: The updated document or None if there is no such document
        """
        oid = to_object_id(objid)
        if oid is None:
            return None
        existing = self.collection.find_one({"_id": oid})
        if existing is None:
            if not upsert:
                return None
            return self.create(dict(fields, _id=oid))
        changes = { k: v for k, v in fields.items() if k not in ("_id", "id", "created_at", "updated_at") }
        merged = dict(existing)
        merged.update(changes)
        validated = self._validated(merged)
        updates = { k: validated[k] for k in changes if k in validated }
        if issubclass(self.model, TimestampedModel):
            updates["updated_at"] = datetime.datetime.now(pytz.utc)
        if not updates:
            return existing
        return self.collection.find_one_and_update({"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER)

    def remove(self, filter):
        """
        :return: The number of documents deleted
        """
        return self.collection.delete_many(filter).deleted_count

    def remove_by_id(self, objid):
        """
        :return: The deleted document or None
        """
        oid = to_object_id(objid)
        if oid is None:
            return None
        return self.collection.find_one_and_delete({"_id": oid})

    def populate(self, docs):
        return self.tree.populate(docs)

    def get_projection(self):
        return self.tree.get_projection()
