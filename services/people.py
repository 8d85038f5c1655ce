'''
Endpoints for people and parties.

A person (or party) is created together with its address and contact details; these are sent as sub documents in the request body.
For example,
{
  "firstname": "Jane", "lastname": "Doe",
  "address": {"addr_line1": "1 Main Street", "town": "Springfield"},
  "contact_details": {"email": "jane@example.com"}
}
The address and contact details are stored in their own collections with their owner set to the person.
'''

import logging

import context
import dal.entities as entities
from services.api_utils import json_response, request_json, HTTP_CREATED
from services.crud import CrudService
from services.errors import NotFoundError

logger = logging.getLogger(__name__)


class CompositeService(CrudService):
    """
    CRUD for an entity that owns sub documents in other collections.
    :param children - list of (path, Entity) for the owned sub documents
    """
    def __init__(self, entity, children, read_gate, write_gate, **gates):
        super().__init__(entity, read_gate, write_gate, **gates)
        self.children = children

    def split_body(self, body):
        """
        Separate the sub documents from the fields of the entity itself.
        """
        subdocs = {}
        fields = dict(body)
        for path, _ in self.children:
            if isinstance(fields.get(path), dict):
                subdocs[path] = fields.pop(path)
        return fields, subdocs

    def create_composite(self, body, owner=None):
        """
        Create the document and its sub documents; if any step fails, the documents already created are removed.
        :return: The new document with its sub documents populated
        """
        fields, subdocs = self.split_body(body)
        if owner is not None:
            fields["owner"] = owner
        created = []
        try:
            doc = self.entity.create(fields)
            created.append((self.entity, doc["_id"]))
            refs = {}
            for path, child in self.children:
                if path in subdocs:
                    subdoc = child.create(dict(subdocs[path], owner=doc["_id"]))
                    created.append((child, subdoc["_id"]))
                    refs[path] = subdoc["_id"]
            if refs:
                doc = self.entity.update(doc["_id"], refs)
        except Exception:
            logger.warning("Removing the partially created %s", self.entity.name)
            for ent, objid in reversed(created):
                ent.remove_by_id(objid)
            raise
        return self.entity.populate(doc)

    def update_composite(self, obj_id, body):
        """
        Update the document and its sub documents; sub documents that do not exist yet are created.
        """
        existing = self.entity.find_by_id(obj_id)
        if existing is None:
            raise NotFoundError(self.entity.name)
        fields, subdocs = self.split_body(body)
        for path, child in self.children:
            if path not in subdocs:
                continue
            ref = existing.get(path)
            subdoc = child.update(ref, subdocs[path]) if ref is not None else None
            if subdoc is None:
                subdoc = child.create(dict(subdocs[path], owner=existing["_id"]))
                fields[path] = subdoc["_id"]
        doc = self.entity.update(existing["_id"], fields)
        return self.entity.populate(doc)

    def delete_composite(self, obj_id):
        doc = self.entity.remove_by_id(obj_id)
        if doc is None:
            raise NotFoundError(self.entity.name)
        for path, child in self.children:
            ref = doc.get(path)
            if ref is not None:
                child.remove_by_id(ref)
        return doc

    def create_doc(self):
        doc = self.create_composite(request_json())
        logger.info("Created %s %s", self.entity.name, doc["_id"])
        return json_response(self.client_view(doc), status=HTTP_CREATED)

    def update_doc(self, obj_id):
        doc = self.update_composite(obj_id, request_json())
        logger.info("Updated %s %s", self.entity.name, obj_id)
        return json_response(self.client_view(doc))

    def delete_doc(self, obj_id):
        doc = self.delete_composite(obj_id)
        logger.info("Deleted %s %s", self.entity.name, obj_id)
        return json_response(self.client_view(doc))


class PeopleService(CompositeService):
    def __init__(self):
        security = context.security
        super().__init__(entities.people,
                         [("address", entities.addresses), ("contact_details", entities.contact_details)],
                         read_gate=security.has_canvasser_access,
                         write_gate=security.has_canvasser_access,
                         update=security.self_or_has_canvasser_access)

    def register_person(self):
        """
        Public registration of a person; no access check.
        """
        doc = self.create_composite(request_json())
        logger.info("Registered person %s", doc["_id"])
        return json_response(self.client_view(doc), status=HTTP_CREATED)

    def add_extra_routes(self, blueprint):
        blueprint.add_url_rule("/register", "register", context.security.no_check(self.register_person), methods=["POST"])


class PartyService(CompositeService):
    def __init__(self):
        security = context.security
        super().__init__(entities.parties,
                         [("address", entities.addresses), ("contact_details", entities.contact_details)],
                         read_gate=security.has_canvasser_access,
                         write_gate=security.has_staff_access)

