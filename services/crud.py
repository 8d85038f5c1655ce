'''
Generic CRUD web service endpoints for an entity.

Each collection is served from its own blueprint at /db/<collection>
    GET    /             - list; the query string is decoded by dal.query and resolved by dal.resolver
    GET    /count        - {"count": n} using the same query string
    GET    /<obj_id>     - a single document; supports fields=...
    POST   /             - create
    PUT    /<obj_id>     - update the specified fields
    DELETE /<obj_id>     - delete
Every endpoint is wrapped in an access gate from context.security; the gates are specified per operation.
Composite resources (people, parties, users) subclass CrudService and override the write operations.
'''

import logging

from flask import Blueprint, Response, request

import context
from dal.query import decode_query
from dal.resolver import Resolver
from dal.utils import apply_exclusion_projection
from services.api_utils import json_response, request_json, register_error_handlers, HTTP_CREATED, HTTP_NO_CONTENT
from services.errors import NotFoundError

logger = logging.getLogger(__name__)

READ_OPS = ["list", "count", "get"]
WRITE_OPS = ["create", "update", "delete"]


class CrudService(object):
    """
    :param entity - the dal.entity.Entity served
    :param read_gate - access gate decorator for list, count and get
    :param write_gate - access gate decorator for create, update and delete
    :param gates - per operation overrides, for example, update=context.security.self_or_admin
    """
    def __init__(self, entity, read_gate, write_gate, **gates):
        self.entity = entity
        self.gates = {}
        self.gates.update({ op: read_gate for op in READ_OPS })
        self.gates.update({ op: write_gate for op in WRITE_OPS })
        self.gates.update(gates)

    def resolver(self):
        return Resolver(self.entity.tree, max_workers=context.RESOLVER_WORKERS)

    def client_view(self, doc):
        """
        Remove the fields that are never returned to clients.
        """
        return apply_exclusion_projection(doc, self.entity.get_projection())

    # Operations

    def list_docs(self):
        descriptor = decode_query(request.args, self.entity.tree)
        status, docs = self.resolver().get_docs(descriptor)
        if status == HTTP_NO_CONTENT:
            return Response(status=HTTP_NO_CONTENT)
        return json_response(docs)

    def count_docs(self):
        descriptor = decode_query(request.args, self.entity.tree)
        return json_response({"count": self.resolver().count(descriptor)})

    def get_doc(self, obj_id):
        descriptor = decode_query(request.args, self.entity.tree, check_subtree=False)
        _, doc = self.resolver().get_docs(descriptor, obj_id=obj_id)
        return json_response(doc)

    def create_doc(self):
        doc = self.entity.create(request_json())
        logger.info("Created %s %s", self.entity.name, doc["_id"])
        return json_response(self.client_view(doc), status=HTTP_CREATED)

    def update_doc(self, obj_id):
        doc = self.entity.update(obj_id, request_json())
        if doc is None:
            raise NotFoundError(self.entity.name)
        logger.info("Updated %s %s", self.entity.name, obj_id)
        return json_response(self.client_view(doc))

    def delete_doc(self, obj_id):
        doc = self.entity.remove_by_id(obj_id)
        if doc is None:
            raise NotFoundError(self.entity.name)
        logger.info("Deleted %s %s", self.entity.name, obj_id)
        return json_response(self.client_view(doc))

    # Routing

    def add_routes(self, blueprint):
        """
        Add the CRUD routes, each wrapped in its gate, to the blueprint.
        """
        routes = [
            ("", "list", self.list_docs, ["GET"]),
            ("/count", "count", self.count_docs, ["GET"]),
            ("/<obj_id>", "get", self.get_doc, ["GET"]),
            ("", "create", self.create_doc, ["POST"]),
            ("/<obj_id>", "update", self.update_doc, ["PUT"]),
            ("/<obj_id>", "delete", self.delete_doc, ["DELETE"]),
        ]
        for rule, op, view, methods in routes:
            gate = self.gates.get(op)
            blueprint.add_url_rule(rule, op, gate(view) if gate else view, methods=methods)
        return blueprint

    def make_blueprint(self, collection):
        blueprint = Blueprint(collection, __name__, url_prefix="/db/" + collection)
        self.add_extra_routes(blueprint)
        self.add_routes(blueprint)
        return register_error_handlers(blueprint)

    def add_extra_routes(self, blueprint):
        """
        Routes specific to a resource; these are added before the CRUD routes so they take precedence over /<obj_id>.
        """
        pass
