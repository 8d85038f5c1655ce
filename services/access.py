'''
Endpoints that exercise each of the access gates; a request succeeds with 200 if the caller passes the gate.
For example, GET /test/has/staff succeeds for callers with a role level of staff or above.
These are only registered if ACCESS_TEST_ROUTES is set.
'''

import logging

from flask import Blueprint

import context
from services.api_utils import json_response, register_error_handlers

logger = logging.getLogger(__name__)

access_blueprint = Blueprint('access_test', __name__, url_prefix="/test")


def _ok():
    return json_response({"success": True})


def _add_gate_route(prefix, name, gate):
    access_blueprint.add_url_rule("/%s/%s" % (prefix, name), "%s_%s" % (prefix, name), gate(_ok), methods=["GET"])


_IS_GATES = {
    "admin": context.security.is_admin,
    "manager": context.security.is_manager,
    "grouplead": context.security.is_group_lead,
    "staff": context.security.is_staff,
    "canvasser": context.security.is_canvasser,
    "public": context.security.is_public,
}

_HAS_GATES = {
    "admin": context.security.has_admin_access,
    "manager": context.security.has_manager_access,
    "grouplead": context.security.has_group_lead_access,
    "staff": context.security.has_staff_access,
    "canvasser": context.security.has_canvasser_access,
    "public": context.security.has_public_access,
}

for _name, _gate in _IS_GATES.items():
    _add_gate_route("is", _name, _gate)
for _name, _gate in _HAS_GATES.items():
    _add_gate_route("has", _name, _gate)

register_error_handlers(access_blueprint)
