'''
The blueprints for all the collections served at /db/<collection>.
Most collections use the generic CRUD endpoints with gates per collection; people, parties and users have their own services.
'''

import logging

import context
import dal.entities as entities
from dal.privileges import RESOURCE_NOTICES, SCOPE_ALL
from services.crud import CrudService
from services.people import PeopleService, PartyService
from services.users import UserService

logger = logging.getLogger(__name__)


def _notice_service():
    """
    Notices can be read by anyone; changing them needs the notices privilege.
    """
    security = context.security
    return CrudService(entities.notices,
                       read_gate=None,
                       write_gate=None,
                       create=security.privilege_required(RESOURCE_NOTICES, "create", SCOPE_ALL),
                       update=security.privilege_required(RESOURCE_NOTICES, "update", SCOPE_ALL),
                       delete=security.privilege_required(RESOURCE_NOTICES, "delete", SCOPE_ALL))


def make_blueprints():
    """
    :return: A list of all the /db blueprints
    """
    security = context.security
    canvasser_read_staff_write = { "read_gate": security.has_canvasser_access, "write_gate": security.has_staff_access }
    services = {
        "users": UserService(),
        "roles": CrudService(entities.roles, read_gate=security.authentication_required, write_gate=security.is_admin),
        "people": PeopleService(),
        "parties": PartyService(),
        "addresses": CrudService(entities.addresses, read_gate=security.has_canvasser_access, write_gate=security.has_canvasser_access),
        "contactdetails": CrudService(entities.contact_details, read_gate=security.has_canvasser_access, write_gate=security.has_canvasser_access),
        "candidates": CrudService(entities.candidates, **canvasser_read_staff_write),
        "votingsystems": CrudService(entities.voting_systems, **canvasser_read_staff_write),
        "votingdistricts": CrudService(entities.voting_districts, **canvasser_read_staff_write),
        "elections": CrudService(entities.elections, **canvasser_read_staff_write),
        "questions": CrudService(entities.questions, **canvasser_read_staff_write),
        "answers": CrudService(entities.answers, **canvasser_read_staff_write),
        "surveys": CrudService(entities.surveys, **canvasser_read_staff_write),
        "canvasses": CrudService(entities.canvasses, **canvasser_read_staff_write),
        "canvassassignment": CrudService(entities.canvass_assignments, **canvasser_read_staff_write),
        "canvassresult": CrudService(entities.canvass_results, **canvasser_read_staff_write),
        "notice": _notice_service(),
    }
    return [service.make_blueprint(collection) for collection, service in services.items()]
