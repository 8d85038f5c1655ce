'''
Role levels and privilege bitmasks.

Each role has a numeric level; higher levels are more privileged.
The level values are stored in the database; do not renumber them without migrating the roles collection.

Each role also has a privilege mask per resource category.
A mask packs a 5 bit capability field (create, read, update, delete, batch) per access scope.
Scope k occupies bits [5k, 5k+4]; the scopes are ALL (every object), ONE (a specific object) and OWN (the caller's own objects).
'''

import logging

logger = logging.getLogger(__name__)

# Role levels
ROLE_ADMIN = 100
ROLE_MANAGER = 90
ROLE_GROUP_LEAD = 80
ROLE_STAFF = 70
ROLE_CANVASSER = 60
ROLE_NONE = 0

ROLE_NAMES = {
    ROLE_ADMIN: "Administrator",
    ROLE_MANAGER: "Manager",
    ROLE_GROUP_LEAD: "Group Leader",
    ROLE_STAFF: "Staff",
    ROLE_CANVASSER: "Canvasser",
    ROLE_NONE: "None",
}

# Capability bits
ACCESS_CREATE = 0x01
ACCESS_READ = 0x02
ACCESS_UPDATE = 0x04
ACCESS_DELETE = 0x08
ACCESS_BATCH = 0x10
ACCESS_NONE = 0x00
ACCESS_ALL = ACCESS_CREATE | ACCESS_READ | ACCESS_UPDATE | ACCESS_DELETE | ACCESS_BATCH

CAPABILITIES = {
    "create": ACCESS_CREATE,
    "read": ACCESS_READ,
    "update": ACCESS_UPDATE,
    "delete": ACCESS_DELETE,
    "batch": ACCESS_BATCH,
}

# Access scopes, in bit field order
SCOPE_ALL = "all"
SCOPE_ONE = "one"
SCOPE_OWN = "own"
SCOPES = [SCOPE_ALL, SCOPE_ONE, SCOPE_OWN]

SCOPE_BITS = 5
SCOPE_MASK = (1 << SCOPE_BITS) - 1

# Resource categories that carry a privilege mask on a role document
RESOURCE_VOTING_SYSTEMS = "votingsys"
RESOURCE_ROLES = "roles"
RESOURCE_USERS = "users"
RESOURCE_ELECTIONS = "elections"
RESOURCE_CANDIDATES = "candidates"
RESOURCE_CANVASSES = "canvasses"
RESOURCE_NOTICES = "notices"
RESOURCES = [RESOURCE_VOTING_SYSTEMS, RESOURCE_ROLES, RESOURCE_USERS, RESOURCE_ELECTIONS,
             RESOURCE_CANDIDATES, RESOURCE_CANVASSES, RESOURCE_NOTICES]


def scope_index(scope):
    try:
        return SCOPES.index(scope)
    except ValueError:
        raise ValueError("Unknown access scope %s" % scope)


def capability_bits(capabilities):
    """
    Convert an iterable of capability names to the corresponding bit field.
    """
    bits = ACCESS_NONE
    for cap in capabilities:
        if cap not in CAPABILITIES:
            raise ValueError("Unknown capability %s" % cap)
        bits |= CAPABILITIES[cap]
    return bits


def make_privilege(all=(), one=(), own=()):
    """
    Build a privilege mask from capability names per scope.
    For example, make_privilege(all=["read"], own=["read", "update"])
    """
    mask = ACCESS_NONE
    for scope, caps in zip(SCOPES, (all, one, own)):
        mask |= capability_bits(caps) << (SCOPE_BITS * scope_index(scope))
    return mask


def scope_bits(mask, scope):
    """
    The capability bit field of mask for the specified scope.
    """
    return (mask >> (SCOPE_BITS * scope_index(scope))) & SCOPE_MASK


def decode_privilege(mask, scope):
    """
    The set of capability names granted by mask at scope.
    """
    bits = scope_bits(mask or 0, scope)
    return { name for name, bit in CAPABILITIES.items() if bits & bit }


def mask_has_capability(mask, capability, scope):
    if capability not in CAPABILITIES:
        raise ValueError("Unknown capability %s" % capability)
    return bool(scope_bits(mask or 0, scope) & CAPABILITIES[capability])


def role_has_privilege(role, resource, capability, scope=SCOPE_ALL):
    """
    Check if the role document grants capability at scope on the resource category.
    :param role - role document (dict) with a privilege mask per resource
    :param resource - resource category, for example, RESOURCE_NOTICES
    :param capability - one of create, read, update, delete or batch
    """
    if not role:
        return False
    return mask_has_capability(role.get(resource, 0), capability, scope)


# Default privileges for the canonical roles; used when initializing the roles collection.
_EVERYTHING = list(CAPABILITIES.keys())
_READ_ONLY = ["read"]
_EDIT = ["create", "read", "update", "delete"]

DEFAULT_PRIVILEGES = {
    ROLE_ADMIN: { res: make_privilege(all=_EVERYTHING, one=_EVERYTHING, own=_EVERYTHING) for res in RESOURCES },
    ROLE_MANAGER: dict(
        { res: make_privilege(all=_EDIT, one=_EDIT, own=_EVERYTHING) for res in RESOURCES },
        **{ RESOURCE_ROLES: make_privilege(all=_READ_ONLY, one=_READ_ONLY, own=_READ_ONLY) }),
    ROLE_GROUP_LEAD: dict(
        { res: make_privilege(all=_READ_ONLY, one=_EDIT, own=_EDIT) for res in RESOURCES },
        **{ RESOURCE_CANVASSES: make_privilege(all=_EDIT, one=_EDIT, own=_EDIT),
            RESOURCE_ROLES: make_privilege(one=_READ_ONLY, own=_READ_ONLY) }),
    ROLE_STAFF: dict(
        { res: make_privilege(all=_READ_ONLY, one=_READ_ONLY, own=_EDIT) for res in RESOURCES },
        **{ RESOURCE_ROLES: make_privilege(own=_READ_ONLY) }),
    ROLE_CANVASSER: dict(
        { res: make_privilege(one=_READ_ONLY, own=["read", "update"]) for res in RESOURCES },
        **{ RESOURCE_ROLES: make_privilege(own=_READ_ONLY),
            RESOURCE_NOTICES: make_privilege(all=_READ_ONLY, one=_READ_ONLY) }),
    ROLE_NONE: dict(
        { res: ACCESS_NONE for res in RESOURCES },
        **{ RESOURCE_USERS: make_privilege(own=["read", "update"]),
            RESOURCE_NOTICES: make_privilege(all=_READ_ONLY, one=_READ_ONLY) }),
}


def default_role_documents():
    """
    The canonical role documents, one per role level.
    """
    ret = []
    for level in sorted(ROLE_NAMES.keys(), reverse=True):
        doc = { "name": ROLE_NAMES[level], "level": level }
        doc.update(DEFAULT_PRIVILEGES[level])
        ret.append(doc)
    return ret
