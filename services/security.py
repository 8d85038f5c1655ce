'''
Authentication and role based access control for the web service endpoints.

Callers authenticate using a JSON web token; the token's payload (the principal) carries the user's id, username and role id.
Each endpoint is wrapped in a gate decorator that checks the token and then that the level of the caller's role is within a range.
For example,
    @blueprint.route("/db/roles/<obj_id>", methods=["PUT"])
    @context.security.is_admin
    def svc_update_role(obj_id):
The role is read from the database on every check; so changes to a role take effect on the next request.
'''

import logging
import datetime
from functools import wraps

import jwt
import pytz
from flask import request, g

from dal.privileges import ROLE_ADMIN, ROLE_MANAGER, ROLE_GROUP_LEAD, ROLE_STAFF, ROLE_CANVASSER, ROLE_NONE, \
    SCOPE_ALL, role_has_privilege
from dal.utils import to_object_id
from services.errors import AppError, get_error, \
    APPERR_CANT_VERIFY_TOKEN, APPERR_NO_TOKEN, APPERR_SESSION_EXPIRED, APPERR_UNKNOWN_ROLE, \
    APPERR_UNKNOWN_ROLE_INTERNAL, APPERR_ROLE_NOPRIVILEGES, APPERR_USER_URL

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
TOKEN_HEADER = "x-access-token"

SOURCE_WEB = "web"
SOURCE_MOBILE = "mobile"

# The principal used for all requests when authentication is disabled in development
DEV_ADMIN_USERNAME = "dev-admin"
DEV_ADMIN_ID = "123456789012345678901234"
DEV_ADMIN_TOKEN = "dev_fake_admin_token"

# Token payload fields that are regenerated when a token is signed
_SIGNING_CLAIMS = ["exp", "iat", "signature"]


class RoleRepository(object):
    """
    Read access to the role documents.
    :param roles_entity - the dal.entity.Entity for roles
    """
    def __init__(self, roles_entity):
        self.roles_entity = roles_entity

    def find_by_id(self, role_id):
        oid = to_object_id(role_id)
        if oid is None:
            return None
        return self.roles_entity.find_one({"_id": oid})

    def find_by_level(self, level):
        return self.roles_entity.find_one({"level": level})


class AccessGate(object):
    """
    :param roles - a RoleRepository
    :param secret_key - the key used to sign tokens
    :param token_life_web - the lifetime in seconds of tokens issued to web clients
    :param token_life_mobile - the lifetime in seconds of tokens issued to mobile clients
    :param disable_auth - development only; every request is made as an administrator
    """
    def __init__(self, roles, secret_key, token_life_web=3600, token_life_mobile=30*24*3600, disable_auth=False):
        self.roles = roles
        self.secret_key = secret_key
        self.token_life_web = token_life_web
        self.token_life_mobile = token_life_mobile
        self.disable_auth = disable_auth
        if disable_auth:
            logger.warning("Authentication is disabled; all requests are made as an administrator")

    # Tokens

    def extract_token(self):
        """
        Get the token from the JSON body, the query string or the headers of the current request.
        """
        body = request.get_json(silent=True)
        if isinstance(body, dict) and body.get("token"):
            return body["token"]
        if request.args.get("token"):
            return request.args["token"]
        if request.headers.get(TOKEN_HEADER):
            return request.headers[TOKEN_HEADER]
        authz = request.headers.get("Authorization", "")
        if authz.startswith("Bearer "):
            return authz[len("Bearer "):].strip()
        return None

    def verify_token(self, token):
        """
        :return: The decoded payload of the token
        :raises AppError if there is no token or it cannot be verified
        """
        if not token:
            raise get_error(APPERR_NO_TOKEN)
        try:
            return jwt.decode(token, self.secret_key, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise get_error(APPERR_SESSION_EXPIRED)
        except jwt.InvalidTokenError as e:
            logger.info("Cannot verify token %s", e)
            raise get_error(APPERR_CANT_VERIFY_TOKEN)

    def token_life(self, source=None):
        return self.token_life_mobile if source == SOURCE_MOBILE else self.token_life_web

    def get_token(self, payload, source=None):
        """
        Sign a new token for the payload.
        :param source - web or mobile; picks the lifetime of the token
        :return: {"token": ..., "expires": <expiry as a HTTP date string>}
        """
        now = datetime.datetime.now(pytz.utc)
        expires = now + datetime.timedelta(seconds=self.token_life(source or payload.get("source")))
        claims = { k: v for k, v in payload.items() if k not in _SIGNING_CLAIMS }
        if source:
            claims["source"] = source
        claims["iat"] = now
        claims["exp"] = expires
        token = jwt.encode(claims, self.secret_key, algorithm=JWT_ALGORITHM)
        return {"token": token, "expires": expires.strftime("%a, %d %b %Y %H:%M:%S GMT")}

    def refresh_token(self, old_token, source=None):
        """
        Sign a new token with the payload of a verified token.
        """
        return self.get_token(self.verify_token(old_token), source=source)

    # Checks

    def verify_credentials(self):
        """
        Establish the principal for the current request; stored in flask.g.principal.
        """
        if "principal" in g:
            return g.principal
        if self.disable_auth:
            role = self.roles.find_by_level(ROLE_ADMIN)
            if not role:
                logger.error("Unable to find the administrator role")
                raise get_error(APPERR_UNKNOWN_ROLE_INTERNAL)
            principal = {"username": DEV_ADMIN_USERNAME, "_id": DEV_ADMIN_ID, "role": str(role["_id"])}
            token = DEV_ADMIN_TOKEN
        else:
            token = self.extract_token()
            principal = self.verify_token(token)
        g.principal = principal
        g.token = token
        return principal

    def get_role(self, principal, internal=False):
        """
        The role document of the principal.
        :param internal - True if the role is resolved as part of another operation rather than as an access check
        """
        role = self.roles.find_by_id(principal.get("role"))
        if role is None:
            logger.warning("Unknown role %s for %s", principal.get("role"), principal.get("username"))
            raise get_error(APPERR_UNKNOWN_ROLE_INTERNAL if internal else APPERR_UNKNOWN_ROLE)
        return role

    def verify_access_level(self, min_level, max_level):
        """
        Check that the level of the caller's role is in the inclusive range [min_level, max_level].
        """
        principal = self.verify_credentials()
        role = self.get_role(principal)
        if role["level"] < min_level or role["level"] > max_level:
            logger.info("%s with role level %s is not in range [%s, %s]", principal.get("username"), role["level"], min_level, max_level)
            raise get_error(APPERR_ROLE_NOPRIVILEGES)
        g.role = role
        return role

    def verify_self(self, obj_id):
        """
        Check that the target of the request is the caller.
        """
        principal = self.verify_credentials()
        if obj_id is None or str(obj_id) != str(principal.get("_id")):
            raise get_error(APPERR_USER_URL)
        return principal

    def verify_self_or_level(self, obj_id, min_level, max_level):
        """
        The caller passes if they are the target of the request; else, their role level must be in range.
        Only a failed self check falls back to the level check; authentication failures do not.
        """
        try:
            return self.verify_self(obj_id)
        except AppError as e:
            if e.app_code != APPERR_USER_URL:
                raise
        return self.verify_access_level(min_level, max_level)

    def verify_privilege(self, resource, capability, scope=SCOPE_ALL):
        principal = self.verify_credentials()
        role = self.get_role(principal)
        if not role_has_privilege(role, resource, capability, scope):
            logger.info("Role %s does not have %s on %s at scope %s", role.get("name"), capability, resource, scope)
            raise get_error(APPERR_ROLE_NOPRIVILEGES)
        g.role = role
        return role

    def get_current_user_id(self):
        principal = g.get("principal")
        return principal.get("_id") if principal else None

    # Decorators

    def authentication_required(self, wrapped_function):
        """
        Any caller with a valid token.
        """
        @wraps(wrapped_function)
        def function_interceptor(*args, **kwargs):
            self.verify_credentials()
            return wrapped_function(*args, **kwargs)
        return function_interceptor

    def level_required(self, min_level, max_level):
        def decorator(wrapped_function):
            @wraps(wrapped_function)
            def function_interceptor(*args, **kwargs):
                self.verify_access_level(min_level, max_level)
                return wrapped_function(*args, **kwargs)
            return function_interceptor
        return decorator

    def self_or_level_required(self, min_level, max_level, id_arg="obj_id"):
        """
        The target id is the id_arg URL argument of the endpoint.
        """
        def decorator(wrapped_function):
            @wraps(wrapped_function)
            def function_interceptor(*args, **kwargs):
                self.verify_self_or_level(kwargs.get(id_arg), min_level, max_level)
                return wrapped_function(*args, **kwargs)
            return function_interceptor
        return decorator

    def privilege_required(self, resource, capability, scope=SCOPE_ALL):
        def decorator(wrapped_function):
            @wraps(wrapped_function)
            def function_interceptor(*args, **kwargs):
                self.verify_privilege(resource, capability, scope)
                return wrapped_function(*args, **kwargs)
            return function_interceptor
        return decorator

    def no_check(self, wrapped_function):
        """
        Always passes; for helpers called from endpoints that have already been checked.
        """
        return wrapped_function

    # Named gates; is_X is exactly level X, has_X_access is level X or above.

    def is_admin(self, f):
        return self.level_required(ROLE_ADMIN, ROLE_ADMIN)(f)

    def is_manager(self, f):
        return self.level_required(ROLE_MANAGER, ROLE_MANAGER)(f)

    def is_group_lead(self, f):
        return self.level_required(ROLE_GROUP_LEAD, ROLE_GROUP_LEAD)(f)

    def is_staff(self, f):
        return self.level_required(ROLE_STAFF, ROLE_STAFF)(f)

    def is_canvasser(self, f):
        return self.level_required(ROLE_CANVASSER, ROLE_CANVASSER)(f)

    def is_public(self, f):
        return self.level_required(ROLE_NONE, ROLE_NONE)(f)

    def has_admin_access(self, f):
        return self.level_required(ROLE_ADMIN, ROLE_ADMIN)(f)

    def has_manager_access(self, f):
        return self.level_required(ROLE_MANAGER, ROLE_ADMIN)(f)

    def has_group_lead_access(self, f):
        return self.level_required(ROLE_GROUP_LEAD, ROLE_ADMIN)(f)

    def has_staff_access(self, f):
        return self.level_required(ROLE_STAFF, ROLE_ADMIN)(f)

    def has_canvasser_access(self, f):
        return self.level_required(ROLE_CANVASSER, ROLE_ADMIN)(f)

    def has_public_access(self, f):
        return self.level_required(ROLE_NONE, ROLE_ADMIN)(f)

    def self_or_admin(self, f):
        return self.self_or_level_required(ROLE_ADMIN, ROLE_ADMIN)(f)

    def self_or_manager(self, f):
        return self.self_or_level_required(ROLE_MANAGER, ROLE_MANAGER)(f)

    def self_or_group_lead(self, f):
        return self.self_or_level_required(ROLE_GROUP_LEAD, ROLE_GROUP_LEAD)(f)

    def self_or_staff(self, f):
        return self.self_or_level_required(ROLE_STAFF, ROLE_STAFF)(f)

    def self_or_canvasser(self, f):
        return self.self_or_level_required(ROLE_CANVASSER, ROLE_CANVASSER)(f)

    def self_or_has_admin_access(self, f):
        return self.self_or_level_required(ROLE_ADMIN, ROLE_ADMIN)(f)

    def self_or_has_manager_access(self, f):
        return self.self_or_level_required(ROLE_MANAGER, ROLE_ADMIN)(f)

    def self_or_has_group_lead_access(self, f):
        return self.self_or_level_required(ROLE_GROUP_LEAD, ROLE_ADMIN)(f)

    def self_or_has_staff_access(self, f):
        return self.self_or_level_required(ROLE_STAFF, ROLE_ADMIN)(f)

    def self_or_has_canvasser_access(self, f):
        return self.self_or_level_required(ROLE_CANVASSER, ROLE_ADMIN)(f)
