'''
Endpoints for users; registration, login and token refresh plus the CRUD endpoints.

A user is created together with the person it belongs to; the person is sent as a sub document in the request body and its owner is the user.
Passwords are only stored as Werkzeug password hashes.
'''

import logging

from flask import g
from werkzeug.security import generate_password_hash, check_password_hash

import context
import dal.entities as entities
from dal.privileges import ROLE_ADMIN, ROLE_NONE
from services.api_utils import json_response, request_json, HTTP_CREATED, HTTP_OK
from services.crud import CrudService
from services.errors import AppError, NotFoundError, get_error, APPERR_UNKNOWN_ROLE_INTERNAL, HTTP_BAD_REQUEST, HTTP_UNAUTHORISED, HTTP_CONFLICT
from services.people import PeopleService

logger = logging.getLogger(__name__)


class UserService(CrudService):
    def __init__(self):
        security = context.security
        super().__init__(entities.users,
                         read_gate=security.self_or_admin,
                         write_gate=security.is_admin,
                         list=security.is_admin,
                         count=security.has_canvasser_access,
                         update=security.self_or_admin)
        self.people = PeopleService()

    def check_role(self, role_id):
        """
        :return: The role document
        :raises AppError if the role does not exist
        """
        role = context.security.roles.find_by_id(role_id)
        if role is None:
            logger.error("Role %s not found", role_id)
            raise get_error(APPERR_UNKNOWN_ROLE_INTERNAL)
        return role

    def user_fields(self, body):
        """
        The fields of the user document from a request body; the password is replaced by its hash.
        """
        fields = { k: v for k, v in body.items() if k not in ("person", "password", "password_hash", "oauth_id", "oauth_token") }
        if "password" in body:
            fields["password_hash"] = generate_password_hash(body["password"])
        return fields

    def create_user(self, body):
        """
        Create the user and its person; if the person cannot be created, the user is removed.
        """
        body = dict(body)
        if body.get("username") and self.entity.find_one({"username": body["username"]}):
            raise AppError("A user with the username %s already exists" % body["username"], HTTP_CONFLICT)
        if not body.get("password"):
            body["password"] = context.DEFAULT_PASSWORD
        user = self.entity.create(self.user_fields(body))
        try:
            person = body.get("person")
            if isinstance(person, dict):
                person = self.people.create_composite(person, owner=user["_id"])
                user = self.entity.update(user["_id"], {"person": person["_id"]})
        except Exception:
            logger.warning("Removing user %s as its person could not be created", user["_id"])
            self.entity.remove_by_id(user["_id"])
            raise
        return self.entity.populate(user)

    def create_doc(self):
        body = request_json()
        self.check_role(body.get("role"))
        user = self.create_user(body)
        logger.info("Created user %s", user["username"])
        return json_response(self.client_view(user), status=HTTP_CREATED)

    def register_user(self):
        """
        Public registration; the new user gets the role with no privileges.
        """
        role = context.security.roles.find_by_level(ROLE_NONE)
        if role is None:
            logger.error("Cannot find the role for level %s", ROLE_NONE)
            raise get_error(APPERR_UNKNOWN_ROLE_INTERNAL)
        body = request_json()
        body["role"] = role["_id"]
        user = self.create_user(body)
        logger.info("Registered user %s", user["username"])
        return json_response(self.client_view(user), status=HTTP_CREATED)

    def update_doc(self, obj_id):
        body = request_json()
        existing = self.entity.find_by_id(obj_id)
        if existing is None:
            raise NotFoundError(self.entity.name)
        if "role" in body:
            self.check_role(body["role"])
            if str(body["role"]) != str(existing.get("role")):
                # Only an administrator can change the role of a user, including their own
                context.security.verify_access_level(ROLE_ADMIN, ROLE_ADMIN)
        fields = self.user_fields(body)
        person = body.get("person")
        if isinstance(person, dict):
            if existing.get("person") is not None:
                self.people.update_composite(existing["person"], person)
            else:
                fields["person"] = self.people.create_composite(person, owner=existing["_id"])["_id"]
        user = self.entity.update(existing["_id"], fields)
        logger.info("Updated user %s", user["username"])
        return json_response(self.client_view(self.entity.populate(user)))

    def delete_doc(self, obj_id):
        user = self.entity.remove_by_id(obj_id)
        if user is None:
            raise NotFoundError(self.entity.name)
        if user.get("person") is not None:
            self.people.delete_composite(user["person"])
        logger.info("Deleted user %s", user["username"])
        return json_response(self.client_view(user))

    def login(self):
        """
        Check the username and password and issue a token.
        The optional source (web or mobile) in the body selects the lifetime of the token.
        """
        body = request_json()
        username, password = body.get("username"), body.get("password")
        if not username or not password:
            raise AppError("Please specify a username and password", HTTP_BAD_REQUEST)
        user = self.entity.find_one({"username": username})
        if user is None or not user.get("password_hash") or not check_password_hash(user["password_hash"], password):
            logger.info("Failed login for %s", username)
            raise AppError("Invalid username or password", HTTP_UNAUTHORISED)
        payload = {"username": user["username"], "_id": str(user["_id"]), "role": str(user["role"])}
        token = context.security.get_token(payload, source=body.get("source"))
        logger.info("Login for %s", username)
        return json_response({
            "message": "Login successful!",
            "success": True,
            "token": token["token"],
            "expires": token["expires"],
            "id": user["_id"],
        }, status=HTTP_OK)

    def refresh(self):
        body = request_json()
        token = context.security.refresh_token(g.token, source=body.get("source"))
        logger.debug("Refreshed token for user %s", context.security.get_current_user_id())
        return json_response({"success": True, "token": token["token"], "expires": token["expires"]})

    def logout(self):
        # Tokens are not tracked on the server; the client discards its token.
        return json_response({"status": "Bye!"})

    def add_extra_routes(self, blueprint):
        security = context.security
        blueprint.add_url_rule("/register", "register", security.no_check(self.register_user), methods=["POST"])
        blueprint.add_url_rule("/login", "login", security.no_check(self.login), methods=["POST"])
        blueprint.add_url_rule("/refresh", "refresh", security.authentication_required(self.refresh), methods=["POST"])
        blueprint.add_url_rule("/logout", "logout", security.no_check(self.logout), methods=["GET"])
