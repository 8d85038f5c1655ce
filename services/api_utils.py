'''
Helpers shared by the web service blueprints.
Responses are JSON; encoded with dal.utils.JSONEncoder so ObjectId's and datetimes serialize.
Errors are raised as exceptions and converted into the JSON error envelope by the handlers registered here.
'''

import logging

from flask import Response, request, current_app
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from werkzeug.exceptions import HTTPException

from dal.utils import JSONEncoder
from services.errors import AppError, error_reply, HTTP_BAD_REQUEST, HTTP_CONFLICT, HTTP_INTERNAL_ERROR

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NO_CONTENT = 204


def addHeaders(resp):
    # We don't send html with these blueprints; so we use that as a default.
    if 'Content-Type' not in resp.headers or resp.headers['Content-Type'].startswith('text/html'):
        resp.headers['Content-Type'] = 'application/json; charset=utf-8'
    return resp


def json_response(payload, status=HTTP_OK):
    return Response(JSONEncoder().encode(payload), status=status, mimetype="application/json")


def logAndAbort(error_msg, ret_status=HTTP_INTERNAL_ERROR, app_code=None):
    logger.error(error_msg)
    return json_response(error_reply(error_msg, ret_status, app_code), status=ret_status)


def request_json():
    """
    The JSON body of the current request; the token, if sent in the body, is removed.
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return {}
    return { k: v for k, v in body.items() if k != "token" }


def _app_error(e):
    if e.status >= HTTP_INTERNAL_ERROR:
        logger.error("%s (status %s, app code %s)", e.message, e.status, e.app_code)
    else:
        logger.info("%s (status %s, app code %s)", e.message, e.status, e.app_code)
    return json_response(e.to_dict(), status=e.status)


def _validation_error(e):
    messages = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        messages.append("%s: %s" % (loc, err.get("msg")) if loc else err.get("msg"))
    return logAndAbort("\n".join(messages), HTTP_BAD_REQUEST)


def _duplicate_key_error(e):
    logger.info("Duplicate key %s", e)
    return json_response(error_reply("Duplicate value; a document with this value already exists", HTTP_CONFLICT), status=HTTP_CONFLICT)


def _internal_error(e):
    if isinstance(e, HTTPException):
        return json_response(error_reply(e.description, e.code), status=e.code)
    logger.exception("Unexpected error")
    message = str(e) if current_app.debug else "Internal server error"
    return json_response(error_reply(message, HTTP_INTERNAL_ERROR), status=HTTP_INTERNAL_ERROR)


def register_error_handlers(blueprint):
    """
    Add the JSON response headers and the error handlers to a blueprint.
    """
    blueprint.after_request(addHeaders)
    blueprint.register_error_handler(AppError, _app_error)
    blueprint.register_error_handler(ValidationError, _validation_error)
    blueprint.register_error_handler(DuplicateKeyError, _duplicate_key_error)
    return blueprint


def register_app_error_handlers(app):
    """
    Errors that are not specific to a blueprint, including unexpected errors.
    """
    app.register_error_handler(AppError, _app_error)
    app.register_error_handler(ValidationError, _validation_error)
    app.register_error_handler(DuplicateKeyError, _duplicate_key_error)
    app.register_error_handler(Exception, _internal_error)
