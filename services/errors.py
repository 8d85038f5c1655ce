'''
Application errors returned to clients.

Authentication and authorization failures carry a stable application error code (appCode) so clients can branch without parsing the message.
Errors are raised as AppError's and turned into the JSON error envelope by the error handlers in services.api_utils.
'''

import logging

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORISED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_INTERNAL_ERROR = 500
HTTP_NOT_IMPLEMENTED = 501

# Application error codes
APPERR_CANT_VERIFY_TOKEN = 1
APPERR_NO_TOKEN = 2
APPERR_SESSION_EXPIRED = 3
APPERR_UNKNOWN_ROLE = 4
APPERR_UNKNOWN_ROLE_INTERNAL = 5
APPERR_ROLE_NOPRIVILEGES = 6
APPERR_USER_URL = 7

_APP_ERRORS = {
    APPERR_CANT_VERIFY_TOKEN: ("You are not authenticated!", HTTP_UNAUTHORISED),
    APPERR_NO_TOKEN: ("Not logged in. Please login to continue.", HTTP_FORBIDDEN),
    APPERR_SESSION_EXPIRED: ("Session expired. Please login to continue.", HTTP_FORBIDDEN),
    APPERR_UNKNOWN_ROLE: ("Unknown role. You are not authorized to perform this operation!", HTTP_FORBIDDEN),
    APPERR_UNKNOWN_ROLE_INTERNAL: ("Unknown role.", HTTP_INTERNAL_ERROR),
    APPERR_ROLE_NOPRIVILEGES: ("You are not authorized to perform this operation!", HTTP_FORBIDDEN),
    APPERR_USER_URL: ("You are not authorized to perform this operation!", HTTP_FORBIDDEN),
}


class AppError(Exception):
    """
    An error with a HTTP status and an optional application error code.
    """
    def __init__(self, message, status=HTTP_INTERNAL_ERROR, app_code=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.app_code = app_code

    def to_dict(self):
        return error_reply(self.message, self.status, self.app_code)


class QueryDecodeError(AppError):
    """
    One or more problems with the query parameters of a request; the messages are joined with newlines.
    """
    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("\n".join(self.problems), HTTP_BAD_REQUEST)


class NotFoundError(AppError):
    def __init__(self, entity_name):
        super().__init__("Unknown %s identifier" % entity_name, HTTP_NOT_FOUND)


def get_error(app_code):
    """
    Make the AppError for an application error code.
    """
    if app_code in _APP_ERRORS:
        message, status = _APP_ERRORS[app_code]
        return AppError(message, status, app_code)
    logger.error("Unknown application error code %s", app_code)
    return AppError("Error %s" % app_code, HTTP_NOT_IMPLEMENTED, app_code)


def error_reply(message, status, app_code=None):
    """
    The JSON error envelope sent to clients.
    """
    error = {"status": status}
    if app_code is not None:
        error["appCode"] = app_code
    return {"message": message, "error": error}
