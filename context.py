import logging
import os

from pymongo import MongoClient

import dal.entities as entities
from dal.entity import bind_database
from services.security import AccessGate, RoleRepository

logger = logging.getLogger(__name__)

# Application context.
app = None

MONGODB_HOST=os.environ.get('MONGODB_HOST', "localhost")
MONGODB_PORT=int(os.environ.get('MONGODB_PORT', 27017))
MONGODB_URL=os.environ.get("MONGODB_URL", None)
if not MONGODB_URL:
    MONGODB_URL = "mongodb://" + MONGODB_HOST + ":" + str(MONGODB_PORT) + "/admin"

MONGODB_USERNAME=os.environ.get('MONGODB_USERNAME', None)
MONGODB_PASSWORD=os.environ.get('MONGODB_PASSWORD', None)

CANVASSTRAC_DB = os.environ.get("CANVASSTRAC_DB", "canvassTrac")

# Tokens are signed with this key; always set this in production.
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "This is a secret key that is somewhat temporary.")
TOKEN_LIFE_WEB = int(os.environ.get("TOKEN_LIFE_WEB", 3600))
TOKEN_LIFE_MOBILE = int(os.environ.get("TOKEN_LIFE_MOBILE", 30*24*3600))


def env_flag(name):
    """
    True only for an explicit true value; so DISABLE_AUTH=0 or DISABLE_AUTH=false leave the flag off.
    """
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


# Development only; every request is made as an administrator.
DISABLE_AUTH = env_flag("DISABLE_AUTH")
ACCESS_TEST_ROUTES = env_flag("ACCESS_TEST_ROUTES")

# Password given to users created without one.
DEFAULT_PASSWORD = os.environ.get("DEFAULT_PASSWORD", "password")

# Thread pool size for resolving queries that span several collections.
RESOLVER_WORKERS = int(os.environ.get("RESOLVER_WORKERS", 8))

# The client connects lazily; so importing this module does not need a running server.
canvassclient = MongoClient(host=MONGODB_URL, username=MONGODB_USERNAME, password=MONGODB_PASSWORD, tz_aware=True, connect=False)
canvassdb = canvassclient[CANVASSTRAC_DB]
bind_database(canvassdb)

security = AccessGate(RoleRepository(entities.roles), JWT_SECRET_KEY,
                      token_life_web=TOKEN_LIFE_WEB, token_life_mobile=TOKEN_LIFE_MOBILE, disable_auth=DISABLE_AUTH)
