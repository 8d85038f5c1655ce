from flask import Flask
import logging
import sys

import context
from services.api_utils import register_app_error_handlers, json_response, addHeaders
from services.canvasstrac import make_blueprints


# Initialize application.
app = Flask("canvasstrac")
app.debug = context.env_flag('DEBUG')
context.app = app

if app.debug:
    print("Sending all debug messages to the console")
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    logging.getLogger('pymongo').setLevel(logging.INFO)
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.DEBUG)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)
    root.addHandler(ch)

logger = logging.getLogger(__name__)


@app.route("/status", methods=["GET"])
def status():
    """
    Checks the connection to the database.
    """
    info = context.canvassdb.command("buildinfo")
    return json_response({"status": "OK", "mongodb_version": info.get("version")})

app.after_request(addHeaders)


# Register routes.
for blueprint in make_blueprints():
    app.register_blueprint(blueprint)

if context.ACCESS_TEST_ROUTES:
    from services.access import access_blueprint
    app.register_blueprint(access_blueprint)

register_app_error_handlers(app)

logger.info("Server initialization complete")

if __name__ == '__main__':
    print("Please use gunicorn for development as well.")
    sys.exit(-1)
