"""
Hello: HTTP-triggered smoke-test function.

Returns the same JSON body as GET /api/hello so a deployment can be checked
without the rest of the app.
"""

import json
import logging

from firebase_functions import https_fn

from expense_pwa.api import hello_payload

logger = logging.getLogger(__name__)


@https_fn.on_request()
def hello_world(req: https_fn.Request) -> https_fn.Response:
    logger.info("hello_world invoked")
    return https_fn.Response(
        json.dumps(hello_payload()),
        status=200,
        mimetype="application/json",
    )
