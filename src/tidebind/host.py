"""CherryPy application exposing a dispatcher over HTTP."""
from __future__ import annotations

import json
import logging
import typing as t

import cherrypy

from .commands import Dispatcher
from .errors import CommandFailed, UnknownCommandError, ValueEncodingError

logger = logging.getLogger(__name__)

# Declared error payloads; every other non-200 status carries {"error": message}.
TYPED_ERROR_STATUS = 422


class CommandRouter:
    """
    Mounted at the invoke root. ``POST /<wire-name>`` with a JSON object body
    dispatches one command; ``GET /`` lists the wire names.
    """

    def __init__(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    @cherrypy.expose
    def default(self, *vpath, **_params):
        """Dispatch ``/<wire-name>`` to the matching command."""
        segments = [s for s in vpath if s]
        method = (cherrypy.request.method or "GET").upper()

        if not segments:
            return _serialize({"commands": self.dispatcher.names()})
        if method != "POST":
            raise cherrypy.HTTPError(405, "Method Not Allowed")

        status, body = self.call("/".join(segments), _read_json_body())
        cherrypy.response.status = status
        return _serialize(body)

    def call(self, wire_name: str, raw_args: t.Any) -> tuple[int, t.Any]:
        """Run one command and map its outcome to ``(http_status, json_body)``."""
        try:
            return 200, self.dispatcher.dispatch(wire_name, raw_args)
        except UnknownCommandError as exc:
            return 404, {"error": str(exc)}
        except ValueEncodingError as exc:
            logger.debug("rejected call to %s: %s", wire_name, exc)
            return 400, {"error": str(exc)}
        except CommandFailed as exc:
            return TYPED_ERROR_STATUS, exc.error


def mount_commands(dispatcher: Dispatcher, mount_path: str = "/invoke") -> CommandRouter:
    """Mount a :class:`CommandRouter` for ``dispatcher`` on ``cherrypy.tree``."""
    router = CommandRouter(dispatcher)
    cherrypy.tree.mount(router, "/" + mount_path.strip("/"))
    logger.debug("mounted %d command(s) at %s", len(dispatcher.names()), mount_path)
    return router


def _serialize(obj: t.Any) -> bytes:
    """Serialize a JSON-compatible value to a response body."""
    cherrypy.response.headers["Content-Type"] = "application/json; charset=utf-8"
    return json.dumps(obj).encode("utf-8")


def _read_json_body() -> t.Any:
    """Parse a JSON request body, returning None when the request carries none."""
    ct = (cherrypy.request.headers.get("Content-Type") or "").lower()
    if "application/json" not in ct:
        return None

    raw = cherrypy.request.body.read() or b"{}"
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise cherrypy.HTTPError(400, "Invalid JSON")
