"""
REST endpoints for the connection tester.

Every server being tested exposes ``/time``; the server hosting the tester
additionally publishes the server list and thresholds::

    GET /api/ext/conntest/              -> "0.3.0"
    GET /api/ext/conntest/time?timestamp=1700000000000
                                        -> {"serverTimestamp": ..., "clientTimestamp": ...}
    GET /api/ext/conntest/servers       -> {"Name": {"url": ..., "country": ...}}
    GET /api/ext/conntest/thresholds    -> {"0": ..., "unreachable": ...}
"""
from __future__ import annotations

import logging

from aiohttp import web

from . import __version__
from .constants import API_ROOT
from .probe import TimestampPair, epoch_ms
from .serverconf import ServerListFile, ThresholdFile

logger = logging.getLogger(__name__)

SERVER_LIST_KEY = web.AppKey("server_list", ServerListFile)
THRESHOLDS_KEY = web.AppKey("thresholds", ThresholdFile)


async def get_version(request: web.Request) -> web.Response:
    return web.json_response(__version__)


async def get_timestamp(request: web.Request) -> web.Response:
    raw = request.query.get("timestamp")
    try:
        client_timestamp = int(raw) if raw is not None else None
    except ValueError:
        client_timestamp = None

    pair = TimestampPair(server_timestamp=epoch_ms(), client_timestamp=client_timestamp)
    return web.json_response(
        pair.to_dict(),
        headers={
            "Access-Control-Allow-Origin": "*",
            "Cache-Control": "no-store",
        },
    )


async def get_servers(request: web.Request) -> web.Response:
    servers = request.app[SERVER_LIST_KEY].get_value()
    return web.json_response({name: s.to_dict() for name, s in servers.items()})


async def get_thresholds(request: web.Request) -> web.Response:
    return web.json_response(request.app[THRESHOLDS_KEY].get_value())


def create_app(config_dir: str) -> web.Application:
    app = web.Application()
    app[SERVER_LIST_KEY] = ServerListFile(config_dir)
    app[THRESHOLDS_KEY] = ThresholdFile(config_dir)
    app.router.add_get(API_ROOT + "/", get_version)
    app.router.add_get(API_ROOT + "/time", get_timestamp)
    app.router.add_get(API_ROOT + "/servers", get_servers)
    app.router.add_get(API_ROOT + "/thresholds", get_thresholds)
    return app


def run_server(config_dir: str, host: str = "0.0.0.0", port: int = 8080) -> None:
    logger.info("Serving connection test API from %s on %s:%d", config_dir, host, port)
    web.run_app(create_app(config_dir), host=host, port=port, print=None)
