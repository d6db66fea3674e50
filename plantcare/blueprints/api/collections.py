"""
Collection Store Endpoints
==========================

The wire contract used by ``RemoteCollectionStore``::

    GET /api/collections/<name>   -> {"ok": true, "data": [...]}
    PUT /api/collections/<name>   <- JSON array (replaces wholesale)

A collection that was never written reads as an empty array.
"""
from __future__ import annotations

import logging

from . import collections_api
from plantcare.blueprints.api._common import get_gateway, get_json_array, run_async, success
from plantcare.utils.http import safe_route

logger = logging.getLogger("collections_api.collections")


@collections_api.get("/collections/<name>")
@safe_route("Failed to read collection")
def get_collection(name: str):
    records = run_async(get_gateway().get_collection(name))
    return success(records)


@collections_api.put("/collections/<name>")
@safe_route("Failed to write collection")
def put_collection(name: str):
    records = get_json_array()
    run_async(get_gateway().set_collection(name, records))
    logger.info("Collection %s replaced via API (%d records)", name, len(records))
    return success({"collection": name, "count": len(records)})
