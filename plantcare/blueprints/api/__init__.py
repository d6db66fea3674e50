"""
PlantCare API Module
====================

One blueprint, split by concern:
- collections.py: authoritative collection store (the remote backend's server side)
- plants.py: plant CRUD, search, backup/restore, maintenance
- care.py: quick-log, bulk-log and care history
- views.py: task buckets, calendar projection, per-plant status
"""

from flask import Blueprint

from plantcare.utils.http import error_response

# Create blueprint here to avoid circular imports
collections_api = Blueprint("collections_api", __name__)


@collections_api.errorhandler(404)
def not_found(error):
    """Handle 404 errors"""
    return error_response("Resource not found", 404)


@collections_api.errorhandler(405)
def method_not_allowed(error):
    """Handle 405 errors"""
    return error_response("Method not allowed", 405)


@collections_api.errorhandler(500)
def internal_error(error):
    """Handle 500 errors"""
    return error_response("Internal server error", 500)


# Import submodules to register routes (must be after blueprint creation)
from . import care, collections, plants, views  # noqa: E402,F401

__all__ = ["collections_api"]
