"""
API package initialization.
Registers all JSON blueprints of the Tastelog API.
"""

import logging

logger = logging.getLogger(__name__)

from .auth import auth_api
from .taste_records import taste_records_api
from .uploads import uploads_api
from .stays import stays_api
from .location import location_api
from .places import places_api
from .dashboard import dashboard_api
from .recommendations import recommendations_api
from .guilds import guilds_api
from .guild_records import guild_records_api
from .missions import missions_api

ALL_BLUEPRINTS = [
    auth_api,
    taste_records_api,
    uploads_api,
    stays_api,
    location_api,
    places_api,
    dashboard_api,
    recommendations_api,
    guilds_api,
    guild_records_api,
    missions_api,
]


def register_blueprints(app):
    """Register every API blueprint on the app."""
    for blueprint in ALL_BLUEPRINTS:
        app.register_blueprint(blueprint)
    logger.debug(f"Registered {len(ALL_BLUEPRINTS)} API blueprints")
