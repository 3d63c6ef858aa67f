# Utils package for Tastelog

# Geometry helpers
from .geo import (
    haversine_meters,
    center_of,
)

# Kakao category -> taste category mapping
from .categories import (
    TRACKED_CATEGORIES,
    KAKAO_GROUP_CODES,
    map_category,
)

__all__ = [
    'haversine_meters',
    'center_of',
    'TRACKED_CATEGORIES',
    'KAKAO_GROUP_CODES',
    'map_category',
]
