"""
Stay Service

Turns periodic location pings into Stay windows ("dwell detection") and
keeps each user's live location.

A ping extends the user's latest stay when it lands within
``STAY_MERGE_DISTANCE_M`` of it and no more than ``STAY_MERGE_GAP`` after
the stay's end. Otherwise it opens a new zero-length stay. Once a stay has
lasted ``MIN_STAY_DURATION`` it is tagged with the nearest Kakao place.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from ..domain.models import LiveLocation, Place, Stay, from_epoch_ms, now_utc
from ..errors import ServiceError
from ..utils.geo import haversine_meters
from ..utils.safe_kuzu_manager import get_safe_kuzu_manager

logger = logging.getLogger(__name__)

STAY_MERGE_DISTANCE_M = 50
STAY_MERGE_GAP = timedelta(minutes=5)
MIN_STAY_DURATION = timedelta(minutes=5)

_CREATE_STAY = """
CREATE (s:Stay {
    id: $id, user_id: $user_id, lat: $lat, lng: $lng,
    start_time: $start_time, end_time: $end_time,
    kakao_place_id: $kakao_place_id, category_name: $category_name,
    category_group_code: $category_group_code, mapped_category: $mapped_category,
    recommendation_points_awarded_at: $recommendation_points_awarded_at,
    created_at: $created_at
})
"""


class StayService:

    def __init__(self, kakao_client=None):
        self._kakao_client = kakao_client

    @property
    def db(self):
        return get_safe_kuzu_manager()

    @property
    def kakao(self):
        if self._kakao_client is None:
            from . import kakao_client
            return kakao_client
        return self._kakao_client

    # ------------------------------------------------------------------
    # Stays
    # ------------------------------------------------------------------

    def create_stay(self, user_id: str, lat: float, lng: float,
                    start_ms: Optional[float] = None, end_ms: Optional[float] = None) -> Stay:
        now = now_utc()
        start_time = from_epoch_ms(start_ms) if start_ms is not None else now
        end_time = from_epoch_ms(end_ms) if end_ms is not None else now
        stay = Stay(user_id=user_id, lat=lat, lng=lng, start_time=start_time, end_time=end_time)
        self.db.query(_CREATE_STAY, stay.to_dict(), operation='create_stay')
        return stay

    def get_latest_stay(self, user_id: str) -> Optional[Stay]:
        rows = self.db.query(
            """
            MATCH (s:Stay)
            WHERE s.user_id = $user_id
            RETURN s
            ORDER BY s.start_time DESC
            LIMIT 1
            """,
            {'user_id': user_id},
            operation='latest_stay',
        )
        return Stay.from_dict(rows[0]['s']) if rows else None

    def get_stay(self, stay_id: str) -> Optional[Stay]:
        rows = self.db.query("MATCH (s:Stay {id: $id}) RETURN s", {'id': stay_id}, operation='get_stay')
        return Stay.from_dict(rows[0]['s']) if rows else None

    def list_tagged_stays(self, user_ids: Iterable[str]) -> List[Stay]:
        """Stays of the given users that resolved to a taste category."""
        ids = sorted(set(user_ids))
        if not ids:
            return []
        rows = self.db.query(
            """
            MATCH (s:Stay)
            WHERE list_contains($user_ids, s.user_id) AND s.mapped_category IS NOT NULL
            RETURN s
            """,
            {'user_ids': ids},
            operation='list_tagged_stays',
        )
        return [Stay.from_dict(row['s']) for row in rows]

    def latest_stays_by_place(self, user_id: str) -> Dict[str, Stay]:
        """Most recent stay per Kakao place id for one user."""
        rows = self.db.query(
            """
            MATCH (s:Stay)
            WHERE s.user_id = $user_id AND s.kakao_place_id IS NOT NULL
            RETURN s
            ORDER BY s.end_time ASC
            """,
            {'user_id': user_id},
            operation='stays_by_place',
        )
        by_place: Dict[str, Stay] = {}
        for row in rows:
            stay = Stay.from_dict(row['s'])
            by_place[stay.kakao_place_id] = stay
        return by_place

    def has_min_stay_at_place(self, user_id: str, kakao_place_id: str) -> bool:
        rows = self.db.query(
            """
            MATCH (s:Stay)
            WHERE s.user_id = $user_id AND s.kakao_place_id = $place_id
            RETURN s.start_time AS start_time, s.end_time AS end_time
            """,
            {'user_id': user_id, 'place_id': kakao_place_id},
            operation='min_stay_check',
        )
        return any(row['end_time'] - row['start_time'] >= MIN_STAY_DURATION for row in rows)

    def tag_stay(self, stay: Stay, place: Place) -> None:
        stay.kakao_place_id = place.id
        stay.category_name = place.category_name
        stay.category_group_code = place.category_group_code
        stay.mapped_category = place.mapped_category
        self.db.query(
            """
            MATCH (s:Stay {id: $id})
            SET s.kakao_place_id = $kakao_place_id,
                s.category_name = $category_name,
                s.category_group_code = $category_group_code,
                s.mapped_category = $mapped_category
            """,
            {
                'id': stay.id,
                'kakao_place_id': place.id,
                'category_name': place.category_name,
                'category_group_code': place.category_group_code,
                'mapped_category': place.mapped_category,
            },
            operation='tag_stay',
        )

    # ------------------------------------------------------------------
    # Live location
    # ------------------------------------------------------------------

    def upsert_live_location(self, user_id: str, lat: float, lng: float) -> None:
        self.db.query(
            """
            MERGE (l:LiveLocation {user_id: $user_id})
            ON CREATE SET l.lat = $lat, l.lng = $lng, l.updated_at = $updated_at
            ON MATCH SET l.lat = $lat, l.lng = $lng, l.updated_at = $updated_at
            """,
            {'user_id': user_id, 'lat': lat, 'lng': lng, 'updated_at': now_utc()},
            operation='upsert_live_location',
        )

    def get_live_location(self, user_id: str) -> Optional[LiveLocation]:
        rows = self.db.query(
            "MATCH (l:LiveLocation {user_id: $user_id}) RETURN l",
            {'user_id': user_id},
            operation='get_live_location',
        )
        return LiveLocation.from_dict(rows[0]['l']) if rows else None

    def get_live_locations(self, user_ids: Iterable[str]) -> Dict[str, LiveLocation]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        rows = self.db.query(
            "MATCH (l:LiveLocation) WHERE list_contains($user_ids, l.user_id) RETURN l",
            {'user_ids': ids},
            operation='get_live_locations',
        )
        locations = [LiveLocation.from_dict(row['l']) for row in rows]
        return {loc.user_id: loc for loc in locations}

    def clear_live_location(self, user_id: str) -> None:
        self.db.query(
            "MATCH (l:LiveLocation {user_id: $user_id}) DELETE l",
            {'user_id': user_id},
            operation='clear_live_location',
        )

    # ------------------------------------------------------------------
    # Dwell detection
    # ------------------------------------------------------------------

    def record_location(self, user_id: str, lat: float, lng: float,
                        now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Handle one location ping.

        Returns ``{mode, stayId, tagged, durationMs}`` where mode is
        ``update`` when the latest stay was extended and ``create`` otherwise.
        """
        now = now or now_utc()
        self.upsert_live_location(user_id, lat, lng)

        latest = self.get_latest_stay(user_id)
        if latest and self._continues(latest, lat, lng, now):
            latest.end_time = now
            self.db.query(
                "MATCH (s:Stay {id: $id}) SET s.end_time = $end_time",
                {'id': latest.id, 'end_time': now},
                operation='extend_stay',
            )
            stay, mode = latest, 'update'
        else:
            stay = Stay(user_id=user_id, lat=lat, lng=lng, start_time=now, end_time=now)
            self.db.query(_CREATE_STAY, stay.to_dict(), operation='create_stay')
            mode = 'create'

        tagged = False
        if stay.end_time - stay.start_time >= MIN_STAY_DURATION and not stay.mapped_category:
            tagged = self._tag_with_nearest_place(stay)

        return {
            'mode': mode,
            'stayId': stay.id,
            'tagged': tagged,
            'durationMs': stay.duration_ms,
        }

    @staticmethod
    def _continues(stay: Stay, lat: float, lng: float, now: datetime) -> bool:
        distance = haversine_meters(stay.lat, stay.lng, lat, lng)
        gap = now - stay.end_time
        return distance <= STAY_MERGE_DISTANCE_M and gap <= STAY_MERGE_GAP

    def _tag_with_nearest_place(self, stay: Stay) -> bool:
        try:
            place = self.kakao.find_stayed_place(stay.lat, stay.lng)
        except ServiceError as e:
            # The ping itself succeeded; tagging is retried on the next one
            logger.warning(f"Place lookup for stay {stay.id} failed: {e.code} {e.message}")
            return False
        if place is None or not place.mapped_category:
            logger.debug(f"No tracked place near stay {stay.id}")
            return False

        self.tag_stay(stay, place)

        from . import recommendation_service
        recommendation_service.attach_stay(stay.user_id, place, stay.id)
        logger.info(f"Tagged stay {stay.id} with place {place.id} ({place.mapped_category})")
        return True
