"""
Recommendation Service

Scores nearby Kakao places by how often the user (or the guild members
standing with them) stayed in each taste category, caches the result per
user and awards guild points when a recommended place is visited.

Modes:
- PERSONAL: weights come from the caller's own stays.
- GUILD: at least one approved guild mate's live location is within
  ``GUILD_NEARBY_RADIUS_M``; weights pool the caller and those mates.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flask import current_app, has_app_context

from ..domain.models import (
    Place, Recommendation, RecommendationSource, Stay, isoformat, now_utc,
)
from ..errors import BadRequest
from ..utils.categories import TRACKED_CATEGORIES
from ..utils.geo import center_of, haversine_meters
from ..utils.safe_kuzu_manager import get_safe_kuzu_manager
from .guild_service import score_params, score_upsert_query

logger = logging.getLogger(__name__)

GUILD_NEARBY_RADIUS_M = 50
DEFAULT_RADIUS_M = 3000
ACHIEVEMENT_DETECTION_RADIUS_M = 3000
ACHIEVEMENT_POINTS = 50

NEARBY_MEMBERS_RADIUS_M = 500
NEARBY_PLACES_RADIUS_M = 3000

NO_LOCATION_MESSAGE = 'No current location yet. Allow location access and move once.'
NO_PLACES_MESSAGE = 'No places to recommend within 3km.'


def guild_nearby_radius() -> float:
    if has_app_context():
        return float(current_app.config.get('GUILD_NEARBY_RADIUS_M', GUILD_NEARBY_RADIUS_M))
    return GUILD_NEARBY_RADIUS_M


_CREATE_RECOMMENDATION = """
CREATE (r:Recommendation {
    id: $id, user_id: $user_id, guild_id: $guild_id, source: $source,
    stay_id: $stay_id, kakao_place_id: $kakao_place_id, name: $name,
    category_name: $category_name, category_group_code: $category_group_code,
    mapped_category: $mapped_category, x: $x, y: $y,
    distance_meters: $distance_meters, score: $score,
    road_address: $road_address, address: $address, phone: $phone,
    status: $status, created_at: $created_at
})
"""


def compute_weights(categories: Iterable[Optional[str]]) -> Tuple[Dict[str, float], bool]:
    """
    Share of each tracked category among the given stay categories.

    With no tracked stays every category gets an equal 1/7 and the second
    value (``has_taste_data``) is False.
    """
    counts = {category: 0 for category in TRACKED_CATEGORIES}
    for category in categories:
        if category in counts:
            counts[category] += 1

    total = sum(counts.values())
    if total == 0:
        equal = 1.0 / len(TRACKED_CATEGORIES)
        return {category: equal for category in TRACKED_CATEGORIES}, False
    return {category: count / total for category, count in counts.items()}, True


def score_places(places: List[Place], weights: Dict[str, float],
                 drop_unweighted: bool = False) -> List[Tuple[Place, float]]:
    """Pair each place with its category weight, highest first."""
    scored = []
    for place in places:
        weight = weights.get(place.mapped_category or '', 0.0)
        if drop_unweighted and weight <= 0:
            continue
        scored.append((place, weight))
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored


@dataclass
class GuildContext:
    mode: str = RecommendationSource.PERSONAL.value
    base_user_ids: List[str] = field(default_factory=list)
    guild_id: Optional[str] = None
    guild_name: Optional[str] = None
    nearby_guild_member_count: int = 0

    @property
    def is_guild(self) -> bool:
        return self.mode == RecommendationSource.GUILD.value and self.guild_id is not None

    def to_api(self) -> Dict[str, Any]:
        return {
            'mode': self.mode,
            'guildId': self.guild_id,
            'guildName': self.guild_name,
            'nearbyGuildMemberCount': self.nearby_guild_member_count,
        }


class RecommendationService:

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
    # Weights and context
    # ------------------------------------------------------------------

    def category_weights(self, user_ids: Iterable[str]) -> Tuple[Dict[str, float], bool]:
        from . import stay_service
        stays = stay_service.list_tagged_stays(user_ids)
        return compute_weights(s.mapped_category for s in stays)

    def detect_guild_context(self, user_id: str, lat: float, lng: float,
                             radius_m: Optional[float] = None) -> GuildContext:
        """
        Pick the guild with the most approved mates within ``radius_m``.

        ``radius_m`` defaults to the ``GUILD_NEARBY_RADIUS_M`` setting.
        """
        from . import guild_service, stay_service

        if radius_m is None:
            radius_m = guild_nearby_radius()

        personal = GuildContext(base_user_ids=[user_id])
        guild_ids = guild_service.approved_guild_ids(user_id)
        if not guild_ids:
            return personal

        mates_by_guild = {
            guild_id: [uid for uid in guild_service.approved_member_ids(guild_id) if uid != user_id]
            for guild_id in guild_ids
        }
        all_mates = {uid for mates in mates_by_guild.values() for uid in mates}
        locations = stay_service.get_live_locations(all_mates)
        if not locations:
            return personal

        best_guild_id, best_members = None, []
        for guild_id in guild_ids:
            nearby = [
                uid for uid in mates_by_guild[guild_id]
                if uid in locations
                and haversine_meters(lat, lng, locations[uid].lat, locations[uid].lng) <= radius_m
            ]
            if len(nearby) > len(best_members):
                best_guild_id, best_members = guild_id, nearby

        if not best_members:
            return personal

        guild = guild_service.get_guild(best_guild_id)
        return GuildContext(
            mode=RecommendationSource.GUILD.value,
            base_user_ids=[user_id] + best_members,
            guild_id=best_guild_id,
            guild_name=guild.name if guild else None,
            nearby_guild_member_count=len(best_members),
        )

    def context_from_live_location(self, user_id: str) -> GuildContext:
        from . import stay_service
        live = stay_service.get_live_location(user_id)
        if live is None:
            return GuildContext(base_user_ids=[user_id])
        return self.detect_guild_context(user_id, live.lat, live.lng)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def list_recommendations(self, user_id: str) -> List[Recommendation]:
        rows = self.db.query(
            """
            MATCH (r:Recommendation)
            WHERE r.user_id = $user_id
            RETURN r
            ORDER BY r.score DESC
            """,
            {'user_id': user_id},
            operation='list_recommendations',
        )
        return [Recommendation.from_dict(row['r']) for row in rows]

    def rebuild(self, user_id: str, lat: Optional[float] = None, lng: Optional[float] = None,
                radius_m: Optional[float] = None) -> Dict[str, Any]:
        """Recompute and replace the user's recommendations around a point."""
        if lat is None or lng is None:
            from . import stay_service
            live = stay_service.get_live_location(user_id)
            if live is None:
                raise BadRequest('NO_LOCATION', NO_LOCATION_MESSAGE)
            lat, lng = live.lat, live.lng
        radius_m = radius_m or DEFAULT_RADIUS_M

        ctx = self.detect_guild_context(user_id, lat, lng)
        weights, has_taste_data = self.category_weights(ctx.base_user_ids)
        places = self.kakao.nearby_places(lng, lat, radius_m)
        scored = score_places(places, weights)

        source = RecommendationSource(ctx.mode)
        recommendations = [
            Recommendation(
                user_id=user_id,
                kakao_place_id=place.id,
                name=place.name,
                guild_id=ctx.guild_id,
                source=source,
                category_name=place.category_name,
                category_group_code=place.category_group_code,
                mapped_category=place.mapped_category,
                x=place.x,
                y=place.y,
                distance_meters=place.distance_meters,
                score=score,
                road_address=place.road_address,
                address=place.address,
                phone=place.phone,
            )
            for place, score in scored
        ]

        with self.db.transaction('rebuild_recommendations') as tx:
            tx.query("MATCH (r:Recommendation) WHERE r.user_id = $user_id DELETE r", {'user_id': user_id})
            for recommendation in recommendations:
                tx.query(_CREATE_RECOMMENDATION, recommendation.to_dict())

        logger.info(f"Rebuilt {len(recommendations)} recommendations for user {user_id} ({ctx.mode})")
        result = ctx.to_api()
        result.update({
            'hasTasteData': has_taste_data,
            'count': len(recommendations),
        })
        if not recommendations:
            result['message'] = NO_PLACES_MESSAGE
        return result

    def attach_stay(self, user_id: str, place: Place, stay_id: str) -> None:
        """Link a tagged stay to the user's recommendation for that place, creating it if needed."""
        rows = self.db.query(
            """
            MATCH (r:Recommendation)
            WHERE r.user_id = $user_id AND r.kakao_place_id = $place_id
            RETURN r.id AS id
            """,
            {'user_id': user_id, 'place_id': place.id},
            operation='find_recommendation',
        )
        if rows:
            self.db.query(
                "MATCH (r:Recommendation) WHERE list_contains($ids, r.id) SET r.stay_id = $stay_id",
                {'ids': [row['id'] for row in rows], 'stay_id': stay_id},
                operation='attach_stay',
            )
            return

        recommendation = Recommendation(
            user_id=user_id,
            kakao_place_id=place.id,
            name=place.name,
            stay_id=stay_id,
            category_name=place.category_name,
            category_group_code=place.category_group_code,
            mapped_category=place.mapped_category,
            x=place.x,
            y=place.y,
            distance_meters=place.distance_meters,
            score=0.0,
            road_address=place.road_address,
            address=place.address,
            phone=place.phone,
        )
        self.db.query(_CREATE_RECOMMENDATION, recommendation.to_dict(), operation='create_recommendation')
        logger.info(f"Created recommendation for visited place {place.id} (user {user_id})")

    # ------------------------------------------------------------------
    # Achievements
    # ------------------------------------------------------------------

    def award_achievement(self, user_id: str, stay: Stay, ctx: GuildContext) -> bool:
        """
        Credit ACHIEVEMENT_POINTS for visiting a recommended place.

        Only in GUILD mode, and at most once per stay: the stay is stamped in
        the same transaction as the score increment.
        """
        if stay.recommendation_points_awarded_at is not None or not ctx.is_guild:
            return False

        awarded_at = now_utc()
        with self.db.transaction('award_achievement') as tx:
            rows = tx.query(
                """
                MATCH (s:Stay {id: $id})
                WHERE s.recommendation_points_awarded_at IS NULL
                SET s.recommendation_points_awarded_at = $awarded_at
                RETURN s.id AS id
                """,
                {'id': stay.id, 'awarded_at': awarded_at},
            )
            if not rows:
                return False
            tx.query(score_upsert_query(), score_params(user_id, ctx.guild_id, ACHIEVEMENT_POINTS))

        stay.recommendation_points_awarded_at = awarded_at
        logger.info(f"Awarded {ACHIEVEMENT_POINTS} points to {user_id} in guild {ctx.guild_id} for stay {stay.id}")
        return True

    def unified(self, user_id: str) -> Dict[str, Any]:
        """Recommendations split into visited (``achieved``) and ``pending``."""
        from . import guild_record_service, guild_service, stay_service

        ctx = self.context_from_live_location(user_id)
        live = stay_service.get_live_location(user_id)

        recommendations = self.list_recommendations(user_id)
        if not recommendations:
            if live is None:
                result = ctx.to_api()
                result.update({'count': 0, 'pending': [], 'achieved': [], 'message': NO_LOCATION_MESSAGE})
                return result
            self.rebuild(user_id, live.lat, live.lng, DEFAULT_RADIUS_M)
            recommendations = self.list_recommendations(user_id)

        stays_by_place = stay_service.latest_stays_by_place(user_id)
        achieved_recs = [r for r in recommendations if r.kakao_place_id in stays_by_place]
        pending_recs = [r for r in recommendations if r.kakao_place_id not in stays_by_place]

        if achieved_recs and live is not None:
            award_ctx = self.detect_guild_context(user_id, live.lat, live.lng, ACHIEVEMENT_DETECTION_RADIUS_M)
            if award_ctx.is_guild:
                for rec in achieved_recs:
                    self.award_achievement(user_id, stays_by_place[rec.kakao_place_id], award_ctx)

        target_guild_id = ctx.guild_id
        if target_guild_id is None:
            guild_ids = guild_service.approved_guild_ids(user_id)
            target_guild_id = guild_ids[0] if guild_ids else None
        recorded = set()
        if target_guild_id and achieved_recs:
            recorded = guild_record_service.recorded_place_ids(
                user_id, target_guild_id, [r.kakao_place_id for r in achieved_recs],
            )

        achieved = []
        for rec in achieved_recs:
            stay = stays_by_place[rec.kakao_place_id]
            item = rec.to_api()
            item['stay'] = {
                'endTime': isoformat(stay.end_time),
                'awardedPoints': ACHIEVEMENT_POINTS if stay.recommendation_points_awarded_at else None,
            }
            item['hasRecord'] = rec.kakao_place_id in recorded
            achieved.append(item)

        result = ctx.to_api()
        result.update({
            'count': len(pending_recs),
            'pending': [r.to_api() for r in pending_recs],
            'achieved': achieved,
        })
        if not recommendations:
            result['message'] = NO_PLACES_MESSAGE
        return result

    # ------------------------------------------------------------------
    # Place queries
    # ------------------------------------------------------------------

    def recommend_by_taste(self, user_id: str, x: float, y: float,
                           radius_m: float = DEFAULT_RADIUS_M) -> Dict[str, Any]:
        weights, has_taste_data = self.category_weights([user_id])
        places = self.kakao.nearby_places(x, y, radius_m)
        scored = score_places(places, weights, drop_unweighted=True)
        return {
            'places': [dict(place.to_api(), score=score) for place, score in scored],
            'weights': weights,
            'hasTasteData': has_taste_data,
        }

    def nearby_context(self, user_id: str, radius_members: float = NEARBY_MEMBERS_RADIUS_M,
                       radius_places: float = NEARBY_PLACES_RADIUS_M) -> Dict[str, Any]:
        """Guild mates around the caller, their center and places that suit the group."""
        from . import guild_service, stay_service, user_service

        me = stay_service.get_live_location(user_id)
        if me is None:
            raise BadRequest('NO_LOCATION', NO_LOCATION_MESSAGE)

        guild_ids = guild_service.approved_guild_ids(user_id)
        if not guild_ids:
            return {'guild': None, 'members': [], 'hasTasteData': False, 'places': []}

        guild = guild_service.require_guild(guild_ids[0])
        guild_info = {'id': guild.id, 'name': guild.name}

        member_ids = guild_service.approved_member_ids(guild.id)
        locations = stay_service.get_live_locations(member_ids)
        users = user_service.get_users_by_ids(locations.keys())

        members = []
        for uid, loc in locations.items():
            distance = haversine_meters(me.lat, me.lng, loc.lat, loc.lng)
            if distance > radius_members:
                continue
            user = users.get(uid)
            members.append({
                'userId': uid,
                'name': user.name if user and user.name else f'user#{uid[:8]}',
                'lat': loc.lat,
                'lng': loc.lng,
                'distanceMeters': distance,
            })

        if not members:
            return {'guild': guild_info, 'members': [], 'hasTasteData': False, 'places': []}

        center_lat, center_lng = center_of((m['lat'], m['lng']) for m in members)
        weights, has_taste_data = self.category_weights(m['userId'] for m in members)
        places = [p for p in self.kakao.nearby_places(center_lng, center_lat, radius_places) if p.mapped_category]

        return {
            'guild': guild_info,
            'center': {'lat': center_lat, 'lng': center_lng},
            'members': members,
            'weights': weights,
            'hasTasteData': has_taste_data,
            'places': [dict(place.to_api(), score=score) for place, score in score_places(places, weights)],
        }
