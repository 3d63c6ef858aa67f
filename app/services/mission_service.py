"""
Mission Service

Owner-created guild missions. A mission is open to the first
``limit_count`` members who post a record for it; after that it counts as
completed.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..domain.models import GuildMission, GuildRecord
from ..errors import BadRequest, Forbidden, NotFound
from ..utils.safe_kuzu_manager import get_safe_kuzu_manager
from .guild_record_service import build_record

logger = logging.getLogger(__name__)


def parse_limit_count(value) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        limit = 0
    if limit < 1:
        raise BadRequest('INVALID_LIMIT_COUNT', 'limitCount must be at least 1')
    return limit


class MissionService:

    @property
    def db(self):
        return get_safe_kuzu_manager()

    def create_mission(self, guild_id: str, user_id: str, payload: Dict[str, Any]) -> GuildMission:
        from . import guild_service

        guild = guild_service.require_guild(guild_id)
        if guild.owner_id != user_id:
            raise Forbidden('NOT_OWNER', 'Only the guild owner can create missions')

        title = (payload.get('title') or '').strip()
        if not title:
            raise BadRequest('TITLE_REQUIRED', 'title is required')

        extra_images = payload.get('extraImages')
        mission = GuildMission(
            guild_id=guild_id,
            creator_id=user_id,
            title=title,
            limit_count=parse_limit_count(payload.get('limitCount')),
            content=payload.get('content') or None,
            difficulty=payload.get('difficulty') or None,
            main_image=payload.get('mainImage') or None,
            extra_images=list(extra_images) if isinstance(extra_images, list) else [],
        )
        self.db.query(
            """
            CREATE (m:GuildMission {
                id: $id, guild_id: $guild_id, creator_id: $creator_id, title: $title,
                content: $content, limit_count: $limit_count, difficulty: $difficulty,
                main_image: $main_image, extra_images_json: $extra_images_json,
                created_at: $created_at
            })
            """,
            mission.to_dict(),
            operation='create_mission',
        )
        logger.info(f"Created mission {mission.id} in guild {guild_id}")
        return mission

    def get_mission(self, mission_id: str) -> Optional[GuildMission]:
        rows = self.db.query("MATCH (m:GuildMission {id: $id}) RETURN m", {'id': mission_id}, operation='get_mission')
        return GuildMission.from_dict(rows[0]['m']) if rows else None

    def require_mission(self, mission_id: str, guild_id: Optional[str] = None) -> GuildMission:
        mission = self.get_mission(mission_id)
        if mission is None or (guild_id and mission.guild_id != guild_id):
            raise NotFound('MISSION_NOT_FOUND', 'Mission not found')
        return mission

    def participant_counts(self, guild_id: str) -> Dict[str, int]:
        rows = self.db.query(
            """
            MATCH (r:GuildRecord)
            WHERE r.guild_id = $guild_id AND r.mission_id IS NOT NULL
            RETURN r.mission_id AS mission_id, count(DISTINCT r.user_id) AS participants
            """,
            {'guild_id': guild_id},
            operation='mission_participants',
        )
        return {row['mission_id']: int(row['participants']) for row in rows}

    def _missions_with_counts(self, guild_id: str) -> List[Tuple[GuildMission, int]]:
        rows = self.db.query(
            """
            MATCH (m:GuildMission)
            WHERE m.guild_id = $guild_id
            RETURN m
            ORDER BY m.created_at DESC
            """,
            {'guild_id': guild_id},
            operation='list_missions',
        )
        counts = self.participant_counts(guild_id)
        missions = [GuildMission.from_dict(row['m']) for row in rows]
        return [(m, counts.get(m.id, 0)) for m in missions]

    def list_active(self, guild_id: str) -> List[Tuple[GuildMission, int]]:
        return [(m, n) for m, n in self._missions_with_counts(guild_id) if n < m.limit_count]

    def list_completed(self, guild_id: str) -> List[Tuple[GuildMission, int]]:
        return [(m, n) for m, n in self._missions_with_counts(guild_id) if n >= m.limit_count]

    def delete_mission(self, guild_id: str, mission_id: str, user_id: str) -> None:
        from . import guild_service

        mission = self.require_mission(mission_id, guild_id)
        guild = guild_service.require_guild(mission.guild_id)
        if guild.owner_id != user_id:
            raise Forbidden('NOT_OWNER', 'Only the guild owner can delete missions')
        self.db.query("MATCH (m:GuildMission {id: $id}) DELETE m", {'id': mission_id}, operation='delete_mission')
        logger.info(f"Deleted mission {mission_id}")

    def list_mission_records(self, guild_id: str, mission_id: str) -> List[GuildRecord]:
        from . import guild_record_service

        self.require_mission(mission_id, guild_id)
        return guild_record_service.list_records(guild_id, mission_id=mission_id)

    def participate(self, guild_id: str, mission_id: str, user_id: str, payload: Dict[str, Any]) -> GuildRecord:
        """Post a mission record, first come first served."""
        from . import guild_record_service, guild_service

        record = build_record(guild_id, user_id, payload, mission_id=mission_id)
        guild_service.require_guild(guild_id)
        if not guild_service.is_approved_member(user_id, guild_id):
            raise Forbidden('NOT_MEMBER', 'Only guild members can join missions')

        mission = self.require_mission(mission_id, guild_id)
        already = self.db.query_value(
            """
            MATCH (r:GuildRecord)
            WHERE r.mission_id = $mission_id AND r.user_id = $user_id
            RETURN count(r)
            """,
            {'mission_id': mission_id, 'user_id': user_id},
            operation='mission_participation',
        )
        if already:
            raise BadRequest('ALREADY_PARTICIPATED', 'You already took part in this mission')
        if self.participant_counts(guild_id).get(mission_id, 0) >= mission.limit_count:
            raise BadRequest('MISSION_FULL', 'This mission is already full')

        guild_record_service.save_record(record)
        return record
