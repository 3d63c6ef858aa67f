"""
Guild Record Service

Guild-scoped collection entries, their threaded comments and the
notifications comments produce.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from ..domain.models import (
    GuildRecord, GuildRecordComment, Notification, NotificationType,
)
from ..errors import BadRequest, Forbidden, NotFound
from ..utils.safe_kuzu_manager import get_safe_kuzu_manager
from .guild_service import score_params, score_upsert_query

logger = logging.getLogger(__name__)

RECORD_POINTS = 10

CREATE_RECORD = """
CREATE (r:GuildRecord {
    id: $id, guild_id: $guild_id, user_id: $user_id, mission_id: $mission_id,
    title: $title, description: $description, content: $content, category: $category,
    recorded_at: $recorded_at, rating: $rating, main_image: $main_image,
    extra_images_json: $extra_images_json, hashtags_json: $hashtags_json,
    kakao_place_id: $kakao_place_id, created_at: $created_at
})
"""

_CREATE_NOTIFICATION = """
CREATE (n:Notification {
    id: $id, user_id: $user_id, notification_type: $notification_type,
    record_id: $record_id, comment_id: $comment_id, from_user_id: $from_user_id,
    content: $content, is_read: $is_read, created_at: $created_at
})
"""


def _parse_recorded_at(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise BadRequest('BAD_REQUEST', 'recordedAt must be an ISO-8601 datetime')


def _parse_rating(value) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise BadRequest('BAD_REQUEST', 'rating must be a number')


def _string_list(value) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


def build_record(guild_id: str, user_id: str, payload: Dict[str, Any],
                 mission_id: Optional[str] = None) -> GuildRecord:
    """Validate a record body and build the (unsaved) GuildRecord."""
    title = (payload.get('title') or '').strip()
    if not title:
        raise BadRequest('BAD_REQUEST', 'title is required')
    return GuildRecord(
        guild_id=guild_id,
        user_id=user_id,
        title=title,
        mission_id=mission_id,
        desc=payload.get('desc') or None,
        content=payload.get('content') or None,
        category=payload.get('category') or None,
        recorded_at=_parse_recorded_at(payload.get('recordedAt')),
        rating=_parse_rating(payload.get('rating')),
        main_image=payload.get('mainImage') or None,
        extra_images=_string_list(payload.get('extraImages')),
        hashtags=_string_list(payload.get('hashtags')),
        kakao_place_id=None if mission_id else (payload.get('kakaoPlaceId') or None),
    )


class GuildRecordService:

    @property
    def db(self):
        return get_safe_kuzu_manager()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def create_record(self, user_id: str, guild_id: str, payload: Dict[str, Any]) -> GuildRecord:
        """Write a record and credit the author RECORD_POINTS in the guild ranking."""
        from . import guild_service, stay_service

        record = build_record(guild_id, user_id, payload)
        guild_service.require_guild(guild_id)
        if not guild_service.is_approved_member(user_id, guild_id):
            raise Forbidden('NOT_MEMBER', 'Only guild members can add records')

        if record.kakao_place_id and not stay_service.has_min_stay_at_place(user_id, record.kakao_place_id):
            raise BadRequest('MIN_STAY_NOT_MET', 'Stay at this place for at least 5 minutes before recording it')

        self.save_record(record)
        return record

    def save_record(self, record: GuildRecord) -> None:
        with self.db.transaction('create_guild_record') as tx:
            tx.query(CREATE_RECORD, record.to_dict())
            tx.query(score_upsert_query(), score_params(record.user_id, record.guild_id, RECORD_POINTS))
        logger.info(f"User {record.user_id} added record {record.id} to guild {record.guild_id}")

    def get_record(self, record_id: str) -> Optional[GuildRecord]:
        rows = self.db.query("MATCH (r:GuildRecord {id: $id}) RETURN r", {'id': record_id}, operation='get_guild_record')
        return GuildRecord.from_dict(rows[0]['r']) if rows else None

    def require_record(self, record_id: str) -> GuildRecord:
        record = self.get_record(record_id)
        if record is None:
            raise NotFound('RECORD_NOT_FOUND', 'Guild record not found')
        return record

    def list_records(self, guild_id: str, mission_id: Optional[str] = None) -> List[GuildRecord]:
        """A guild's records (or one mission's), newest first."""
        if mission_id:
            query = """
            MATCH (r:GuildRecord)
            WHERE r.mission_id = $mission_id
            RETURN r
            ORDER BY r.created_at DESC
            """
            params = {'mission_id': mission_id}
        else:
            query = """
            MATCH (r:GuildRecord)
            WHERE r.guild_id = $guild_id
            RETURN r
            ORDER BY r.created_at DESC
            """
            params = {'guild_id': guild_id}
        rows = self.db.query(query, params, operation='list_guild_records')
        return [GuildRecord.from_dict(row['r']) for row in rows]

    def recorded_place_ids(self, user_id: str, guild_id: str, place_ids: List[str]) -> Set[str]:
        """Which of ``place_ids`` the user already wrote a record for in the guild."""
        if not place_ids:
            return set()
        rows = self.db.query(
            """
            MATCH (r:GuildRecord)
            WHERE r.user_id = $user_id AND r.guild_id = $guild_id
              AND list_contains($place_ids, r.kakao_place_id)
            RETURN DISTINCT r.kakao_place_id AS place_id
            """,
            {'user_id': user_id, 'guild_id': guild_id, 'place_ids': sorted(set(place_ids))},
            operation='recorded_place_ids',
        )
        return {row['place_id'] for row in rows}

    def delete_record(self, record_id: str, user_id: str) -> None:
        record = self.require_record(record_id)
        if record.user_id != user_id:
            raise Forbidden('NOT_AUTHOR', 'You can only delete your own records')
        params = {'id': record_id}
        with self.db.transaction('delete_guild_record') as tx:
            tx.query("MATCH (c:GuildRecordComment) WHERE c.record_id = $id DELETE c", params)
            tx.query("MATCH (r:GuildRecord {id: $id}) DELETE r", params)
        logger.info(f"Deleted guild record {record_id}")

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def get_comment(self, comment_id: str) -> Optional[GuildRecordComment]:
        rows = self.db.query(
            "MATCH (c:GuildRecordComment {id: $id}) RETURN c",
            {'id': comment_id},
            operation='get_comment',
        )
        return GuildRecordComment.from_dict(rows[0]['c']) if rows else None

    def create_comment(self, user_id: str, record_id: str, content: Optional[str],
                       parent_comment_id: Optional[str] = None) -> GuildRecordComment:
        """
        Add a comment or reply and notify the people it concerns.

        The record author gets a COMMENT notification; for replies the parent
        comment's author also gets a REPLY notification. Nobody is notified
        about their own comment, and one person never gets both.
        """
        content = (content or '').strip()
        if not content:
            raise BadRequest('BAD_REQUEST', 'content is required')

        record = self.require_record(record_id)
        parent = None
        if parent_comment_id:
            parent = self.get_comment(parent_comment_id)
            if parent is None or parent.record_id != record_id:
                raise NotFound('COMMENT_NOT_FOUND', 'Parent comment not found')

        comment = GuildRecordComment(
            record_id=record_id,
            user_id=user_id,
            content=content,
            parent_comment_id=parent.id if parent else None,
        )

        notifications = []
        if record.user_id != user_id:
            notifications.append(Notification(
                user_id=record.user_id, type=NotificationType.COMMENT, record_id=record_id,
                comment_id=comment.id, from_user_id=user_id, content=content,
            ))
        if parent and parent.user_id != user_id and parent.user_id != record.user_id:
            notifications.append(Notification(
                user_id=parent.user_id, type=NotificationType.REPLY, record_id=record_id,
                comment_id=comment.id, from_user_id=user_id, content=content,
            ))

        with self.db.transaction('create_comment') as tx:
            tx.query(
                """
                CREATE (c:GuildRecordComment {
                    id: $id, record_id: $record_id, user_id: $user_id,
                    parent_comment_id: $parent_comment_id, content: $content, created_at: $created_at
                })
                """,
                comment.to_dict(),
            )
            for notification in notifications:
                tx.query(_CREATE_NOTIFICATION, notification.to_dict())

        return comment

    def list_comments(self, record_id: str) -> List[GuildRecordComment]:
        """Comments on a record, oldest first."""
        rows = self.db.query(
            """
            MATCH (c:GuildRecordComment)
            WHERE c.record_id = $record_id
            RETURN c
            ORDER BY c.created_at ASC
            """,
            {'record_id': record_id},
            operation='list_comments',
        )
        return [GuildRecordComment.from_dict(row['c']) for row in rows]

    def delete_comment(self, comment_id: str, user_id: str) -> None:
        comment = self.get_comment(comment_id)
        if comment is None:
            raise NotFound('COMMENT_NOT_FOUND', 'Comment not found')
        if comment.user_id != user_id:
            raise Forbidden('NOT_AUTHOR', 'You can only delete your own comments')
        self.db.query(
            "MATCH (c:GuildRecordComment {id: $id}) DELETE c",
            {'id': comment_id},
            operation='delete_comment',
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def list_notifications(self, user_id: str) -> List[Notification]:
        rows = self.db.query(
            """
            MATCH (n:Notification)
            WHERE n.user_id = $user_id
            RETURN n
            ORDER BY n.created_at DESC
            """,
            {'user_id': user_id},
            operation='list_notifications',
        )
        return [Notification.from_dict(row['n']) for row in rows]

    def unread_count(self, user_id: str) -> int:
        count = self.db.query_value(
            "MATCH (n:Notification) WHERE n.user_id = $user_id AND n.is_read = false RETURN count(n)",
            {'user_id': user_id},
            operation='unread_notifications',
        )
        return int(count or 0)

    def mark_read(self, notification_id: str, user_id: str) -> None:
        rows = self.db.query(
            "MATCH (n:Notification {id: $id}) RETURN n.user_id AS user_id",
            {'id': notification_id},
            operation='get_notification',
        )
        if not rows:
            raise NotFound('NOTIFICATION_NOT_FOUND', 'Notification not found')
        if rows[0]['user_id'] != user_id:
            raise Forbidden('FORBIDDEN', 'Not your notification')
        self.db.query(
            "MATCH (n:Notification {id: $id}) SET n.is_read = true",
            {'id': notification_id},
            operation='mark_notification_read',
        )

    def mark_all_read(self, user_id: str) -> None:
        self.db.query(
            "MATCH (n:Notification) WHERE n.user_id = $user_id AND n.is_read = false SET n.is_read = true",
            {'user_id': user_id},
            operation='mark_all_notifications_read',
        )
