"""
Taste Record Service

CRUD over a user's personal taste entries. Every read and delete is scoped
to the owning user.
"""

import logging
from typing import List, Optional

from ..domain.models import TasteRecord
from ..errors import BadRequest, NotFound
from ..utils.safe_kuzu_manager import get_safe_kuzu_manager

logger = logging.getLogger(__name__)


def _clean_tags(tags) -> List[str]:
    if isinstance(tags, str):
        tags = tags.split(',')
    if not isinstance(tags, (list, tuple)):
        return []
    return [str(t).strip() for t in tags if str(t).strip()]


class TasteRecordService:

    @property
    def db(self):
        return get_safe_kuzu_manager()

    def create_record(self, user_id: str, title: Optional[str], category: Optional[str],
                      caption: Optional[str] = None, content: Optional[str] = None,
                      tags=None, thumb: Optional[str] = None) -> TasteRecord:
        title = (title or '').strip()
        category = (category or '').strip()
        if not title or not category:
            raise BadRequest('BAD_REQUEST', 'title and category are required')

        record = TasteRecord(
            user_id=user_id,
            title=title,
            category=category,
            caption=caption or '',
            content=content or '',
            tags=_clean_tags(tags),
            thumb=thumb or None,
        )
        self.db.query(
            """
            CREATE (r:TasteRecord {
                id: $id, user_id: $user_id, title: $title, caption: $caption,
                content: $content, category: $category, tags_json: $tags_json,
                thumb: $thumb, created_at: $created_at
            })
            """,
            record.to_dict(),
            operation='create_taste_record',
        )
        logger.info(f"Created taste record {record.id} for user {user_id}")
        return record

    def list_records(self, user_id: str) -> List[TasteRecord]:
        """The user's records, newest first."""
        rows = self.db.query(
            """
            MATCH (r:TasteRecord)
            WHERE r.user_id = $user_id
            RETURN r
            ORDER BY r.created_at DESC
            """,
            {'user_id': user_id},
            operation='list_taste_records',
        )
        return [TasteRecord.from_dict(row['r']) for row in rows]

    def get_record(self, user_id: str, record_id: str) -> TasteRecord:
        rows = self.db.query(
            "MATCH (r:TasteRecord {id: $id}) WHERE r.user_id = $user_id RETURN r",
            {'id': record_id, 'user_id': user_id},
            operation='get_taste_record',
        )
        if not rows:
            raise NotFound('NOT_FOUND', 'Taste record not found')
        return TasteRecord.from_dict(rows[0]['r'])

    def delete_record(self, user_id: str, record_id: str) -> None:
        # Raises NotFound for other users' records as well
        self.get_record(user_id, record_id)
        self.db.query(
            "MATCH (r:TasteRecord {id: $id}) WHERE r.user_id = $user_id DELETE r",
            {'id': record_id, 'user_id': user_id},
            operation='delete_taste_record',
        )
        logger.info(f"Deleted taste record {record_id} for user {user_id}")
