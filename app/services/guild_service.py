"""
Guild Service

Guild lifecycle, approval-gated membership and the member ranking.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..domain.models import Guild, GuildMembership, MembershipStatus, User, now_utc
from ..errors import BadRequest, Forbidden, NotFound
from ..utils.safe_kuzu_manager import get_safe_kuzu_manager

logger = logging.getLogger(__name__)

MAX_GUILD_TAGS = 8
MIN_GUILD_MEMBERS = 2
MAX_GUILD_MEMBERS = 200
DEFAULT_GUILD_MEMBERS = 20

_CREATE_MEMBERSHIP = """
CREATE (m:GuildMembership {
    id: $id, user_id: $user_id, guild_id: $guild_id,
    status: $status, created_at: $created_at
})
"""


def clean_guild_tags(tags) -> List[str]:
    """Trim, drop empties and keep at most MAX_GUILD_TAGS."""
    if not isinstance(tags, (list, tuple)):
        return []
    cleaned = [str(t).strip() for t in tags if t is not None and str(t).strip()]
    return cleaned[:MAX_GUILD_TAGS]


def clamp_max_members(value) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return DEFAULT_GUILD_MEMBERS
    return max(MIN_GUILD_MEMBERS, min(MAX_GUILD_MEMBERS, n))


class GuildService:

    @property
    def db(self):
        return get_safe_kuzu_manager()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_guild(self, guild_id: str) -> Optional[Guild]:
        rows = self.db.query("MATCH (g:Guild {id: $id}) RETURN g", {'id': guild_id}, operation='get_guild')
        return Guild.from_dict(rows[0]['g']) if rows else None

    def require_guild(self, guild_id: str) -> Guild:
        guild = self.get_guild(guild_id)
        if guild is None:
            raise NotFound('GUILD_NOT_FOUND', 'Guild not found')
        return guild

    def require_owner(self, guild_id: str, user_id: str) -> Guild:
        guild = self.require_guild(guild_id)
        if guild.owner_id != user_id:
            raise Forbidden('NOT_OWNER', 'Only the guild owner can do this')
        return guild

    def get_membership(self, user_id: str, guild_id: str) -> Optional[GuildMembership]:
        rows = self.db.query(
            """
            MATCH (m:GuildMembership)
            WHERE m.user_id = $user_id AND m.guild_id = $guild_id
            RETURN m
            """,
            {'user_id': user_id, 'guild_id': guild_id},
            operation='get_membership',
        )
        return GuildMembership.from_dict(rows[0]['m']) if rows else None

    def is_approved_member(self, user_id: str, guild_id: str) -> bool:
        membership = self.get_membership(user_id, guild_id)
        return membership is not None and membership.status == MembershipStatus.APPROVED

    def approved_guild_ids(self, user_id: str) -> List[str]:
        """The user's approved guilds, newest membership first."""
        rows = self.db.query(
            """
            MATCH (m:GuildMembership)
            WHERE m.user_id = $user_id AND m.status = 'APPROVED'
            RETURN m.guild_id AS guild_id
            ORDER BY m.created_at DESC
            """,
            {'user_id': user_id},
            operation='approved_guild_ids',
        )
        return [row['guild_id'] for row in rows]

    def approved_member_ids(self, guild_id: str) -> List[str]:
        rows = self.db.query(
            """
            MATCH (m:GuildMembership)
            WHERE m.guild_id = $guild_id AND m.status = 'APPROVED'
            RETURN m.user_id AS user_id
            """,
            {'guild_id': guild_id},
            operation='approved_member_ids',
        )
        return [row['user_id'] for row in rows]

    # ------------------------------------------------------------------
    # Guild CRUD
    # ------------------------------------------------------------------

    def list_guilds(self) -> List[Tuple[Guild, int]]:
        """All guilds, newest first, each with its membership count."""
        rows = self.db.query("MATCH (g:Guild) RETURN g ORDER BY g.created_at DESC", operation='list_guilds')
        counts_rows = self.db.query(
            "MATCH (m:GuildMembership) RETURN m.guild_id AS guild_id, count(m) AS member_count",
            operation='guild_member_counts',
        )
        counts = {row['guild_id']: int(row['member_count']) for row in counts_rows}
        guilds = [Guild.from_dict(row['g']) for row in rows]
        return [(g, counts.get(g.id, 0)) for g in guilds]

    def create_guild(self, owner_id: str, payload: Dict[str, Any]) -> Guild:
        name = (payload.get('name') or '').strip()
        if not name:
            raise BadRequest('BAD_REQUEST', 'name is required')

        guild = Guild(
            name=name,
            owner_id=owner_id,
            description=payload.get('description') or None,
            category=payload.get('category') or None,
            tags=clean_guild_tags(payload.get('tags')),
            rules=payload.get('rules') or None,
            max_members=clamp_max_members(payload.get('maxMembers', DEFAULT_GUILD_MEMBERS)),
            emblem_url=payload.get('emblemUrl') or None,
        )
        owner_membership = GuildMembership(
            user_id=owner_id, guild_id=guild.id, status=MembershipStatus.APPROVED,
        )

        with self.db.transaction('create_guild') as tx:
            tx.query(
                """
                CREATE (g:Guild {
                    id: $id, name: $name, description: $description, category: $category,
                    tags_json: $tags_json, rules: $rules, max_members: $max_members,
                    emblem_url: $emblem_url, owner_id: $owner_id, created_at: $created_at
                })
                """,
                guild.to_dict(),
            )
            tx.query(_CREATE_MEMBERSHIP, owner_membership.to_dict())

        logger.info(f"Created guild {guild.id} owned by {owner_id}")
        return guild

    def update_guild(self, guild_id: str, user_id: str, payload: Dict[str, Any]) -> Guild:
        guild = self.require_owner(guild_id, user_id)
        if 'emblemUrl' in payload:
            guild.emblem_url = payload.get('emblemUrl') or None
            self.db.query(
                "MATCH (g:Guild {id: $id}) SET g.emblem_url = $emblem_url",
                {'id': guild_id, 'emblem_url': guild.emblem_url},
                operation='update_guild',
            )
        return guild

    def disband_guild(self, guild_id: str, user_id: str) -> None:
        """Delete the guild and everything scoped to it."""
        self.require_owner(guild_id, user_id)
        params = {'guild_id': guild_id}
        with self.db.transaction('disband_guild') as tx:
            tx.query(
                """
                MATCH (r:GuildRecord), (c:GuildRecordComment)
                WHERE r.guild_id = $guild_id AND c.record_id = r.id
                DELETE c
                """,
                params,
            )
            tx.query("MATCH (r:GuildRecord) WHERE r.guild_id = $guild_id DELETE r", params)
            tx.query("MATCH (m:GuildMission) WHERE m.guild_id = $guild_id DELETE m", params)
            tx.query("MATCH (s:GuildScore) WHERE s.guild_id = $guild_id DELETE s", params)
            tx.query("MATCH (m:GuildMembership) WHERE m.guild_id = $guild_id DELETE m", params)
            tx.query("MATCH (g:Guild {id: $guild_id}) DELETE g", params)
        logger.info(f"Disbanded guild {guild_id}")

    def get_my_guild_status(self, user_id: str) -> Dict[str, Any]:
        """``{'status': 'NONE'}`` or ``{'status': 'APPROVED', 'guild': Guild}``."""
        for guild_id in self.approved_guild_ids(user_id):
            guild = self.get_guild(guild_id)
            if guild is not None:
                return {'status': MembershipStatus.APPROVED.value, 'guild': guild}
        return {'status': 'NONE'}

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def join_guild(self, user_id: str, guild_id: str) -> GuildMembership:
        """Owners are approved immediately; everyone else waits as PENDING."""
        guild = self.require_guild(guild_id)
        existing = self.get_membership(user_id, guild_id)
        if existing:
            return existing

        status = MembershipStatus.APPROVED if guild.owner_id == user_id else MembershipStatus.PENDING
        membership = GuildMembership(user_id=user_id, guild_id=guild_id, status=status)
        self.db.query(_CREATE_MEMBERSHIP, membership.to_dict(), operation='join_guild')
        logger.info(f"User {user_id} joined guild {guild_id} as {status.value}")
        return membership

    def leave_guild(self, user_id: str, guild_id: str) -> None:
        guild = self.require_guild(guild_id)
        if guild.owner_id == user_id:
            raise BadRequest('OWNER_CANNOT_LEAVE', 'The guild owner cannot leave; disband the guild instead')

        membership = self.get_membership(user_id, guild_id)
        if membership is None:
            raise NotFound('MEMBERSHIP_NOT_FOUND', 'You are not a member of this guild')

        self.db.query(
            "MATCH (m:GuildMembership {id: $id}) DELETE m",
            {'id': membership.id},
            operation='leave_guild',
        )

    def _member_rows(self, guild_id: str, status: str) -> List[Tuple[GuildMembership, Optional[User]]]:
        rows = self.db.query(
            """
            MATCH (m:GuildMembership)
            WHERE m.guild_id = $guild_id AND m.status = $status
            RETURN m
            ORDER BY m.created_at DESC
            """,
            {'guild_id': guild_id, 'status': status},
            operation='guild_memberships',
        )
        memberships = [GuildMembership.from_dict(row['m']) for row in rows]

        from . import user_service
        users = user_service.get_users_by_ids(m.user_id for m in memberships)
        return [(m, users.get(m.user_id)) for m in memberships]

    def get_pending_memberships(self, guild_id: str, owner_id: str) -> List[Tuple[GuildMembership, Optional[User]]]:
        self.require_owner(guild_id, owner_id)
        return self._member_rows(guild_id, MembershipStatus.PENDING.value)

    def process_membership(self, guild_id: str, membership_id: str, owner_id: str, action: str) -> None:
        guild = self.require_owner(guild_id, owner_id)
        rows = self.db.query(
            "MATCH (m:GuildMembership {id: $id}) RETURN m",
            {'id': membership_id},
            operation='get_membership_by_id',
        )
        membership = GuildMembership.from_dict(rows[0]['m']) if rows else None
        if membership is None or membership.guild_id != guild_id:
            raise NotFound('MEMBERSHIP_NOT_FOUND', 'Membership request not found')

        if action == 'approve':
            if membership.status != MembershipStatus.APPROVED and \
                    len(self.approved_member_ids(guild_id)) >= guild.max_members:
                raise BadRequest('GUILD_FULL', 'The guild has reached its member limit')
            self.db.query(
                "MATCH (m:GuildMembership {id: $id}) SET m.status = 'APPROVED'",
                {'id': membership_id},
                operation='approve_membership',
            )
        else:
            self.db.query(
                "MATCH (m:GuildMembership {id: $id}) DELETE m",
                {'id': membership_id},
                operation='reject_membership',
            )
        logger.info(f"Membership {membership_id} in guild {guild_id}: {action}")

    def get_members(self, guild_id: str) -> List[Dict[str, Any]]:
        guild = self.require_guild(guild_id)
        members = []
        for membership, user in self._member_rows(guild_id, MembershipStatus.APPROVED.value):
            members.append({
                'id': membership.id,
                'userId': membership.user_id,
                'userName': user.name if user else None,
                'userEmail': user.email if user else None,
                'isOwner': membership.user_id == guild.owner_id,
            })
        return members

    # ------------------------------------------------------------------
    # Scores and ranking
    # ------------------------------------------------------------------

    def get_scores(self, guild_id: str) -> Dict[str, int]:
        rows = self.db.query(
            "MATCH (s:GuildScore) WHERE s.guild_id = $guild_id RETURN s.user_id AS user_id, s.score AS score",
            {'guild_id': guild_id},
            operation='guild_scores',
        )
        return {row['user_id']: int(row['score'] or 0) for row in rows}

    def get_ranking(self, guild_id: str, current_user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Rank approved members by GuildScore.

        When nobody has scored yet the order falls back to member name
        (or email).
        """
        members = self.get_members(guild_id)
        scores = self.get_scores(guild_id)
        for member in members:
            member['score'] = scores.get(member['userId'], 0)

        if all(m['score'] == 0 for m in members):
            ordered = sorted(members, key=lambda m: m['userName'] or m['userEmail'] or '')
        else:
            ordered = sorted(members, key=lambda m: m['score'], reverse=True)

        def entry(index, member):
            return {
                'rank': index + 1,
                'userId': member['userId'],
                'userName': member['userName'],
                'userEmail': member['userEmail'],
                'score': member['score'],
            }

        top3 = [entry(i, m) for i, m in enumerate(ordered[:3])]
        my_rank = None
        if current_user_id:
            for i, m in enumerate(ordered):
                if m['userId'] == current_user_id:
                    my_rank = entry(i, m)
                    break
        return {'myRank': my_rank, 'top3': top3}


def score_upsert_query() -> str:
    """MERGE that adds ``$points`` to the (user, guild) score row."""
    return """
    MERGE (s:GuildScore {id: $score_id})
    ON CREATE SET s.user_id = $user_id, s.guild_id = $guild_id, s.score = $points, s.updated_at = $now
    ON MATCH SET s.score = s.score + $points, s.updated_at = $now
    """


def score_params(user_id: str, guild_id: str, points: int) -> Dict[str, Any]:
    return {
        'score_id': f'{user_id}:{guild_id}',
        'user_id': user_id,
        'guild_id': guild_id,
        'points': points,
        'now': now_utc(),
    }
