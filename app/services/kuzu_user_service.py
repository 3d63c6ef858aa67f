"""
Kuzu User Service

Handles local (email/password) and Kakao accounts.
"""

import logging
from typing import Optional, Dict, Any

from ..domain.models import User, new_id, now_utc
from ..errors import BadRequest, Conflict, Unauthorized
from ..utils.safe_kuzu_manager import get_safe_kuzu_manager

logger = logging.getLogger(__name__)

KAKAO_PROVIDER = 'kakao'
DEFAULT_KAKAO_NAME = '카카오사용자'


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


class KuzuUserService:
    """User service backed by the ``User`` node table."""

    @property
    def db(self):
        return get_safe_kuzu_manager()

    def _first_user(self, query: str, params: Dict[str, Any]) -> Optional[User]:
        rows = self.db.query(query, params, operation='get_user')
        if not rows:
            return None
        return User.from_dict(rows[0]['u'])

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID (used by the Flask-Login user loader)."""
        if not user_id:
            return None
        return self._first_user("MATCH (u:User {id: $user_id}) RETURN u", {'user_id': user_id})

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._first_user(
            "MATCH (u:User) WHERE u.email = $email RETURN u",
            {'email': normalize_email(email)},
        )

    def get_users_by_ids(self, user_ids) -> Dict[str, User]:
        ids = sorted(set(uid for uid in user_ids if uid))
        if not ids:
            return {}
        rows = self.db.query(
            "MATCH (u:User) WHERE list_contains($ids, u.id) RETURN u",
            {'ids': ids},
            operation='get_users_by_ids',
        )
        users = [User.from_dict(row['u']) for row in rows]
        return {u.id: u for u in users}

    def _insert(self, user: User) -> User:
        self.db.query(
            """
            CREATE (u:User {
                id: $id,
                email: $email,
                name: $name,
                password_hash: $password_hash,
                provider: $provider,
                provider_id: $provider_id,
                profile_image: $profile_image,
                role: $role,
                created_at: $created_at
            })
            """,
            user.to_dict(),
            operation='create_user',
        )
        logger.info(f"Created user {user.email} (ID: {user.id}, provider: {user.provider})")
        return user

    def register(self, email: Optional[str], password: Optional[str], name: Optional[str] = None) -> User:
        """Create a local account. Email is stored trimmed and lowercased."""
        email = normalize_email(email)
        if not email or not password:
            raise BadRequest('BAD_REQUEST', 'email and password are required')
        if self.get_user_by_email(email):
            raise Conflict('EMAIL_TAKEN', 'Email already registered')

        user = User(id=new_id(), email=email, name=(name or '').strip() or None, provider='local')
        user.set_password(password)
        return self._insert(user)

    def authenticate(self, email: Optional[str], password: Optional[str]) -> User:
        email = normalize_email(email)
        if not email or not password:
            raise BadRequest('BAD_REQUEST', 'email and password are required')
        user = self.get_user_by_email(email)
        if not user or not user.check_password(password):
            raise Unauthorized('INVALID_CREDENTIALS', 'Invalid credentials')
        return user

    def find_or_create_kakao_user(self, kakao_user: Dict[str, Any]) -> User:
        """
        Resolve a Kakao profile to a local user.

        Lookup order: an account already linked to this Kakao id, then an
        account with the same email (which gets linked), then a new account.
        """
        kakao_id = str(kakao_user['id'])
        email = normalize_email(kakao_user.get('email'))
        nickname = kakao_user.get('nickname')
        profile_image = kakao_user.get('profile_image')

        user = self._first_user(
            "MATCH (u:User) WHERE u.provider = $provider AND u.provider_id = $provider_id RETURN u",
            {'provider': KAKAO_PROVIDER, 'provider_id': kakao_id},
        )
        if user:
            user.name = nickname or user.name
            user.profile_image = profile_image or user.profile_image
            self.db.query(
                "MATCH (u:User {id: $id}) SET u.name = $name, u.profile_image = $profile_image",
                {'id': user.id, 'name': user.name, 'profile_image': user.profile_image},
                operation='refresh_kakao_user',
            )
            return user

        if email:
            user = self.get_user_by_email(email)
            if user:
                user.provider = KAKAO_PROVIDER
                user.provider_id = kakao_id
                user.profile_image = profile_image or user.profile_image
                self.db.query(
                    """
                    MATCH (u:User {id: $id})
                    SET u.provider = $provider, u.provider_id = $provider_id, u.profile_image = $profile_image
                    """,
                    {'id': user.id, 'provider': KAKAO_PROVIDER, 'provider_id': kakao_id,
                     'profile_image': user.profile_image},
                    operation='link_kakao_user',
                )
                logger.info(f"Linked Kakao account {kakao_id} to existing user {user.id}")
                return user

        user = User(
            id=new_id(),
            email=email or f'kakao_{kakao_id}@kakao.user',
            name=nickname or f'{DEFAULT_KAKAO_NAME}{kakao_id[-4:]}',
            password_hash=None,
            provider=KAKAO_PROVIDER,
            provider_id=kakao_id,
            profile_image=profile_image,
            created_at=now_utc(),
        )
        return self._insert(user)

    def ensure_demo_user(self) -> User:
        """Create the demo account used by the SPA's quick login, if missing."""
        existing = self.get_user_by_email('test@example.com')
        if existing:
            return existing
        return self.register('test@example.com', '1234', '테스트')
