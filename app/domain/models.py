"""
Domain models for the taste-tracking service.

These models represent the core business entities independent of persistence
concerns. ``to_dict`` produces the parameter map stored in Kuzu and
``from_dict`` rebuilds a model from a Kuzu node.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from enum import Enum
import json
import uuid


def now_utc() -> datetime:
    """Timezone-aware UTC now for default timestamps (avoid datetime.utcnow deprecation)."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing Z, the format the SPA parses."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def to_epoch_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: float) -> datetime:
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


def load_json_list(raw: Optional[str]) -> List[Any]:
    """Decode a JSON list column; anything unreadable becomes an empty list."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


def dump_json_list(values: Optional[List[Any]]) -> str:
    return json.dumps(list(values or []), ensure_ascii=False)


class MembershipStatus(Enum):
    """Guild membership status."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class NotificationType(Enum):
    COMMENT = "COMMENT"
    REPLY = "REPLY"


class RecommendationSource(Enum):
    PERSONAL = "PERSONAL"
    GUILD = "GUILD"


@dataclass
class User:
    """User domain model."""
    id: Optional[str] = None
    email: str = ""
    name: Optional[str] = None
    password_hash: Optional[str] = None
    provider: str = "local"
    provider_id: Optional[str] = None
    profile_image: Optional[str] = None
    role: str = "USER"
    created_at: datetime = field(default_factory=now_utc)

    # Flask-Login compatibility
    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:
        return True

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        """Required by Flask-Login."""
        return self.id or ""

    def set_password(self, password: str):
        """Set password hash using werkzeug."""
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check password using werkzeug. OAuth-only accounts never match."""
        if not self.password_hash:
            return False
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'password_hash': self.password_hash,
            'provider': self.provider,
            'provider_id': self.provider_id,
            'profile_image': self.profile_image,
            'role': self.role,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(
            id=data.get('id'),
            email=data.get('email') or '',
            name=data.get('name'),
            password_hash=data.get('password_hash'),
            provider=data.get('provider') or 'local',
            provider_id=data.get('provider_id'),
            profile_image=data.get('profile_image'),
            role=data.get('role') or 'USER',
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class TasteRecord:
    """A personal taste entry (place, dish, show...) written by a user."""
    user_id: str
    title: str
    category: str
    id: str = field(default_factory=new_id)
    caption: str = ""
    content: str = ""
    tags: List[str] = field(default_factory=list)
    thumb: Optional[str] = None
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'caption': self.caption,
            'content': self.content,
            'category': self.category,
            'tags_json': dump_json_list(self.tags),
            'thumb': self.thumb,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TasteRecord':
        return cls(
            id=data['id'],
            user_id=data.get('user_id') or '',
            title=data.get('title') or '',
            category=data.get('category') or '',
            caption=data.get('caption') or '',
            content=data.get('content') or '',
            tags=load_json_list(data.get('tags_json')),
            thumb=data.get('thumb'),
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class Stay:
    """A contiguous time window a user spent near one spot."""
    user_id: str
    lat: float
    lng: float
    start_time: datetime
    end_time: datetime
    id: str = field(default_factory=new_id)
    kakao_place_id: Optional[str] = None
    category_name: Optional[str] = None
    category_group_code: Optional[str] = None
    mapped_category: Optional[str] = None
    recommendation_points_awarded_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=now_utc)

    @property
    def duration_ms(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'lat': self.lat,
            'lng': self.lng,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'kakao_place_id': self.kakao_place_id,
            'category_name': self.category_name,
            'category_group_code': self.category_group_code,
            'mapped_category': self.mapped_category,
            'recommendation_points_awarded_at': self.recommendation_points_awarded_at,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Stay':
        return cls(
            id=data['id'],
            user_id=data.get('user_id') or '',
            lat=float(data.get('lat') or 0.0),
            lng=float(data.get('lng') or 0.0),
            start_time=data['start_time'],
            end_time=data['end_time'],
            kakao_place_id=data.get('kakao_place_id'),
            category_name=data.get('category_name'),
            category_group_code=data.get('category_group_code'),
            mapped_category=data.get('mapped_category'),
            recommendation_points_awarded_at=data.get('recommendation_points_awarded_at'),
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class LiveLocation:
    user_id: str
    lat: float
    lng: float
    updated_at: datetime = field(default_factory=now_utc)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LiveLocation':
        return cls(
            user_id=data['user_id'],
            lat=float(data['lat']),
            lng=float(data['lng']),
            updated_at=data.get('updated_at') or now_utc(),
        )


@dataclass
class Guild:
    """A user-created social group."""
    name: str
    owner_id: str
    id: str = field(default_factory=new_id)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    rules: Optional[str] = None
    max_members: int = 20
    emblem_url: Optional[str] = None
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'tags_json': dump_json_list(self.tags),
            'rules': self.rules,
            'max_members': self.max_members,
            'emblem_url': self.emblem_url,
            'owner_id': self.owner_id,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Guild':
        return cls(
            id=data['id'],
            name=data.get('name') or '',
            owner_id=data.get('owner_id') or '',
            description=data.get('description'),
            category=data.get('category'),
            tags=load_json_list(data.get('tags_json')),
            rules=data.get('rules'),
            max_members=int(data.get('max_members') or 20),
            emblem_url=data.get('emblem_url'),
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class GuildMembership:
    user_id: str
    guild_id: str
    status: MembershipStatus = MembershipStatus.PENDING
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'guild_id': self.guild_id,
            'status': self.status.value,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GuildMembership':
        return cls(
            id=data['id'],
            user_id=data['user_id'],
            guild_id=data['guild_id'],
            status=MembershipStatus(data.get('status') or 'PENDING'),
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class GuildRecord:
    """A guild-scoped "collection" entry, optionally tied to a mission or place."""
    guild_id: str
    user_id: str
    title: str
    id: str = field(default_factory=new_id)
    mission_id: Optional[str] = None
    desc: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    recorded_at: Optional[datetime] = None
    rating: Optional[float] = None
    main_image: Optional[str] = None
    extra_images: List[str] = field(default_factory=list)
    hashtags: List[str] = field(default_factory=list)
    kakao_place_id: Optional[str] = None
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'guild_id': self.guild_id,
            'user_id': self.user_id,
            'mission_id': self.mission_id,
            'title': self.title,
            'description': self.desc,
            'content': self.content,
            'category': self.category,
            'recorded_at': self.recorded_at,
            'rating': self.rating,
            'main_image': self.main_image,
            'extra_images_json': dump_json_list(self.extra_images),
            'hashtags_json': dump_json_list(self.hashtags),
            'kakao_place_id': self.kakao_place_id,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GuildRecord':
        rating = data.get('rating')
        return cls(
            id=data['id'],
            guild_id=data.get('guild_id') or '',
            user_id=data.get('user_id') or '',
            title=data.get('title') or '',
            mission_id=data.get('mission_id'),
            desc=data.get('description'),
            content=data.get('content'),
            category=data.get('category'),
            recorded_at=data.get('recorded_at'),
            rating=float(rating) if rating is not None else None,
            main_image=data.get('main_image'),
            extra_images=load_json_list(data.get('extra_images_json')),
            hashtags=load_json_list(data.get('hashtags_json')),
            kakao_place_id=data.get('kakao_place_id'),
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class GuildRecordComment:
    record_id: str
    user_id: str
    content: str
    id: str = field(default_factory=new_id)
    parent_comment_id: Optional[str] = None
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'record_id': self.record_id,
            'user_id': self.user_id,
            'parent_comment_id': self.parent_comment_id,
            'content': self.content,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GuildRecordComment':
        return cls(
            id=data['id'],
            record_id=data.get('record_id') or '',
            user_id=data.get('user_id') or '',
            content=data.get('content') or '',
            parent_comment_id=data.get('parent_comment_id'),
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class Notification:
    user_id: str
    type: NotificationType
    record_id: str
    from_user_id: str
    id: str = field(default_factory=new_id)
    comment_id: Optional[str] = None
    content: Optional[str] = None
    is_read: bool = False
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'notification_type': self.type.value,
            'record_id': self.record_id,
            'comment_id': self.comment_id,
            'from_user_id': self.from_user_id,
            'content': self.content,
            'is_read': self.is_read,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notification':
        return cls(
            id=data['id'],
            user_id=data.get('user_id') or '',
            type=NotificationType(data.get('notification_type') or 'COMMENT'),
            record_id=data.get('record_id') or '',
            from_user_id=data.get('from_user_id') or '',
            comment_id=data.get('comment_id'),
            content=data.get('content'),
            is_read=bool(data.get('is_read')),
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class GuildMission:
    """A guild challenge open to the first ``limit_count`` participants."""
    guild_id: str
    creator_id: str
    title: str
    limit_count: int
    id: str = field(default_factory=new_id)
    content: Optional[str] = None
    difficulty: Optional[str] = None
    main_image: Optional[str] = None
    extra_images: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'guild_id': self.guild_id,
            'creator_id': self.creator_id,
            'title': self.title,
            'content': self.content,
            'limit_count': self.limit_count,
            'difficulty': self.difficulty,
            'main_image': self.main_image,
            'extra_images_json': dump_json_list(self.extra_images),
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GuildMission':
        return cls(
            id=data['id'],
            guild_id=data.get('guild_id') or '',
            creator_id=data.get('creator_id') or '',
            title=data.get('title') or '',
            limit_count=int(data.get('limit_count') or 1),
            content=data.get('content'),
            difficulty=data.get('difficulty'),
            main_image=data.get('main_image'),
            extra_images=load_json_list(data.get('extra_images_json')),
            created_at=data.get('created_at') or now_utc(),
        )


@dataclass
class Place:
    """A Kakao Local search hit, with the taste category it maps to."""
    id: str
    name: str
    x: float
    y: float
    category_name: Optional[str] = None
    category_group_code: Optional[str] = None
    mapped_category: Optional[str] = None
    phone: Optional[str] = None
    road_address: Optional[str] = None
    address: Optional[str] = None
    distance_meters: Optional[float] = None

    def to_api(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'categoryName': self.category_name,
            'categoryGroupCode': self.category_group_code,
            'mappedCategory': self.mapped_category,
            'x': self.x,
            'y': self.y,
            'phone': self.phone,
            'roadAddress': self.road_address,
            'address': self.address,
            'distanceMeters': self.distance_meters,
        }


@dataclass
class Recommendation:
    user_id: str
    kakao_place_id: str
    name: str
    id: str = field(default_factory=new_id)
    guild_id: Optional[str] = None
    source: RecommendationSource = RecommendationSource.PERSONAL
    stay_id: Optional[str] = None
    category_name: Optional[str] = None
    category_group_code: Optional[str] = None
    mapped_category: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    distance_meters: Optional[float] = None
    score: float = 0.0
    road_address: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    status: str = "PENDING"
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'guild_id': self.guild_id,
            'source': self.source.value,
            'stay_id': self.stay_id,
            'kakao_place_id': self.kakao_place_id,
            'name': self.name,
            'category_name': self.category_name,
            'category_group_code': self.category_group_code,
            'mapped_category': self.mapped_category,
            'x': self.x,
            'y': self.y,
            'distance_meters': self.distance_meters,
            'score': self.score,
            'road_address': self.road_address,
            'address': self.address,
            'phone': self.phone,
            'status': self.status,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Recommendation':
        return cls(
            id=data['id'],
            user_id=data.get('user_id') or '',
            kakao_place_id=data.get('kakao_place_id') or '',
            name=data.get('name') or '',
            guild_id=data.get('guild_id'),
            source=RecommendationSource(data.get('source') or 'PERSONAL'),
            stay_id=data.get('stay_id'),
            category_name=data.get('category_name'),
            category_group_code=data.get('category_group_code'),
            mapped_category=data.get('mapped_category'),
            x=data.get('x'),
            y=data.get('y'),
            distance_meters=data.get('distance_meters'),
            score=float(data.get('score') or 0.0),
            road_address=data.get('road_address'),
            address=data.get('address'),
            phone=data.get('phone'),
            status=data.get('status') or 'PENDING',
            created_at=data.get('created_at') or now_utc(),
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'source': self.source.value,
            'guildId': self.guild_id,
            'stayId': self.stay_id,
            'kakaoPlaceId': self.kakao_place_id,
            'name': self.name,
            'categoryName': self.category_name,
            'categoryGroupCode': self.category_group_code,
            'mappedCategory': self.mapped_category,
            'x': self.x,
            'y': self.y,
            'distanceMeters': self.distance_meters,
            'score': self.score,
            'roadAddress': self.road_address,
            'address': self.address,
            'phone': self.phone,
            'status': self.status,
            'createdAt': isoformat(self.created_at),
        }
