"""
Tastelog Services Package

Service classes, each exposed as a lazily created module-level instance:
- KuzuUserService: local and Kakao accounts
- TasteRecordService: personal taste entries
- StayService: live location and dwell detection
- RecommendationService: taste-weighted place recommendations
- GuildService: guilds, membership and ranking
- GuildRecordService: guild records, comments and notifications
- MissionService: guild missions
- DashboardService: taste category breakdown
- UploadService: image uploads
- KakaoClient: Kakao OAuth, Local and Mobility APIs
"""

from .kuzu_user_service import KuzuUserService
from .taste_record_service import TasteRecordService
from .stay_service import StayService
from .recommendation_service import RecommendationService
from .guild_service import GuildService
from .guild_record_service import GuildRecordService
from .mission_service import MissionService
from .dashboard_service import DashboardService
from .upload_service import UploadService
from .kakao_client import KakaoClient


class _LazyService:
    """Lazy service that initializes on first access."""
    def __init__(self, service_getter):
        self._service_getter = service_getter
        self._service = None

    def _get(self):
        if self._service is None:
            self._service = self._service_getter()
        return self._service

    def __getattr__(self, name):
        return getattr(self._get(), name)

    def reset(self):
        self._service = None


# Create lazy service instances
user_service = _LazyService(KuzuUserService)
taste_record_service = _LazyService(TasteRecordService)
stay_service = _LazyService(StayService)
recommendation_service = _LazyService(RecommendationService)
guild_service = _LazyService(GuildService)
guild_record_service = _LazyService(GuildRecordService)
mission_service = _LazyService(MissionService)
dashboard_service = _LazyService(DashboardService)
upload_service = _LazyService(UploadService)
kakao_client = _LazyService(KakaoClient)

_ALL_SERVICES = [
    user_service, taste_record_service, stay_service, recommendation_service,
    guild_service, guild_record_service, mission_service, dashboard_service,
    upload_service, kakao_client,
]


def reset_all_services():
    """Drop every cached instance so the next access builds a fresh one."""
    for service in _ALL_SERVICES:
        service.reset()


__all__ = [
    'KuzuUserService',
    'TasteRecordService',
    'StayService',
    'RecommendationService',
    'GuildService',
    'GuildRecordService',
    'MissionService',
    'DashboardService',
    'UploadService',
    'KakaoClient',
    'user_service',
    'taste_record_service',
    'stay_service',
    'recommendation_service',
    'guild_service',
    'guild_record_service',
    'mission_service',
    'dashboard_service',
    'upload_service',
    'kakao_client',
    'reset_all_services',
]
