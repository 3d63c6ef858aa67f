"""
Kakao API client

Wraps the Kakao endpoints the app depends on:
- OAuth authorize/token and the user profile API (social login)
- Local category search (place tagging and recommendations)
- Mobility directions (multi-waypoint route optimization)

All outbound calls go through the adaptive rate limiter.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests
from flask import current_app

from ..domain.models import Place
from ..errors import ServiceError, UpstreamError
from ..utils.adaptive_http import adaptive_get, adaptive_post
from ..utils.categories import KAKAO_GROUP_CODES, map_category
from ..utils.geo import haversine_meters

logger = logging.getLogger(__name__)

KAKAO_AUTH_URL = 'https://kauth.kakao.com/oauth/authorize'
KAKAO_TOKEN_URL = 'https://kauth.kakao.com/oauth/token'
KAKAO_USER_INFO_URL = 'https://kapi.kakao.com/v2/user/me'
KAKAO_CATEGORY_SEARCH_URL = 'https://dapi.kakao.com/v2/local/search/category.json'
KAKAO_DIRECTIONS_URL = 'https://apis-navi.kakaomobility.com/v1/directions'

KAKAO_OAUTH_SCOPE = 'profile_nickname profile_image account_email'

# Kakao Local rejects radius > 20km and page size > 15
MAX_SEARCH_RADIUS_M = 20000
SEARCH_PAGE_SIZE = 15

# A stay is tagged with the nearest place within this distance
STAY_PLACE_MAX_DISTANCE_M = 1000


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def place_from_document(doc: Dict[str, Any]) -> Place:
    """Convert a Kakao Local ``documents[]`` entry into a Place."""
    return Place(
        id=str(doc.get('id')),
        name=doc.get('place_name') or '',
        x=_to_float(doc.get('x')) or 0.0,
        y=_to_float(doc.get('y')) or 0.0,
        category_name=doc.get('category_name'),
        category_group_code=doc.get('category_group_code'),
        mapped_category=map_category(doc.get('category_group_code'), doc.get('category_name')),
        phone=doc.get('phone') or None,
        road_address=doc.get('road_address_name') or None,
        address=doc.get('address_name') or None,
        distance_meters=_to_float(doc.get('distance')),
    )


class KakaoClient:
    """Thin client over the Kakao REST APIs."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = config

    @property
    def config(self):
        return self._config if self._config is not None else current_app.config

    @property
    def timeout(self) -> float:
        return float(self.config.get('KAKAO_HTTP_TIMEOUT', 10))

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    @property
    def oauth_configured(self) -> bool:
        return bool(self.config.get('KAKAO_CLIENT_ID'))

    def authorize_url(self) -> str:
        params = {
            'client_id': self.config.get('KAKAO_CLIENT_ID'),
            'redirect_uri': self.config.get('KAKAO_REDIRECT_URI'),
            'response_type': 'code',
            'scope': KAKAO_OAUTH_SCOPE,
        }
        return f"{KAKAO_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> str:
        """Trade an authorization code for an access token."""
        data = {
            'grant_type': 'authorization_code',
            'client_id': self.config.get('KAKAO_CLIENT_ID'),
            'redirect_uri': self.config.get('KAKAO_REDIRECT_URI'),
            'code': code,
        }
        if self.config.get('KAKAO_CLIENT_SECRET'):
            data['client_secret'] = self.config.get('KAKAO_CLIENT_SECRET')

        payload = self._request(adaptive_post, 'kakao_auth', KAKAO_TOKEN_URL, 'token exchange', data=data)
        token = payload.get('access_token')
        if not token:
            raise UpstreamError('KAKAO_TOKEN_MISSING', 'Kakao did not return an access token')
        return token

    def fetch_user(self, access_token: str) -> Dict[str, Any]:
        """Return ``{id, email, nickname, profile_image}`` for the token owner."""
        payload = self._request(
            adaptive_get, 'kakao_api', KAKAO_USER_INFO_URL, 'user info',
            headers={'Authorization': f'Bearer {access_token}'},
        )
        account = payload.get('kakao_account') or {}
        profile = account.get('profile') or {}
        return {
            'id': str(payload.get('id')),
            'email': account.get('email'),
            'nickname': profile.get('nickname'),
            'profile_image': profile.get('profile_image_url'),
        }

    # ------------------------------------------------------------------
    # Local search
    # ------------------------------------------------------------------

    def _rest_headers(self) -> Dict[str, str]:
        api_key = self.config.get('KAKAO_REST_API_KEY')
        if not api_key:
            raise ServiceError('KAKAO_NOT_CONFIGURED', 'KAKAO_REST_API_KEY is not configured', 500)
        return {'Authorization': f'KakaoAK {api_key}'}

    def search_category(self, group_code: str, x: float, y: float, radius: int) -> List[Place]:
        """One category-group search around (x=lng, y=lat), nearest first."""
        params = {
            'category_group_code': group_code,
            'x': x,
            'y': y,
            'radius': max(0, min(int(radius), MAX_SEARCH_RADIUS_M)),
            'sort': 'distance',
            'size': SEARCH_PAGE_SIZE,
        }
        payload = self._request(
            adaptive_get, 'kakao_local', KAKAO_CATEGORY_SEARCH_URL, f'category search {group_code}',
            headers=self._rest_headers(), params=params,
        )
        return [place_from_document(doc) for doc in payload.get('documents') or []]

    def nearby_places(self, x: float, y: float, radius: int) -> List[Place]:
        """Search every tracked category group and de-duplicate by place id."""
        seen = set()
        places: List[Place] = []
        for group_code in KAKAO_GROUP_CODES:
            for place in self.search_category(group_code, x, y, radius):
                if place.id in seen:
                    continue
                seen.add(place.id)
                places.append(place)
        return places

    def find_stayed_place(self, lat: float, lng: float) -> Optional[Place]:
        """Nearest tracked place within STAY_PLACE_MAX_DISTANCE_M of the point."""
        best: Optional[Place] = None
        for place in self.nearby_places(lng, lat, STAY_PLACE_MAX_DISTANCE_M):
            distance = place.distance_meters
            if distance is None:
                distance = haversine_meters(lat, lng, place.y, place.x)
                place.distance_meters = distance
            if distance > STAY_PLACE_MAX_DISTANCE_M:
                continue
            if best is None or distance < best.distance_meters:
                best = place
        return best

    # ------------------------------------------------------------------
    # Mobility
    # ------------------------------------------------------------------

    def optimize_route(self, origin: str, destination: str,
                       waypoints: Optional[List[str]] = None,
                       priority: Optional[str] = None) -> Dict[str, Any]:
        """Proxy a directions request. Points are "lng,lat" strings."""
        api_key = self.config.get('KAKAO_MOBILITY_API_KEY')
        if not api_key:
            raise ServiceError('KAKAO_NOT_CONFIGURED', 'KAKAO_MOBILITY_API_KEY is not configured', 500)

        params = {
            'origin': origin,
            'destination': destination,
            'priority': priority or 'RECOMMEND',
            'road_details': 'true',
            'alternatives': 'false',
        }
        if waypoints:
            params['waypoints'] = '|'.join(waypoints)

        return self._request(
            adaptive_get, 'kakao_mobility', KAKAO_DIRECTIONS_URL, 'directions',
            headers={'Authorization': f'KakaoAK {api_key}', 'Content-Type': 'application/json'},
            params=params,
        )

    def _request(self, send, limiter_key: str, url: str, what: str, **kwargs) -> Dict[str, Any]:
        try:
            resp = send(limiter_key, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as exc:
            logger.warning(f"Kakao {what} request failed: {exc}")
            raise UpstreamError('KAKAO_UNREACHABLE', f'Kakao {what} request failed') from exc
        return self._json_or_raise(resp, what)

    @staticmethod
    def _json_or_raise(resp: requests.Response, what: str) -> Dict[str, Any]:
        if resp.status_code >= 400:
            logger.warning(f"Kakao {what} failed with status {resp.status_code}: {resp.text[:300]}")
            raise UpstreamError('KAKAO_API_ERROR', f'Kakao {what} failed with status {resp.status_code}')
        try:
            return resp.json()
        except ValueError:
            raise UpstreamError('KAKAO_API_ERROR', f'Kakao {what} returned invalid JSON')
