"""Tests for live location, dwell detection and stay tagging."""
from datetime import datetime, timedelta, timezone

from app.domain.models import Place
from app.services import recommendation_service, stay_service
from app.services.kakao_client import KakaoClient

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

CAFE = Place(
    id='cafe-1', name='Cafe One', x=127.0, y=37.5,
    category_name='음식점 > 카페', category_group_code='CE7', mapped_category='카페',
    distance_meters=12.0,
)


def _user(make_client, email='walker@example.com'):
    client, user = make_client(email)
    return client, user['id']


def test_location_update_requires_numbers(auth_client):
    resp = auth_client.post('/api/location/update', json={'lat': 'north', 'lng': 127})
    assert resp.status_code == 400


def test_first_ping_creates_stay(auth_client):
    resp = auth_client.post('/api/location/update', json={'lat': 37.5, 'lng': 127.0})
    body = resp.get_json()
    assert body['ok'] is True
    assert body['mode'] == 'create'
    assert body['tagged'] is False
    assert stay_service.get_live_location(auth_client.user['id']).lat == 37.5


def test_nearby_ping_extends_stay(make_client, monkeypatch):
    monkeypatch.setattr(KakaoClient, 'find_stayed_place', lambda self, lat, lng: None)
    _, user_id = _user(make_client)

    first = stay_service.record_location(user_id, 37.5, 127.0, now=T0)
    # ~11 m north, two minutes later
    second = stay_service.record_location(user_id, 37.5001, 127.0, now=T0 + timedelta(minutes=2))

    assert first['mode'] == 'create'
    assert second['mode'] == 'update'
    assert second['stayId'] == first['stayId']
    assert second['durationMs'] == 120000


def test_far_or_late_ping_starts_new_stay(make_client):
    _, user_id = _user(make_client)

    first = stay_service.record_location(user_id, 37.5, 127.0, now=T0)
    far = stay_service.record_location(user_id, 37.51, 127.0, now=T0 + timedelta(minutes=1))
    late = stay_service.record_location(user_id, 37.51, 127.0, now=T0 + timedelta(minutes=7))

    assert far['mode'] == 'create' and far['stayId'] != first['stayId']
    assert late['mode'] == 'create' and late['stayId'] != far['stayId']


def test_long_stay_is_tagged_with_nearest_place(make_client, monkeypatch):
    monkeypatch.setattr(KakaoClient, 'find_stayed_place', lambda self, lat, lng: CAFE)
    _, user_id = _user(make_client)

    stay_service.record_location(user_id, 37.5, 127.0, now=T0)
    short = stay_service.record_location(user_id, 37.5, 127.0, now=T0 + timedelta(minutes=4))
    assert short['tagged'] is False

    long = stay_service.record_location(user_id, 37.5, 127.0, now=T0 + timedelta(minutes=8))
    assert long['tagged'] is True

    stay = stay_service.get_stay(long['stayId'])
    assert stay.kakao_place_id == 'cafe-1'
    assert stay.mapped_category == '카페'
    assert stay_service.has_min_stay_at_place(user_id, 'cafe-1') is True

    # The visit shows up as a recommendation linked to the stay
    recs = recommendation_service.list_recommendations(user_id)
    assert [(r.kakao_place_id, r.stay_id) for r in recs] == [('cafe-1', stay.id)]

    # Already tagged stays are not looked up again
    again = stay_service.record_location(user_id, 37.5, 127.0, now=T0 + timedelta(minutes=9))
    assert again['tagged'] is False


def test_untracked_place_leaves_stay_untagged(make_client, monkeypatch):
    monkeypatch.setattr(KakaoClient, 'find_stayed_place', lambda self, lat, lng: None)
    _, user_id = _user(make_client)

    stay_service.record_location(user_id, 37.5, 127.0, now=T0)
    result = stay_service.record_location(user_id, 37.5, 127.0, now=T0 + timedelta(minutes=6))
    assert result['tagged'] is False
    assert stay_service.get_stay(result['stayId']).mapped_category is None


def test_clear_location(auth_client):
    auth_client.post('/api/location/update', json={'lat': 37.5, 'lng': 127.0})
    assert auth_client.post('/api/location/clear').get_json() == {'ok': True}
    assert stay_service.get_live_location(auth_client.user['id']) is None


def test_create_stay_endpoint(auth_client):
    start = int(T0.timestamp() * 1000)
    resp = auth_client.post('/api/stays', json={
        'lat': 37.5, 'lng': 127.0, 'startTime': start, 'endTime': start + 600000,
    })
    assert resp.status_code == 201
    stay = resp.get_json()['stay']
    assert stay['startTime'] == '2024-05-01T12:00:00.000Z'
    assert stay['durationMs'] == 600000
    assert stay['mappedCategory'] is None


def test_create_stay_rejects_unrepresentable_times(auth_client):
    resp = auth_client.post('/api/stays', json={'lat': 37.5, 'lng': 127.0, 'startTime': 1e20})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['code'] == 'BAD_REQUEST'
    assert 'startTime' in body['message']

    resp = auth_client.post('/api/stays', json={'lat': 37.5, 'lng': 127.0, 'endTime': 'soon'})
    assert resp.status_code == 400
