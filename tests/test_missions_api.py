"""Tests for guild missions."""
import pytest

from app.services import guild_service


@pytest.fixture
def setup(make_client):
    owner, owner_user = make_client('owner@example.com', 'Owner')
    bob, bob_user = make_client('bob@example.com', 'Bob')
    cat, _ = make_client('cat@example.com', 'Cat')
    guild = owner.post('/api/guilds', json={'name': 'Explorers', 'maxMembers': 10}).get_json()['data']
    for client in (bob, cat):
        m = client.post(f"/api/guilds/{guild['id']}/join").get_json()['data']
        owner.post(f"/api/guilds/{guild['id']}/memberships/{m['id']}/approve")
    return guild['id'], owner, bob, cat, bob_user


def test_create_mission_validation(setup):
    guild_id, owner, bob, _, _ = setup
    base = f'/api/guilds/{guild_id}/missions'

    not_owner = bob.post(base, json={'title': 'x', 'limitCount': 2})
    assert not_owner.status_code == 403
    assert owner.post(base, json={'title': ' ', 'limitCount': 2}).status_code == 400

    bad_limit = owner.post(base, json={'title': 'x', 'limitCount': 0})
    assert bad_limit.status_code == 400
    assert bad_limit.get_json()['code'] == 'INVALID_LIMIT_COUNT'

    resp = owner.post(base, json={'title': 'Visit 3 cafes', 'limitCount': '2', 'difficulty': 'EASY'})
    assert resp.status_code == 201
    mission = resp.get_json()['data']
    assert mission['limitCount'] == 2
    assert mission['participantCount'] == 0


def test_participation_and_completion(setup):
    guild_id, owner, bob, cat, bob_user = setup
    base = f'/api/guilds/{guild_id}/missions'
    mission = owner.post(base, json={'title': 'Night walk', 'limitCount': 2}).get_json()['data']
    records_path = f"{base}/{mission['id']}/records"

    first = bob.post(records_path, json={'title': 'Done', 'kakaoPlaceId': 'ignored'})
    assert first.status_code == 201
    record = first.get_json()['data']
    assert record['missionId'] == mission['id']
    assert record['kakaoPlaceId'] is None
    assert guild_service.get_scores(guild_id)[bob_user['id']] == 10

    again = bob.post(records_path, json={'title': 'Again'})
    assert again.status_code == 400
    assert again.get_json()['code'] == 'ALREADY_PARTICIPATED'

    active = bob.get(base).get_json()['data']
    assert [(m['id'], m['participantCount']) for m in active] == [(mission['id'], 1)]

    assert cat.post(records_path, json={'title': 'Me too'}).status_code == 201
    assert bob.get(base).get_json()['data'] == []
    completed = bob.get(f'{base}/completed').get_json()['data']
    assert completed[0]['participantCount'] == 2
    assert completed[0]['isCompleted'] is True

    full = owner.post(records_path, json={'title': 'Late'})
    assert full.status_code == 400
    assert full.get_json()['code'] == 'MISSION_FULL'

    records = bob.get(records_path).get_json()['data']
    assert {r['userName'] for r in records} == {'Bob', 'Cat'}


def test_participation_requires_membership_and_mission(setup, make_client):
    guild_id, owner, bob, _, _ = setup
    base = f'/api/guilds/{guild_id}/missions'
    mission = owner.post(base, json={'title': 'Walk', 'limitCount': 5}).get_json()['data']

    outsider, _ = make_client('out@example.com')
    resp = outsider.post(f"{base}/{mission['id']}/records", json={'title': 'x'})
    assert resp.status_code == 403

    missing = bob.post(f'{base}/nope/records', json={'title': 'x'})
    assert missing.status_code == 404
    assert missing.get_json()['code'] == 'MISSION_NOT_FOUND'


def test_delete_mission(setup):
    guild_id, owner, bob, _, _ = setup
    base = f'/api/guilds/{guild_id}/missions'
    mission = owner.post(base, json={'title': 'Walk', 'limitCount': 5}).get_json()['data']

    assert bob.delete(f"{base}/{mission['id']}").status_code == 403
    assert owner.delete(f'{base}/nope').status_code == 404
    assert owner.delete(f"{base}/{mission['id']}").status_code == 200
    assert owner.get(base).get_json()['data'] == []
