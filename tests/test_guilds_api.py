"""Tests for guild CRUD, the membership flow and ranking."""
import pytest

from app.services import guild_service
from app.services.guild_service import score_params, score_upsert_query


@pytest.fixture
def owner(make_client):
    return make_client('owner@example.com', 'Owner')


@pytest.fixture
def guild(owner):
    client, _ = owner
    resp = client.post('/api/guilds', json={
        'name': '  Coffee Club ',
        'description': 'beans',
        'tags': ['a', ' ', 'b'],
        'maxMembers': 2,
    })
    assert resp.status_code == 201
    return resp.get_json()['data']


def _join(client, guild_id):
    return client.post(f'/api/guilds/{guild_id}/join').get_json()['data']


def test_create_guild_requires_name(owner):
    client, _ = owner
    resp = client.post('/api/guilds', json={'name': '  '})
    assert resp.status_code == 400


def test_create_guild_cleans_input_and_approves_owner(owner, guild):
    _, owner_user = owner
    assert guild['name'] == 'Coffee Club'
    assert guild['tags'] == ['a', 'b']
    assert guild['maxMembers'] == 2
    assert guild['ownerId'] == owner_user['id']
    assert guild_service.is_approved_member(owner_user['id'], guild['id'])


def test_list_and_get_guilds(client, owner, guild):
    owner_client, _ = owner
    owner_client.post('/api/guilds', json={'name': 'Newer'})

    listed = client.get('/api/guilds').get_json()['data']
    assert [g['name'] for g in listed] == ['Newer', 'Coffee Club']
    assert listed[1]['memberCount'] == 1

    detail = client.get(f"/api/guilds/{guild['id']}").get_json()['data']
    assert detail['description'] == 'beans'

    missing = client.get('/api/guilds/nope')
    assert missing.status_code == 404
    assert missing.get_json()['code'] == 'GUILD_NOT_FOUND'


def test_my_guild_status(owner, guild, make_client):
    owner_client, _ = owner
    me = owner_client.get('/api/guilds/me').get_json()['data']
    assert me['status'] == 'APPROVED'
    assert me['guild']['id'] == guild['id']

    other, _ = make_client('loner@example.com')
    assert other.get('/api/guilds/me').get_json()['data'] == {'status': 'NONE'}


def test_join_flow(owner, guild, make_client):
    owner_client, _ = owner
    member, member_user = make_client('member@example.com', 'Member')

    membership = _join(member, guild['id'])
    assert membership['status'] == 'PENDING'
    # Joining twice returns the same request
    assert _join(member, guild['id'])['id'] == membership['id']
    # The owner re-joining keeps their approved membership
    assert _join(owner_client, guild['id'])['status'] == 'APPROVED'

    pending = owner_client.get(f"/api/guilds/{guild['id']}/pending").get_json()['data']
    assert [(p['userId'], p['userName']) for p in pending] == [(member_user['id'], 'Member')]

    forbidden = member.get(f"/api/guilds/{guild['id']}/pending")
    assert forbidden.status_code == 403
    assert forbidden.get_json()['code'] == 'NOT_OWNER'

    resp = owner_client.post(f"/api/guilds/{guild['id']}/memberships/{membership['id']}/approve")
    assert resp.status_code == 200

    members = owner_client.get(f"/api/guilds/{guild['id']}/members").get_json()['data']
    assert {m['userId']: m['isOwner'] for m in members} == {
        member_user['id']: False,
        guild['ownerId']: True,
    }


def test_join_missing_guild(make_client):
    client, _ = make_client('x@example.com')
    resp = client.post('/api/guilds/nope/join')
    assert resp.status_code == 404
    assert resp.get_json()['code'] == 'GUILD_NOT_FOUND'


def test_approve_respects_member_limit(owner, guild, make_client):
    owner_client, _ = owner
    first, _ = make_client('first@example.com')
    second, _ = make_client('second@example.com')
    m1 = _join(first, guild['id'])
    m2 = _join(second, guild['id'])

    owner_client.post(f"/api/guilds/{guild['id']}/memberships/{m1['id']}/approve")
    full = owner_client.post(f"/api/guilds/{guild['id']}/memberships/{m2['id']}/approve")
    assert full.status_code == 400
    assert full.get_json()['code'] == 'GUILD_FULL'


def test_reject_and_cross_guild_membership(owner, guild, make_client):
    owner_client, _ = owner
    member, member_user = make_client('member@example.com')
    membership = _join(member, guild['id'])

    other_guild = owner_client.post('/api/guilds', json={'name': 'Other'}).get_json()['data']
    wrong = owner_client.post(f"/api/guilds/{other_guild['id']}/memberships/{membership['id']}/approve")
    assert wrong.status_code == 404

    owner_client.post(f"/api/guilds/{guild['id']}/memberships/{membership['id']}/reject")
    assert guild_service.get_membership(member_user['id'], guild['id']) is None


def test_leave_guild(owner, guild, make_client):
    owner_client, _ = owner
    resp = owner_client.post(f"/api/guilds/{guild['id']}/leave")
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'OWNER_CANNOT_LEAVE'

    member, member_user = make_client('member@example.com')
    missing = member.post(f"/api/guilds/{guild['id']}/leave")
    assert missing.status_code == 404
    assert missing.get_json()['code'] == 'MEMBERSHIP_NOT_FOUND'

    _join(member, guild['id'])
    left = member.post(f"/api/guilds/{guild['id']}/leave")
    assert left.get_json() == {'ok': True, 'data': None}
    assert guild_service.get_membership(member_user['id'], guild['id']) is None


def test_update_emblem_owner_only(owner, guild, make_client):
    owner_client, _ = owner
    other, _ = make_client('other@example.com')
    assert other.patch(f"/api/guilds/{guild['id']}", json={'emblemUrl': '/x.png'}).status_code == 403

    resp = owner_client.patch(f"/api/guilds/{guild['id']}", json={'emblemUrl': '/uploads/guilds/e.png'})
    assert resp.get_json()['data']['emblemUrl'] == '/uploads/guilds/e.png'
    assert guild_service.get_guild(guild['id']).emblem_url == '/uploads/guilds/e.png'


def test_ranking_orders_by_name_then_score(owner, guild, make_client):
    owner_client, owner_user = owner
    guild_service.db.query("MATCH (g:Guild {id: $id}) SET g.max_members = 10", {'id': guild['id']})
    zed, zed_user = make_client('zed@example.com', 'Zed')
    amy, amy_user = make_client('amy@example.com', 'Amy')
    for client in (zed, amy):
        m = _join(client, guild['id'])
        owner_client.post(f"/api/guilds/{guild['id']}/memberships/{m['id']}/approve")

    ranking = zed.get(f"/api/guilds/{guild['id']}/ranking").get_json()['data']
    assert [e['userName'] for e in ranking['top3']] == ['Amy', 'Owner', 'Zed']
    assert ranking['myRank']['rank'] == 3

    guild_service.db.query(score_upsert_query(), score_params(zed_user['id'], guild['id'], 10))
    guild_service.db.query(score_upsert_query(), score_params(zed_user['id'], guild['id'], 5))
    guild_service.db.query(score_upsert_query(), score_params(amy_user['id'], guild['id'], 3))

    ranking = zed.get(f"/api/guilds/{guild['id']}/ranking").get_json()['data']
    assert [(e['userName'], e['score']) for e in ranking['top3']] == [('Zed', 15), ('Amy', 3), ('Owner', 0)]
    assert ranking['myRank'] == {
        'rank': 1, 'userId': zed_user['id'], 'userName': 'Zed', 'userEmail': 'zed@example.com', 'score': 15,
    }


def test_disband_removes_everything(owner, guild, make_client):
    owner_client, _ = owner
    member, _ = make_client('member@example.com')
    _join(member, guild['id'])

    assert member.post(f"/api/guilds/{guild['id']}/disband").status_code == 403

    owner_client.post(f"/api/guilds/{guild['id']}/missions", json={'title': 'Go', 'limitCount': 2})
    owner_client.post(f"/api/guilds/{guild['id']}/records", json={'title': 'Hello'})

    resp = owner_client.post(f"/api/guilds/{guild['id']}/disband")
    assert resp.get_json() == {'ok': True, 'data': None}
    assert guild_service.get_guild(guild['id']) is None
    for table in ('GuildMembership', 'GuildMission', 'GuildRecord', 'GuildScore'):
        count = guild_service.db.query_value(
            f"MATCH (n:{table}) WHERE n.guild_id = $id RETURN count(n)", {'id': guild['id']},
        )
        assert count == 0, table
