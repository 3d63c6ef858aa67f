"""Tests for guild records, threaded comments and notifications."""
from datetime import datetime, timedelta, timezone

import pytest

from app.services import guild_service, stay_service
from app.domain.models import Place


@pytest.fixture
def crew(make_client):
    """A guild with an owner and two approved members."""
    owner, owner_user = make_client('owner@example.com', 'Owner')
    bob, bob_user = make_client('bob@example.com', 'Bob')
    cat, cat_user = make_client('cat@example.com', 'Cat')
    guild = owner.post('/api/guilds', json={'name': 'Crew'}).get_json()['data']
    for client in (bob, cat):
        m = client.post(f"/api/guilds/{guild['id']}/join").get_json()['data']
        owner.post(f"/api/guilds/{guild['id']}/memberships/{m['id']}/approve")
    return {
        'guild': guild,
        'owner': (owner, owner_user),
        'bob': (bob, bob_user),
        'cat': (cat, cat_user),
    }


def _record(client, guild_id, **body):
    body.setdefault('title', 'Great ramen')
    return client.post(f'/api/guilds/{guild_id}/records', json=body)


def test_create_record_awards_points(crew):
    guild_id = crew['guild']['id']
    bob, bob_user = crew['bob']

    resp = _record(bob, guild_id, rating=4, hashtags=['#ramen'])
    assert resp.status_code == 201
    record = resp.get_json()['data']
    assert record['userName'] == 'Bob'
    assert record['hashtags'] == ['#ramen']
    assert guild_service.get_scores(guild_id)[bob_user['id']] == 10

    _record(bob, guild_id, title='Second')
    assert guild_service.get_scores(guild_id)[bob_user['id']] == 20

    listed = bob.get(f'/api/guilds/{guild_id}/records').get_json()['data']
    assert [r['title'] for r in listed] == ['Second', 'Great ramen']


def test_create_record_checks(crew, make_client):
    guild_id = crew['guild']['id']
    outsider, _ = make_client('out@example.com')

    assert _record(crew['bob'][0], guild_id, title='').status_code == 400
    assert _record(crew['bob'][0], 'missing').status_code == 404

    resp = _record(outsider, guild_id)
    assert resp.status_code == 403
    assert resp.get_json()['code'] == 'NOT_MEMBER'


def test_place_record_requires_min_stay(crew):
    guild_id = crew['guild']['id']
    bob, bob_user = crew['bob']

    resp = _record(bob, guild_id, kakaoPlaceId='place-1')
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'MIN_STAY_NOT_MET'

    end = datetime.now(timezone.utc)
    stay_service.create_stay(bob_user['id'], 37.5, 127.0,
                             start_ms=(end - timedelta(minutes=6)).timestamp() * 1000,
                             end_ms=end.timestamp() * 1000)
    stay = stay_service.get_latest_stay(bob_user['id'])
    stay_service.tag_stay(stay, Place(id='place-1', name='p', x=127.0, y=37.5, mapped_category='식당'))

    resp = _record(bob, guild_id, kakaoPlaceId='place-1')
    assert resp.status_code == 201
    assert resp.get_json()['data']['kakaoPlaceId'] == 'place-1'


def test_get_and_delete_record(crew):
    guild_id = crew['guild']['id']
    bob, _ = crew['bob']
    cat, _ = crew['cat']
    record = _record(bob, guild_id).get_json()['data']
    path = f"/api/guilds/{guild_id}/records/{record['id']}"

    assert cat.get(path).get_json()['data']['id'] == record['id']
    assert cat.get(f'/api/guilds/{guild_id}/records/nope').status_code == 404

    denied = cat.delete(path)
    assert denied.status_code == 403
    assert denied.get_json()['code'] == 'NOT_AUTHOR'

    cat.post(f'{path}/comments', json={'content': 'nice'})
    assert bob.delete(path).status_code == 200
    assert bob.get(path).status_code == 404
    count = guild_service.db.query_value(
        "MATCH (c:GuildRecordComment) WHERE c.record_id = $id RETURN count(c)", {'id': record['id']},
    )
    assert count == 0


def test_comments_and_notifications(crew):
    guild_id = crew['guild']['id']
    owner, _ = crew['owner']
    bob, bob_user = crew['bob']
    cat, cat_user = crew['cat']
    record = _record(bob, guild_id).get_json()['data']
    comments_path = f"/api/guilds/{guild_id}/records/{record['id']}/comments"

    assert cat.post(comments_path, json={'content': '   '}).status_code == 400

    top = cat.post(comments_path, json={'content': 'Looks great'})
    assert top.status_code == 201
    top = top.get_json()['data']

    # Bob replying on his own record notifies only Cat
    bob.post(comments_path, json={'content': 'Thanks', 'parentCommentId': top['id']})
    # Owner replying to Cat notifies Bob (COMMENT) and Cat (REPLY)
    owner.post(comments_path, json={'content': 'Agreed', 'parentCommentId': top['id']})

    missing_parent = owner.post(comments_path, json={'content': 'x', 'parentCommentId': 'nope'})
    assert missing_parent.status_code == 404

    comments = bob.get(comments_path).get_json()['data']
    assert [c['content'] for c in comments] == ['Looks great', 'Thanks', 'Agreed']
    assert comments[1]['parentCommentId'] == top['id']

    bob_notes = bob.get('/api/guilds/notifications').get_json()['data']
    assert [(n['type'], n['content']) for n in bob_notes] == [('COMMENT', 'Agreed'), ('COMMENT', 'Looks great')]
    assert bob_notes[1]['fromUserName'] == 'Cat'

    cat_notes = cat.get('/api/guilds/notifications').get_json()['data']
    assert sorted(n['type'] for n in cat_notes) == ['REPLY', 'REPLY']

    assert owner.get('/api/guilds/notifications').get_json()['data'] == []


def test_comment_on_missing_record(crew):
    guild_id = crew['guild']['id']
    resp = crew['cat'][0].post(f'/api/guilds/{guild_id}/records/nope/comments', json={'content': 'hi'})
    assert resp.status_code == 404


def test_delete_comment(crew):
    guild_id = crew['guild']['id']
    bob, _ = crew['bob']
    cat, _ = crew['cat']
    record = _record(bob, guild_id).get_json()['data']
    comments_path = f"/api/guilds/{guild_id}/records/{record['id']}/comments"
    comment = cat.post(comments_path, json={'content': 'mine'}).get_json()['data']

    assert bob.delete(f"{comments_path}/{comment['id']}").status_code == 403
    assert cat.delete(f"{comments_path}/nope").status_code == 404
    assert cat.delete(f"{comments_path}/{comment['id']}").status_code == 200
    assert bob.get(comments_path).get_json()['data'] == []


def test_unread_count_and_mark_read(crew):
    guild_id = crew['guild']['id']
    bob, _ = crew['bob']
    cat, _ = crew['cat']
    record = _record(bob, guild_id).get_json()['data']
    comments_path = f"/api/guilds/{guild_id}/records/{record['id']}/comments"
    cat.post(comments_path, json={'content': 'one'})
    cat.post(comments_path, json={'content': 'two'})

    unread = bob.get('/api/guilds/notifications/unread-count').get_json()
    assert unread == {'ok': True, 'data': {'count': 2}}

    notes = bob.get('/api/guilds/notifications').get_json()['data']
    assert cat.patch(f"/api/guilds/notifications/{notes[0]['id']}/read").status_code == 403
    assert bob.patch('/api/guilds/notifications/nope/read').status_code == 404

    bob.patch(f"/api/guilds/notifications/{notes[0]['id']}/read")
    assert bob.get('/api/guilds/notifications/unread-count').get_json()['data']['count'] == 1

    assert bob.patch('/api/guilds/notifications/read-all').status_code == 200
    assert bob.get('/api/guilds/notifications/unread-count').get_json()['data']['count'] == 0
