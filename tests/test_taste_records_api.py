"""Tests for personal taste records, suggestions and the taste dashboard."""


def _create(client, **overrides):
    body = {'title': 'Blue Bottle', 'category': '카페', 'desc': 'pour over', 'tags': ['#coffee', ' ', '#quiet']}
    body.update(overrides)
    return client.post('/api/taste-records', json=body)


def test_create_and_list_records(auth_client):
    resp = _create(auth_client)
    assert resp.status_code == 201
    record = resp.get_json()['data']
    assert record['title'] == 'Blue Bottle'
    assert record['desc'] == 'pour over'
    assert record['tags'] == ['#coffee', '#quiet']
    assert record['createdAt'].endswith('Z')

    _create(auth_client, title='Second')
    listed = auth_client.get('/api/taste-records').get_json()['data']
    assert [r['title'] for r in listed] == ['Second', 'Blue Bottle']


def test_create_requires_title_and_category(auth_client):
    resp = _create(auth_client, category='')
    assert resp.status_code == 400
    assert resp.get_json()['ok'] is False


def test_records_are_private(auth_client, make_client):
    record = _create(auth_client).get_json()['data']
    other, _ = make_client('eve@example.com')

    assert other.get('/api/taste-records').get_json()['data'] == []
    assert other.get(f"/api/taste-records/{record['id']}").status_code == 404
    assert other.delete(f"/api/taste-records/{record['id']}").status_code == 404

    assert auth_client.get(f"/api/taste-records/{record['id']}").status_code == 200


def test_delete_record(auth_client):
    record = _create(auth_client).get_json()['data']
    resp = auth_client.delete(f"/api/taste-records/{record['id']}")
    assert resp.status_code == 200
    assert auth_client.get(f"/api/taste-records/{record['id']}").status_code == 404


def test_suggestions(auth_client):
    resp = auth_client.post('/api/taste-records/suggestions', json={'mood': '공부', 'companion': '혼자'})
    data = resp.get_json()['data']
    assert data['category'] == '도서'
    assert data['tags'] == ['#공부', '#집중', '#혼자', '#나와의시간']


def test_dashboard_counts_tagged_stays(app, auth_client):
    from app.domain.models import Place
    from app.services import dashboard_service, stay_service

    user_id = auth_client.user['id']
    for category in ('카페', '카페', '식당'):
        stay = stay_service.create_stay(user_id, 37.5, 127.0)
        stay_service.tag_stay(stay, Place(id=f'p-{category}', name='x', x=127.0, y=37.5, mapped_category=category))
    stay_service.create_stay(user_id, 37.5, 127.0)

    for path in ('/api/taste/dashboard', '/api/taste-dashboard/me', '/api/taste-records/dashboard'):
        body = auth_client.get(path).get_json()
        assert body['ok'] is True
        assert body['totalStays'] == 3
        cafe = next(c for c in body['categories'] if c['key'] == '카페')
        assert cafe['count'] == 2
        assert cafe['percentage'] == 66.7

    snapshot = dashboard_service.get_snapshot(user_id)
    assert snapshot['totalStays'] == 3
