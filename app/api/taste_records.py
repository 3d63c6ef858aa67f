"""
Taste Record API Endpoints

Personal taste entries of the logged-in user, plus the category/tag
suggestion helper used by the record wizard.
"""

from flask import Blueprint, current_app, jsonify
from flask_login import login_required

from .helpers import current_user_id, json_body
from ..domain.models import isoformat
from ..services import dashboard_service, taste_record_service
from ..utils.taste_insights import suggest_category_and_tags

taste_records_api = Blueprint('taste_records_api', __name__, url_prefix='/api/taste-records')


def serialize_taste_record(record):
    return {
        'id': record.id,
        'title': record.title,
        'desc': record.caption,
        'content': record.content,
        'category': record.category,
        'tags': record.tags,
        'thumb': record.thumb,
        'createdAt': isoformat(record.created_at),
    }


@taste_records_api.route('', methods=['POST'])
@taste_records_api.route('/', methods=['POST'])
@login_required
def create_taste_record():
    data = json_body()
    record = taste_record_service.create_record(
        current_user_id(),
        title=data.get('title'),
        category=data.get('category'),
        caption=data.get('caption', data.get('desc')),
        content=data.get('content'),
        tags=data.get('tags'),
        thumb=data.get('thumb'),
    )
    return jsonify({'ok': True, 'data': serialize_taste_record(record)}), 201


@taste_records_api.route('', methods=['GET'])
@taste_records_api.route('/', methods=['GET'])
@login_required
def list_taste_records():
    records = taste_record_service.list_records(current_user_id())
    return jsonify({'ok': True, 'data': [serialize_taste_record(r) for r in records]})


@taste_records_api.route('/suggestions', methods=['POST'])
@login_required
def suggestions():
    data = json_body()
    result = suggest_category_and_tags(data.get('mood'), data.get('companion'), data.get('vibe'))
    return jsonify({'ok': True, 'data': result})


@taste_records_api.route('/dashboard', methods=['GET'])
@login_required
def taste_record_dashboard():
    dashboard = dashboard_service.get_dashboard(current_user_id())
    return jsonify(dict(dashboard, ok=True))


@taste_records_api.route('/<record_id>', methods=['GET'])
@login_required
def get_taste_record(record_id):
    record = taste_record_service.get_record(current_user_id(), record_id)
    return jsonify({'ok': True, 'data': serialize_taste_record(record)})


@taste_records_api.route('/<record_id>', methods=['DELETE'])
@login_required
def delete_taste_record(record_id):
    taste_record_service.delete_record(current_user_id(), record_id)
    current_app.logger.info(f"Deleted taste record {record_id}")
    return jsonify({'ok': True, 'message': 'Record deleted'})
