"""
Guild Record API Endpoints

Records ("collections") posted to a guild, their threaded comments and
the comment/reply notifications they generate.
"""

from flask import Blueprint, jsonify
from flask_login import login_required

from .helpers import current_user_id, json_body
from ..domain.models import isoformat
from ..errors import NotFound
from ..services import guild_record_service, guild_service, user_service

guild_records_api = Blueprint('guild_records_api', __name__, url_prefix='/api/guilds')


def author_names(user_ids):
    users = user_service.get_users_by_ids(user_ids)
    return {uid: (user.name or user.email) for uid, user in users.items()}


def serialize_guild_record(record, user_name=None):
    return {
        'id': record.id,
        'guildId': record.guild_id,
        'userId': record.user_id,
        'userName': user_name,
        'missionId': record.mission_id,
        'title': record.title,
        'desc': record.desc,
        'content': record.content,
        'category': record.category,
        'recordedAt': isoformat(record.recorded_at),
        'rating': record.rating,
        'mainImage': record.main_image,
        'extraImages': record.extra_images,
        'hashtags': record.hashtags,
        'kakaoPlaceId': record.kakao_place_id,
        'createdAt': isoformat(record.created_at),
    }


def serialize_records(records):
    names = author_names(r.user_id for r in records)
    return [serialize_guild_record(r, names.get(r.user_id)) for r in records]


def serialize_comment(comment, user_name=None):
    return {
        'id': comment.id,
        'recordId': comment.record_id,
        'userId': comment.user_id,
        'userName': user_name,
        'parentCommentId': comment.parent_comment_id,
        'content': comment.content,
        'createdAt': isoformat(comment.created_at),
    }


def serialize_notification(notification, from_user_name=None):
    return {
        'id': notification.id,
        'type': notification.type.value,
        'recordId': notification.record_id,
        'commentId': notification.comment_id,
        'fromUserId': notification.from_user_id,
        'fromUserName': from_user_name,
        'content': notification.content,
        'isRead': notification.is_read,
        'createdAt': isoformat(notification.created_at),
    }


def _record_in_guild(guild_id, record_id):
    record = guild_record_service.get_record(record_id)
    if record is None or record.guild_id != guild_id:
        raise NotFound('RECORD_NOT_FOUND', 'Guild record not found')
    return record


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------

@guild_records_api.route('/notifications', methods=['GET'])
@login_required
def list_notifications():
    notifications = guild_record_service.list_notifications(current_user_id())
    names = author_names(n.from_user_id for n in notifications)
    return jsonify({
        'ok': True,
        'data': [serialize_notification(n, names.get(n.from_user_id)) for n in notifications],
    })


@guild_records_api.route('/notifications/unread-count', methods=['GET'])
@login_required
def unread_notification_count():
    return jsonify({'ok': True, 'data': {'count': guild_record_service.unread_count(current_user_id())}})


@guild_records_api.route('/notifications/read-all', methods=['PATCH'])
@login_required
def mark_all_notifications_read():
    guild_record_service.mark_all_read(current_user_id())
    return jsonify({'ok': True, 'data': None})


@guild_records_api.route('/notifications/<notification_id>/read', methods=['PATCH'])
@login_required
def mark_notification_read(notification_id):
    guild_record_service.mark_read(notification_id, current_user_id())
    return jsonify({'ok': True, 'data': None})


# ----------------------------------------------------------------------
# Records
# ----------------------------------------------------------------------

@guild_records_api.route('/<guild_id>/records', methods=['POST'])
@login_required
def create_guild_record(guild_id):
    record = guild_record_service.create_record(current_user_id(), guild_id, json_body())
    names = author_names([record.user_id])
    return jsonify({'ok': True, 'data': serialize_guild_record(record, names.get(record.user_id))}), 201


@guild_records_api.route('/<guild_id>/records', methods=['GET'])
def list_guild_records(guild_id):
    guild_service.require_guild(guild_id)
    records = guild_record_service.list_records(guild_id)
    return jsonify({'ok': True, 'data': serialize_records(records)})


@guild_records_api.route('/<guild_id>/records/<record_id>', methods=['GET'])
def get_guild_record(guild_id, record_id):
    record = _record_in_guild(guild_id, record_id)
    names = author_names([record.user_id])
    return jsonify({'ok': True, 'data': serialize_guild_record(record, names.get(record.user_id))})


@guild_records_api.route('/<guild_id>/records/<record_id>', methods=['DELETE'])
@login_required
def delete_guild_record(guild_id, record_id):
    _record_in_guild(guild_id, record_id)
    guild_record_service.delete_record(record_id, current_user_id())
    return jsonify({'ok': True, 'data': None})


# ----------------------------------------------------------------------
# Comments
# ----------------------------------------------------------------------

@guild_records_api.route('/<guild_id>/records/<record_id>/comments', methods=['POST'])
@login_required
def create_comment(guild_id, record_id):
    _record_in_guild(guild_id, record_id)
    data = json_body()
    comment = guild_record_service.create_comment(
        current_user_id(), record_id, data.get('content'), data.get('parentCommentId'),
    )
    names = author_names([comment.user_id])
    return jsonify({'ok': True, 'data': serialize_comment(comment, names.get(comment.user_id))}), 201


@guild_records_api.route('/<guild_id>/records/<record_id>/comments', methods=['GET'])
def list_comments(guild_id, record_id):
    _record_in_guild(guild_id, record_id)
    comments = guild_record_service.list_comments(record_id)
    names = author_names(c.user_id for c in comments)
    return jsonify({'ok': True, 'data': [serialize_comment(c, names.get(c.user_id)) for c in comments]})


@guild_records_api.route('/<guild_id>/records/<record_id>/comments/<comment_id>', methods=['DELETE'])
@login_required
def delete_comment(guild_id, record_id, comment_id):
    comment = guild_record_service.get_comment(comment_id)
    if comment is None or comment.record_id != record_id:
        raise NotFound('COMMENT_NOT_FOUND', 'Comment not found')
    guild_record_service.delete_comment(comment_id, current_user_id())
    return jsonify({'ok': True, 'data': None})
