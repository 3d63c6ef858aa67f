"""
Guild API Endpoints

Guild CRUD, the membership approval flow and ranking. Records, comments
and notifications live in ``guild_records``; missions in ``missions``.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from .helpers import current_user_id, json_body, optional_positive
from ..domain.models import isoformat
from ..errors import NotFound
from ..services import guild_service, recommendation_service
from ..services.recommendation_service import NEARBY_MEMBERS_RADIUS_M, NEARBY_PLACES_RADIUS_M

guilds_api = Blueprint('guilds_api', __name__, url_prefix='/api/guilds')


def serialize_guild(guild, member_count=None):
    data = {
        'id': guild.id,
        'name': guild.name,
        'description': guild.description,
        'category': guild.category,
        'tags': guild.tags,
        'rules': guild.rules,
        'maxMembers': guild.max_members,
        'emblemUrl': guild.emblem_url,
        'ownerId': guild.owner_id,
        'createdAt': isoformat(guild.created_at),
    }
    if member_count is not None:
        data['memberCount'] = member_count
    return data


def serialize_membership(membership):
    return {
        'id': membership.id,
        'userId': membership.user_id,
        'guildId': membership.guild_id,
        'status': membership.status.value,
        'createdAt': isoformat(membership.created_at),
    }


@guilds_api.route('', methods=['GET'])
@guilds_api.route('/', methods=['GET'])
def list_guilds():
    guilds = guild_service.list_guilds()
    return jsonify({'ok': True, 'data': [serialize_guild(g, count) for g, count in guilds]})


@guilds_api.route('/me', methods=['GET'])
@login_required
def my_guild():
    status = guild_service.get_my_guild_status(current_user_id())
    data = {'status': status['status']}
    if status.get('guild') is not None:
        data['guild'] = serialize_guild(status['guild'])
    return jsonify({'ok': True, 'data': data})


@guilds_api.route('/nearby-context', methods=['GET'])
@login_required
def nearby_context():
    radius_members = optional_positive(request.args.get('radiusMembers'), 'radiusMembers', NEARBY_MEMBERS_RADIUS_M)
    radius_places = optional_positive(request.args.get('radiusPlaces'), 'radiusPlaces', NEARBY_PLACES_RADIUS_M)
    context = recommendation_service.nearby_context(current_user_id(), radius_members, radius_places)
    return jsonify({'ok': True, 'data': context})


@guilds_api.route('', methods=['POST'])
@guilds_api.route('/', methods=['POST'])
@login_required
def create_guild():
    guild = guild_service.create_guild(current_user_id(), json_body())
    current_app.logger.info(f"Guild {guild.id} created by {guild.owner_id}")
    return jsonify({'ok': True, 'data': serialize_guild(guild, 1)}), 201


@guilds_api.route('/<guild_id>', methods=['GET'])
def get_guild(guild_id):
    guild = guild_service.get_guild(guild_id)
    if guild is None:
        raise NotFound('GUILD_NOT_FOUND', 'Guild not found')
    member_count = len(guild_service.approved_member_ids(guild_id))
    return jsonify({'ok': True, 'data': serialize_guild(guild, member_count)})


@guilds_api.route('/<guild_id>', methods=['PATCH'])
@login_required
def update_guild(guild_id):
    guild = guild_service.update_guild(guild_id, current_user_id(), json_body())
    return jsonify({'ok': True, 'data': serialize_guild(guild)})


@guilds_api.route('/<guild_id>/disband', methods=['POST'])
@login_required
def disband_guild(guild_id):
    guild_service.disband_guild(guild_id, current_user_id())
    return jsonify({'ok': True, 'data': None})


@guilds_api.route('/<guild_id>/join', methods=['POST'])
@login_required
def join_guild(guild_id):
    membership = guild_service.join_guild(current_user_id(), guild_id)
    return jsonify({'ok': True, 'data': serialize_membership(membership)})


@guilds_api.route('/<guild_id>/leave', methods=['POST'])
@login_required
def leave_guild(guild_id):
    guild_service.leave_guild(current_user_id(), guild_id)
    return jsonify({'ok': True, 'data': None})


@guilds_api.route('/<guild_id>/pending', methods=['GET'])
@login_required
def pending_memberships(guild_id):
    rows = guild_service.get_pending_memberships(guild_id, current_user_id())
    data = [
        {
            'id': membership.id,
            'userId': membership.user_id,
            'userName': user.name if user else None,
            'userEmail': user.email if user else None,
            'createdAt': isoformat(membership.created_at),
        }
        for membership, user in rows
    ]
    return jsonify({'ok': True, 'data': data})


@guilds_api.route('/<guild_id>/memberships/<membership_id>/approve', methods=['POST'])
@login_required
def approve_membership(guild_id, membership_id):
    guild_service.process_membership(guild_id, membership_id, current_user_id(), 'approve')
    return jsonify({'ok': True, 'data': None})


@guilds_api.route('/<guild_id>/memberships/<membership_id>/reject', methods=['POST'])
@login_required
def reject_membership(guild_id, membership_id):
    guild_service.process_membership(guild_id, membership_id, current_user_id(), 'reject')
    return jsonify({'ok': True, 'data': None})


@guilds_api.route('/<guild_id>/members', methods=['GET'])
def guild_members(guild_id):
    return jsonify({'ok': True, 'data': guild_service.get_members(guild_id)})


@guilds_api.route('/<guild_id>/ranking', methods=['GET'])
@login_required
def guild_ranking(guild_id):
    guild_service.require_guild(guild_id)
    ranking = guild_service.get_ranking(guild_id, current_user_id())
    return jsonify({'ok': True, 'data': ranking})
