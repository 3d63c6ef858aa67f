"""Guild Mission API Endpoints"""

from flask import Blueprint, jsonify
from flask_login import login_required

from .guild_records import author_names, serialize_guild_record, serialize_records
from .helpers import current_user_id, json_body
from ..domain.models import isoformat
from ..services import guild_service, mission_service

missions_api = Blueprint('missions_api', __name__, url_prefix='/api/guilds/<guild_id>/missions')


def serialize_mission(mission, participant_count=0):
    return {
        'id': mission.id,
        'guildId': mission.guild_id,
        'creatorId': mission.creator_id,
        'title': mission.title,
        'content': mission.content,
        'limitCount': mission.limit_count,
        'difficulty': mission.difficulty,
        'mainImage': mission.main_image,
        'extraImages': mission.extra_images,
        'participantCount': participant_count,
        'isCompleted': participant_count >= mission.limit_count,
        'createdAt': isoformat(mission.created_at),
    }


@missions_api.route('', methods=['POST'])
@missions_api.route('/', methods=['POST'])
@login_required
def create_mission(guild_id):
    mission = mission_service.create_mission(guild_id, current_user_id(), json_body())
    return jsonify({'ok': True, 'data': serialize_mission(mission)}), 201


@missions_api.route('', methods=['GET'])
@missions_api.route('/', methods=['GET'])
def list_active_missions(guild_id):
    guild_service.require_guild(guild_id)
    missions = mission_service.list_active(guild_id)
    return jsonify({'ok': True, 'data': [serialize_mission(m, count) for m, count in missions]})


@missions_api.route('/completed', methods=['GET'])
def list_completed_missions(guild_id):
    guild_service.require_guild(guild_id)
    missions = mission_service.list_completed(guild_id)
    return jsonify({'ok': True, 'data': [serialize_mission(m, count) for m, count in missions]})


@missions_api.route('/<mission_id>', methods=['DELETE'])
@login_required
def delete_mission(guild_id, mission_id):
    mission_service.delete_mission(guild_id, mission_id, current_user_id())
    return jsonify({'ok': True, 'data': None})


@missions_api.route('/<mission_id>/records', methods=['GET'])
def list_mission_records(guild_id, mission_id):
    records = mission_service.list_mission_records(guild_id, mission_id)
    return jsonify({'ok': True, 'data': serialize_records(records)})


@missions_api.route('/<mission_id>/records', methods=['POST'])
@login_required
def participate(guild_id, mission_id):
    record = mission_service.participate(guild_id, mission_id, current_user_id(), json_body())
    names = author_names([record.user_id])
    return jsonify({'ok': True, 'data': serialize_guild_record(record, names.get(record.user_id))}), 201
