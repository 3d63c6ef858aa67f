"""Stay API Endpoints"""

from flask import Blueprint, jsonify
from flask_login import login_required

from .helpers import current_user_id, json_body, optional_epoch_ms, parse_float
from ..domain.models import isoformat
from ..services import stay_service

stays_api = Blueprint('stays_api', __name__, url_prefix='/api/stays')


def serialize_stay(stay):
    return {
        'id': stay.id,
        'userId': stay.user_id,
        'lat': stay.lat,
        'lng': stay.lng,
        'startTime': isoformat(stay.start_time),
        'endTime': isoformat(stay.end_time),
        'durationMs': stay.duration_ms,
        'kakaoPlaceId': stay.kakao_place_id,
        'categoryName': stay.category_name,
        'categoryGroupCode': stay.category_group_code,
        'mappedCategory': stay.mapped_category,
        'createdAt': isoformat(stay.created_at),
    }


@stays_api.route('', methods=['POST'])
@stays_api.route('/', methods=['POST'])
@login_required
def create_stay():
    data = json_body()
    stay = stay_service.create_stay(
        current_user_id(),
        parse_float(data.get('lat'), 'lat'),
        parse_float(data.get('lng'), 'lng'),
        start_ms=optional_epoch_ms(data.get('startTime'), 'startTime'),
        end_ms=optional_epoch_ms(data.get('endTime'), 'endTime'),
    )
    return jsonify({'ok': True, 'stay': serialize_stay(stay)}), 201
