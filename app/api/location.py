"""
Location API Endpoints

The SPA polls ``/update`` with the device position; each ping feeds dwell
detection and keeps the user's live location fresh.
"""

from flask import Blueprint, current_app, jsonify
from flask_login import login_required

from .helpers import current_user_id, json_body, parse_float
from ..services import stay_service

location_api = Blueprint('location_api', __name__, url_prefix='/api/location')


@location_api.route('/update', methods=['POST'])
@login_required
def update_location():
    data = json_body()
    lat = parse_float(data.get('lat'), 'lat')
    lng = parse_float(data.get('lng'), 'lng')

    result = stay_service.record_location(current_user_id(), lat, lng)
    if result['tagged']:
        current_app.logger.info(f"Stay {result['stayId']} tagged after {result['durationMs']}ms")
    return jsonify(dict(result, ok=True))


@location_api.route('/clear', methods=['POST'])
@login_required
def clear_location():
    stay_service.clear_live_location(current_user_id())
    return jsonify({'ok': True})
