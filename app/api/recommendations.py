"""
Recommendation API Endpoints

``/rebuild`` recomputes the cached list; ``/unified`` is what the SPA
renders (pending vs achieved, with guild context).
"""

from flask import Blueprint, current_app, jsonify
from flask_login import login_required

from .helpers import current_user_id, json_body, optional_float, optional_positive
from ..services import recommendation_service

recommendations_api = Blueprint('recommendations_api', __name__, url_prefix='/api/recommendations')


@recommendations_api.route('/rebuild', methods=['POST'])
@login_required
def rebuild():
    data = json_body()
    lat = optional_float(data.get('lat'), 'lat')
    lng = optional_float(data.get('lng'), 'lng')
    radius = optional_positive(
        data.get('radius'), 'radius', current_app.config.get('DEFAULT_RECOMMENDATION_RADIUS_M', 3000),
    )
    result = recommendation_service.rebuild(current_user_id(), lat, lng, radius)
    return jsonify(dict(result, ok=True))


@recommendations_api.route('', methods=['GET'])
@recommendations_api.route('/', methods=['GET'])
@login_required
def list_recommendations():
    recommendations = recommendation_service.list_recommendations(current_user_id())
    return jsonify({
        'ok': True,
        'count': len(recommendations),
        'recommendations': [r.to_api() for r in recommendations],
    })


@recommendations_api.route('/unified', methods=['GET'])
@login_required
def unified():
    result = recommendation_service.unified(current_user_id())
    return jsonify(dict(result, ok=True))
