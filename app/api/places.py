"""
Places and Directions API Endpoints

Thin wrappers over Kakao Local category search and Kakao Mobility
directions.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from .helpers import current_user_id, json_body, optional_positive, parse_float
from ..errors import BadRequest
from ..services import kakao_client, recommendation_service

places_api = Blueprint('places_api', __name__, url_prefix='/api')

DEFAULT_PLACES_RADIUS_M = 2000


def _required_coordinate(name):
    value = request.args.get(name)
    if value is None or value == '':
        raise BadRequest('BAD_REQUEST', 'x and y query parameters are required')
    return parse_float(value, name)


def _route_point(value):
    """Accept "lng,lat" strings or ``{x, y}`` objects."""
    if isinstance(value, dict):
        return f"{parse_float(value.get('x'), 'x')},{parse_float(value.get('y'), 'y')}"
    return str(value).strip() if value else ''


@places_api.route('/places', methods=['GET'])
@login_required
def nearby_places():
    x = _required_coordinate('x')
    y = _required_coordinate('y')
    radius = optional_positive(request.args.get('radius'), 'radius', DEFAULT_PLACES_RADIUS_M)

    places = kakao_client.nearby_places(x, y, radius)
    return jsonify({'ok': True, 'count': len(places), 'places': [p.to_api() for p in places]})


@places_api.route('/places/recommend-by-taste', methods=['GET'])
@login_required
def recommend_by_taste():
    x = _required_coordinate('x')
    y = _required_coordinate('y')
    radius = optional_positive(
        request.args.get('radius'), 'radius', current_app.config.get('DEFAULT_RECOMMENDATION_RADIUS_M', 3000),
    )

    result = recommendation_service.recommend_by_taste(current_user_id(), x, y, radius)
    return jsonify({
        'ok': True,
        'count': len(result['places']),
        'places': result['places'],
        'weights': result['weights'],
        'hasTasteData': result['hasTasteData'],
    })


@places_api.route('/directions/optimize', methods=['POST'])
@login_required
def optimize_directions():
    data = json_body()
    origin = _route_point(data.get('origin'))
    destination = _route_point(data.get('destination'))
    if not origin or not destination:
        raise BadRequest('BAD_REQUEST', 'origin and destination are required')

    waypoints = data.get('waypoints')
    waypoints = [_route_point(w) for w in waypoints if w] if isinstance(waypoints, list) else []

    route = kakao_client.optimize_route(origin, destination, waypoints, data.get('priority'))
    return jsonify(route)
