"""Taste Dashboard API Endpoints"""

from flask import Blueprint, jsonify
from flask_login import login_required

from .helpers import current_user_id
from ..services import dashboard_service

dashboard_api = Blueprint('dashboard_api', __name__, url_prefix='/api')


@dashboard_api.route('/taste/dashboard', methods=['GET'])
@dashboard_api.route('/taste-dashboard/me', methods=['GET'])
@login_required
def taste_dashboard():
    dashboard = dashboard_service.get_dashboard(current_user_id())
    return jsonify(dict(dashboard, ok=True))
