"""
Upload API Endpoints

Multipart image uploads (field ``file``). Each endpoint stores into its
own folder and returns the public ``/uploads/...`` URL.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services import upload_service

uploads_api = Blueprint('uploads_api', __name__, url_prefix='/api/uploads')


def _handle_upload(category):
    url = upload_service.save_image(category, request.files.get('file'))
    return jsonify({'ok': True, 'url': url}), 201


@uploads_api.route('/taste-records', methods=['POST'])
@login_required
def upload_taste_record_image():
    return _handle_upload('taste-records')


@uploads_api.route('/guilds', methods=['POST'])
@login_required
def upload_guild_image():
    return _handle_upload('guilds')


@uploads_api.route('/guild-records', methods=['POST'])
@login_required
def upload_guild_record_image():
    return _handle_upload('guild-records')
