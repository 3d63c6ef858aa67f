"""
Authentication API Endpoints

Session login with email/password or Kakao OAuth. The session cookie is
managed by Flask-Session; Flask-Login tracks the user inside it.
"""

from flask import Blueprint, current_app, jsonify, make_response, redirect, request, session
from flask_login import current_user, login_user, logout_user

from .helpers import json_body
from ..errors import ServiceError
from ..services import kakao_client, user_service

auth_api = Blueprint('auth_api', __name__, url_prefix='/api/auth')


def serialize_user(user):
    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'profileImage': user.profile_image,
        'provider': user.provider,
    }


def _start_session(user):
    session.permanent = True
    login_user(user, remember=False)


def _frontend_redirect(path):
    from .. import frontend_url
    return redirect(f"{frontend_url(current_app)}{path}")


@auth_api.route('/me', methods=['GET'])
def me():
    if not current_user.is_authenticated:
        return jsonify({'ok': True, 'authenticated': False, 'user': None})
    return jsonify({'ok': True, 'authenticated': True, 'user': serialize_user(current_user)})


@auth_api.route('/register', methods=['POST'])
def register():
    data = json_body()
    user = user_service.register(data.get('email'), data.get('password'), data.get('name'))
    _start_session(user)
    current_app.logger.info(f"Registered user {user.email}")
    return jsonify({'ok': True, 'user': serialize_user(user)}), 201


@auth_api.route('/login', methods=['POST'])
def login():
    data = json_body()
    user = user_service.authenticate(data.get('email'), data.get('password'))
    _start_session(user)
    return jsonify({'ok': True, 'user': serialize_user(user)})


@auth_api.route('/logout', methods=['POST'])
def logout():
    """Idempotent: succeeds with or without a session."""
    logout_user()
    session.clear()
    response = make_response(jsonify({'ok': True}))
    response.delete_cookie(
        current_app.config.get('SESSION_COOKIE_NAME', 'sid'),
        domain=current_app.config.get('SESSION_COOKIE_DOMAIN'),
    )
    return response


@auth_api.route('/kakao', methods=['GET'])
def kakao_login():
    if not kakao_client.oauth_configured:
        raise ServiceError('KAKAO_NOT_CONFIGURED', 'Kakao login is not configured', 500)
    return redirect(kakao_client.authorize_url())


@auth_api.route('/kakao/callback', methods=['GET'])
def kakao_callback():
    if request.args.get('error'):
        current_app.logger.warning(f"Kakao authorization failed: {request.args.get('error')}")
        return _frontend_redirect('/before-login?error=kakao_auth_failed')

    code = request.args.get('code')
    if not code:
        return _frontend_redirect('/before-login?error=no_code')

    try:
        access_token = kakao_client.exchange_code(code)
        profile = kakao_client.fetch_user(access_token)
        user = user_service.find_or_create_kakao_user(profile)
    except Exception as e:
        current_app.logger.exception(f"Kakao callback failed: {e}")
        return _frontend_redirect('/before-login?error=kakao_callback_failed')

    _start_session(user)
    current_app.logger.info(f"Kakao login for user {user.id}")
    return _frontend_redirect('/dashboard')
