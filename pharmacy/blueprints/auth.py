"""Authentication blueprint: session login for staff."""
from typing import Tuple

from flask import Blueprint, jsonify, session, g, Response

from pharmacy.database import db_session
from pharmacy.exceptions import ValidationError
from pharmacy.middleware import require_login
from pharmacy.services import auth_service
from pharmacy.utils.request_data import get_json_body
from pharmacy.utils.serializers import serialize_user

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/login', methods=['POST'])
def login() -> Tuple[Response, int]:
    """Validate email + password and start a session."""
    data = get_json_body()
    email = data.get('email')
    password = data.get('password')
    email = email.strip() if isinstance(email, str) else ''

    if not email or not password or not isinstance(password, str):
        raise ValidationError('Email and password are required')

    user = auth_service.authenticate(db_session, email, password)

    session.clear()
    session['user_id'] = user.id
    session.permanent = True

    return jsonify({'user': serialize_user(user)}), 200


@auth_bp.route('/logout', methods=['POST'])
def logout() -> Tuple[Response, int]:
    """Clear the session."""
    session.clear()
    return jsonify({'status': 'ok'}), 200


@auth_bp.route('/me', methods=['GET'])
@require_login
def me() -> Response:
    return jsonify({'user': serialize_user(g.user)})
