from flask import Blueprint, jsonify
from flask_login import UserMixin, current_user, login_required
import uuid

main = Blueprint('main', __name__)


class Identity(UserMixin):
    """Opaque caller identity: an auth-provider user id or a minted guest id."""

    def __init__(self, user_id):
        self.id = user_id

    @property
    def is_guest(self):
        return self.id.startswith('guest_')

    def to_dict(self):
        return {'id': self.id, 'is_guest': self.is_guest}


def mint_guest_id():
    return f"guest_{uuid.uuid4().hex}"


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the game show server!'})


@main.route('/api/identity/guest', methods=['POST'])
def guest_identity():
    # Clients send this back as X-User-Id on later calls
    return jsonify(Identity(mint_guest_id()).to_dict()), 201


@main.route('/api/identity/me')
@login_required
def whoami():
    return jsonify(current_user.to_dict())
