from functools import wraps
from flask import g, jsonify
from models import db
from models.user import User
from security.session import get_session_from_request

def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        return
    g.session = sess
    g.user = db.session.get(User, sess.user_id)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper

def approved_account_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = getattr(g, "user", None)
        if user is None:
            return jsonify(error="Authentication required"), 401
        if not user.is_approved:
            return jsonify(error="Account not approved yet", account_status=user.account_status), 403
        return fn(*args, **kwargs)
    return wrapper
