"""
Identity and role of the caller, resolved from the Flask session.

Credentials are checked once at login; afterwards every request is
identified by the usr_id and role stored in the session.
"""
from functools import wraps

from flask import jsonify, session
from werkzeug.security import check_password_hash

from models import Identity, Role
from sqlQueries import get_user_by_email

SESSION_KEYS = ["usr_id", "role", "Username", "Email"]


def authenticate(conn, email: str, password: str):
    """
    Check credentials against the stored password hash.

    Args:
        conn (sqlite3.Connection): Active database connection.
        email (str): Login email (case-insensitive).
        password (str): Plain-text password.

    Returns:
        tuple | None: (usr_id, name, email, role) on success, None otherwise.
    """
    user = get_user_by_email(conn, (email or "").strip().lower())
    if user and check_password_hash(user[3], password or ""):
        return user[0], user[1], user[2], user[4]
    return None


def remember(user):
    """Store an authenticated user in the session."""
    usr_id, name, email, role = user
    session["usr_id"] = usr_id
    session["role"] = role
    session["Username"] = name
    session["Email"] = email
    session.permanent = True


def forget():
    for k in SESSION_KEYS:
        session.pop(k, None)


def current_identity():
    """
    Return the caller's Identity, or None if the session is not logged in
    or carries an unknown role.
    """
    usr_id = session.get("usr_id")
    role = session.get("role")
    if not usr_id or not Role.is_valid_role(role):
        return None
    return Identity(int(usr_id), role)


def login_required(view):
    """Reject requests without a logged-in identity with a 401 JSON error."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_identity() is None:
            return jsonify({"ok": False, "error": "unauthorized"}), 401
        return view(*args, **kwargs)
    return wrapper
