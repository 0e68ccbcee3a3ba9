"""Short-lived JWT access tokens for the role dashboards.

Each dashboard logs in with a role namespace (super_admin, church_admin, unit_admin,
kutayima_admin or member) and receives an access and refresh token pair signed
with HS256. ``validate_bearer_token`` is registered in ``auth_hooks`` and turns a
valid access token into the request's session user.
"""

import datetime

import frappe
import jwt
from frappe.utils import cint
from frappe.utils.password import check_password

ROLE_NAMESPACES = {
    "super_admin": "Church Super Admin",
    "church_admin": "Church Admin",
    "unit_admin": "Unit Admin",
    "kutayima_admin": "Kutayima Admin",
    "member": "Church Member",
}

ALGORITHM = "HS256"


def _secret(token_type):
    if token_type == "refresh":
        secret = frappe.conf.get("church_admin_refresh_secret")
    else:
        secret = frappe.conf.get("church_admin_jwt_secret")
    if not secret:
        secret = f"{frappe.conf.get('encryption_key')}:{token_type}"
    return secret


def _expiry(token_type):
    settings = frappe.get_cached_doc("Church Settings")
    if token_type == "refresh":
        return datetime.timedelta(days=cint(settings.refresh_token_expiry_days) or 7)
    return datetime.timedelta(minutes=cint(settings.access_token_expiry_minutes) or 15)


def generate_token(user, role, token_type="access"):
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        "sub": user,
        "role": role,
        "type": token_type,
        "iat": now,
        "exp": now + _expiry(token_type),
    }
    return jwt.encode(payload, _secret(token_type), algorithm=ALGORITHM)


def decode_token(token, token_type="access"):
    """Decode and check a token. Raises frappe.AuthenticationError when it is unusable."""
    try:
        payload = jwt.decode(token, _secret(token_type), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        frappe.throw(f"{token_type.title()} token has expired.", frappe.AuthenticationError)
    except jwt.InvalidTokenError:
        frappe.throw(f"Invalid {token_type} token.", frappe.AuthenticationError)

    if payload.get("type") != token_type or payload.get("role") not in ROLE_NAMESPACES:
        frappe.throw(f"Invalid {token_type} token.", frappe.AuthenticationError)
    return payload


def _issue_pair(user, role):
    return {
        "access_token": generate_token(user, role, "access"),
        "refresh_token": generate_token(user, role, "refresh"),
        "token_type": "Bearer",
        "expires_in": int(_expiry("access").total_seconds()),
        "role": role,
        "user": user,
    }


def _check_user_role(user, role):
    if not frappe.db.get_value("User", user, "enabled"):
        frappe.throw("User is disabled.", frappe.AuthenticationError)
    if ROLE_NAMESPACES[role] not in frappe.get_roles(user):
        frappe.throw(f"{user} cannot sign in as {role}.", frappe.PermissionError)


@frappe.whitelist(allow_guest=True, methods=["POST"])
def login(usr, pwd, role):
    """Exchange credentials for a token pair scoped to one role namespace.

    POST /api/method/church_admin.auth.login
    Body (JSON): {"usr": "admin@stmarys.org", "pwd": "...", "role": "church_admin"}
    """
    if role not in ROLE_NAMESPACES:
        frappe.throw(f"Unknown role '{role}'.")

    user = frappe.db.get_value("User", {"name": usr}) or frappe.db.get_value("User", {"email": usr})
    if not user:
        frappe.throw("Invalid login credentials.", frappe.AuthenticationError)
    check_password(user, pwd)
    _check_user_role(user, role)

    frappe.logger("church_admin").info(f"Token login for {user} as {role}")
    return _issue_pair(user, role)


@frappe.whitelist(allow_guest=True, methods=["POST"])
def refresh_access_token(refresh_token):
    """Trade a refresh token for a new token pair.

    POST /api/method/church_admin.auth.refresh_access_token
    """
    payload = decode_token(refresh_token, "refresh")
    _check_user_role(payload["sub"], payload["role"])
    return _issue_pair(payload["sub"], payload["role"])


def validate_bearer_token():
    """auth_hooks entry: authenticate requests carrying one of our access tokens.

    Bearer values that are not JWTs are left for Frappe's own OAuth handling.
    """
    header = frappe.get_request_header("Authorization", "") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or token.count(".") != 2:
        return

    payload = decode_token(token.strip(), "access")
    frappe.set_user(payload["sub"])
