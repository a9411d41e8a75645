"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- GET  /auth/activate/<token>
- POST /auth/resend-activation
- POST /auth/forgot-password
- POST /auth/reset-password/<token>
- POST|GET /auth/refresh-token
- POST /auth/logout

Routes only parse input and shape responses; the SessionManager owns
every rule. Login/refresh also set HttpOnly cookies.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, current_app

from identity.errors import AccountInactive, AccountNotFound, InvalidRefreshToken
from identity.session_manager import SessionManager
from models.schemas.account import IdentifierSchema, LoginSchema, RefreshTokenSchema

from .decorators import ACCESS_COOKIE

REFRESH_COOKIE = "refresh_token"

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
identifier_schema = IdentifierSchema()
refresh_token_schema = RefreshTokenSchema()


def get_manager() -> SessionManager:
    return current_app.extensions["identity"]


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _set_cookie(response, name: str, value: str, max_age) -> None:
    response.set_cookie(
        name,
        value,
        max_age=int(max_age.total_seconds()),
        httponly=True,
        secure=current_app.config.get("COOKIE_SECURE", False),
        samesite=current_app.config.get("COOKIE_SAMESITE", "Lax"),
    )


def _token_cookies(response, result: dict) -> None:
    settings = get_manager().settings
    _set_cookie(response, ACCESS_COOKIE, result["access_token"], settings.access_ttl)
    if result.get("refresh_token"):
        _set_cookie(response, REFRESH_COOKIE, result["refresh_token"], settings.refresh_ttl)


def _refresh_token_from_request() -> str | None:
    data = refresh_token_schema.load(_payload())
    return data.get("refresh_token") or request.cookies.get(REFRESH_COOKIE)


@bp.post("/register")
def register():
    """
    Register a new (inactive) account and email its activation link.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
            confirm_password: { type: string }
    responses:
      201:
        description: Created
      409:
        description: Email or username already exists
      422:
        description: Validation error
    """
    payload = _payload()
    user = get_manager().register(
        payload.get("username"),
        payload.get("email"),
        payload.get("password"),
        payload.get("confirm_password"),
    )
    return jsonify(
        {
            "message": "Registration successful. Please check your email to activate your account.",
            "data": {"user": user},
        }
    ), 201


@bp.get("/activate/<token>")
def activate(token: str):
    """
    Activate an account with the emailed token.
    ---
    tags:
      - Auth
    parameters:
      - in: path
        name: token
        type: string
        required: true
    responses:
      200:
        description: Account activated
      401:
        description: Invalid or expired token
      404:
        description: Token unknown or already used
      409:
        description: Account already activated
    """
    user = get_manager().activate(token)
    return jsonify({"message": "Account activated successfully", "data": {"user": user}}), 200


@bp.post("/resend-activation")
def resend_activation():
    """
    Send a fresh activation email.
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            identifier: { type: string }
    responses:
      200:
        description: Sent
    """
    data = identifier_schema.load(_payload())
    get_manager().resend_activation(data["identifier"])
    return jsonify({"message": "Activation email resent. Please check your inbox."}), 200


@bp.post("/login")
def login():
    """
    Login: returns access_token and refresh_token (also set as cookies)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             identifier: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
      403:
        description: Account not activated
    """
    data = login_schema.load(_payload())
    result = get_manager().login(data["identifier"], data["password"])
    response = jsonify({"message": "Login successful", "data": result})
    _token_cookies(response, result)
    return response, 200


@bp.route("/refresh-token", methods=["POST", "GET"])
def refresh_token():
    """
    Use a refresh token (body or cookie) to obtain a new access token.
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            refresh_token: { type: string }
    responses:
      200:
        description: OK
      401:
        description: Invalid or expired refresh token
    """
    result = get_manager().refresh_access_token(_refresh_token_from_request())
    response = jsonify({"message": "Token refreshed", "data": result})
    _token_cookies(response, result)
    return response, 200


@bp.post("/logout")
def logout():
    """
    Logout: revokes the refresh token and clears the cookies.
    Logging out twice is not an error for the client.
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      204:
        description: ""
    """
    try:
        get_manager().logout(_refresh_token_from_request())
    except InvalidRefreshToken:
        # already logged out
        pass
    response = current_app.make_response(("", 204))
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)
    return response


@bp.post("/forgot-password")
def forgot_password():
    """
    Email a password reset link.
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            identifier: { type: string }
    responses:
      200:
        description: Sent
      403:
        description: Account inactive
      404:
        description: No such account
    """
    data = identifier_schema.load(_payload())
    try:
        get_manager().forgot_password(data["identifier"])
    except (AccountNotFound, AccountInactive):
        if not current_app.config.get("CONCEAL_ACCOUNT_EXISTENCE"):
            raise
    return jsonify({"message": "Password reset email sent. Please check your inbox."}), 200


@bp.post("/reset-password/<token>")
def reset_password(token: str):
    """
    Set a new password with the emailed reset token.
    ---
    tags:
      - Auth
    parameters:
      - in: path
        name: token
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            password: { type: string }
            confirm_password: { type: string }
    responses:
      200:
        description: Password changed
      404:
        description: Token unknown or already used
    """
    payload = _payload()
    get_manager().reset_password(token, payload.get("password"), payload.get("confirm_password"))
    return jsonify({"message": "Password reset successful"}), 200
