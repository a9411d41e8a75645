from __future__ import annotations

from flask import Blueprint, jsonify, g, abort

from models import storage
from models.account import Account
from models.schemas.account import AccountOutSchema
from .decorators import jwt_required

bp = Blueprint("users", __name__)

account_out_schema = AccountOutSchema()


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current account info.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    identity = g.current_identity
    account = storage.get(Account, identity.subject_id)
    if account is None:
        abort(404)
    return jsonify(
        {
            "data": account_out_schema.dump(account)
        }
    ), 200


@bp.get("/whoami")
@jwt_required(optional=True)
def whoami():
    """
    Identity resolved from the access token, if any.
    ---
    tags:
      - Users
    responses:
      200:
        description: OK
    """
    identity = g.current_identity
    if identity is None:
        return jsonify({"data": None}), 200
    return jsonify({"data": {"id": identity.subject_id, "username": identity.username}}), 200
