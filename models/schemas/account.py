from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    pre_load,
    validate,
    validates_schema,
)

USERNAME_REGEX = r"^[a-zA-Z0-9]{3,50}$"


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class _PasswordConfirmMixin:
    @validates_schema
    def validate_confirmation(self, data, **kwargs):
        confirm = data.get("confirm_password")
        if confirm is not None and confirm != data.get("password"):
            raise ValidationError("Passwords must match", "confirm_password")


class RegisterSchema(_PasswordConfirmMixin, Schema):
    class Meta:
        unknown = EXCLUDE

    username = fields.String(
        required=True,
        validate=validate.Regexp(USERNAME_REGEX, error="Username must be alphanumeric and 3-50 characters"),
    )
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    confirm_password = fields.String(load_only=True, allow_none=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            if "username" in data:
                data["username"] = _strip(data["username"])
        return data


class ResetPasswordSchema(_PasswordConfirmMixin, Schema):
    class Meta:
        unknown = EXCLUDE

    password = fields.String(required=True, load_only=True)
    confirm_password = fields.String(load_only=True, allow_none=True)


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    identifier = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "identifier" in data:
            data = dict(data, identifier=_strip(data["identifier"]))
        return data


class IdentifierSchema(Schema):
    """Body of forgot-password / resend-activation."""

    class Meta:
        unknown = EXCLUDE

    identifier = fields.String(required=True, validate=validate.Length(min=1))


class RefreshTokenSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(allow_none=True)


class AccountOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String()
    email = fields.String()
    is_active = fields.Boolean()
