from marshmallow import Schema, fields, validate


class SignUpSchema(Schema):
    name = fields.String(
        required=True,
        validate=validate.Length(min=3, max=50, error="Username must be between 3 and 50 characters."),
    )
    email = fields.Email(required=True, error_messages={"invalid": "Email must be a valid email."})
    password = fields.String(
        required=True,
        load_only=True,
        validate=validate.Length(min=8, max=128, error="Password must be between 8 and 128 characters"),
    )


class SignInSchema(Schema):
    # Emails are matched exactly as stored; no normalization.
    email = fields.Email(required=True, error_messages={"invalid": "Email must be a valid email."})
    password = fields.String(
        required=True,
        load_only=True,
        validate=validate.Length(min=8, max=128, error="Password must be between 8 and 128 characters"),
    )


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String(attribute="name")
    email = fields.String()
    email_verified = fields.Boolean()
    created_at = fields.DateTime()
