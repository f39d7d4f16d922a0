"""
Input Validation and Sanitization Utilities
Provides centralized input validation and HTML sanitization
"""
from marshmallow import Schema, fields, validate, ValidationError, pre_load
from marshmallow.validate import Length, Regexp
import bleach

from tracking_pkg.progress import ORDER_STATUSES, ORDER_STAGES, canonical_status, canonical_stage

ORDER_REF_PATTERN = r'^[A-Za-z0-9-]{1,40}$'


def sanitize_text(text):
    """
    Sanitize plain text by removing HTML tags

    Args:
        text: Text string to sanitize

    Returns:
        str: Sanitized text
    """
    if not text:
        return ""

    return bleach.clean(text, tags=[], strip=True)


def sanitize_strings(data, skip=()):
    if isinstance(data, dict):
        data = dict(data)
        for key, value in data.items():
            if isinstance(value, str) and key not in skip:
                data[key] = sanitize_text(value).strip()
    return data


# Validation Schemas using Marshmallow

class LoginSchema(Schema):
    """Schema for login validation"""
    email = fields.Email(required=True, validate=Length(max=120))
    password = fields.Str(required=True, validate=Length(min=1, max=255))

    @pre_load
    def sanitize_inputs(self, data, **kwargs):
        return sanitize_strings(data, skip=('password',))


class TrackOrderSchema(Schema):
    """Public tracking lookup: order reference plus billing email"""
    orderId = fields.Str(required=True, validate=Regexp(ORDER_REF_PATTERN, error='Invalid order id'))
    email = fields.Email(required=True, validate=Length(max=120))

    @pre_load
    def sanitize_inputs(self, data, **kwargs):
        data = sanitize_strings(data)
        if isinstance(data, dict) and isinstance(data.get('orderId'), int):
            data['orderId'] = str(data['orderId'])
        if isinstance(data, dict) and isinstance(data.get('email'), str):
            data['email'] = data['email'].lower()
        return data


class StatusUpdateSchema(Schema):
    status = fields.Str(required=True, validate=validate.OneOf(ORDER_STATUSES, error='Invalid status'))

    @pre_load
    def sanitize_inputs(self, data, **kwargs):
        data = sanitize_strings(data)
        if isinstance(data, dict) and isinstance(data.get('status'), str):
            data['status'] = canonical_status(data['status'])
        return data


class StageUpdateSchema(Schema):
    stage = fields.Str(required=True, validate=validate.OneOf(ORDER_STAGES, error='Invalid stage'))

    @pre_load
    def sanitize_inputs(self, data, **kwargs):
        """Lowercase the stage; the legacy 'packing' alias becomes 'packaging'"""
        data = sanitize_strings(data)
        if isinstance(data, dict) and isinstance(data.get('stage'), str):
            stage = canonical_stage(data['stage'])
            data['stage'] = 'packaging' if stage == 'packing' else stage
        return data


class OrderEventSchema(Schema):
    """Schema for a manually appended timeline event"""
    type = fields.Str(required=True, validate=Length(min=1, max=30))
    text = fields.Str(validate=Length(max=500), allow_none=True)
    at = fields.DateTime(allow_none=True)

    @pre_load
    def sanitize_inputs(self, data, **kwargs):
        data = sanitize_strings(data)
        if isinstance(data, dict) and isinstance(data.get('type'), str):
            data['type'] = data['type'].lower()
        return data


def validate_request_data(schema_class, data):
    """
    Validate request data against a schema

    Args:
        schema_class: Marshmallow Schema class
        data: Data dictionary to validate

    Returns:
        tuple: (validated_data, errors)
        - validated_data: Cleaned and validated data
        - errors: Dictionary of validation errors (empty if valid)
    """
    try:
        schema = schema_class()
        validated_data = schema.load(data if data is not None else {})
        return validated_data, {}
    except ValidationError as err:
        return None, err.messages
