"""Marshmallow schemas to move records and payloads in and out of the store.

Record schemas turn decoded records into JSON friendly dictionaries (keys
as hex strings) and back. Payload schemas validate what callers submit
before anything reaches the codec.
"""

import marshmallow as ma

from postledger.exceptions import InvalidDataError, PostLedgerException
from postledger.identity import Address, Identity, RecordId
from postledger.records import Comment, Post


class KeyField(ma.fields.Field):
    """Hex string on the outside, a ``Key`` subclass on the inside"""

    def __init__(self, key_cls, *args, **kwargs):
        self.key_cls = key_cls
        super().__init__(*args, **kwargs)

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return str(value)

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, self.key_cls):
            return value
        try:
            return self.key_cls(value)
        except PostLedgerException:
            raise ma.ValidationError(
                f"Not a valid {self.key_cls.__name__.lower()}."
            ) from None


class RecordIdField(KeyField):
    """Record ids also accept non-negative integers"""

    def __init__(self, *args, **kwargs):
        super().__init__(RecordId, *args, **kwargs)

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return RecordId(value)
            except PostLedgerException:
                raise ma.ValidationError("Not a valid record id.") from None
        return super()._deserialize(value, attr, data, **kwargs)


class BaseSerializer(ma.Schema):
    """Base serializer with which to define postledger schemas."""


class PostSchema(BaseSerializer):
    owner = KeyField(Identity, required=True)
    id = RecordIdField(required=True)
    title = ma.fields.String(required=True)
    content = ma.fields.String(required=True)
    comment_count = ma.fields.Integer(strict=True, load_default=0)
    created_at = ma.fields.Integer(strict=True, load_default=0)
    updated_at = ma.fields.Integer(strict=True, load_default=0)

    @ma.post_load
    def make_post(self, data, **kwargs):
        return Post(**data)


class CommentSchema(BaseSerializer):
    owner = KeyField(Identity, required=True)
    id = RecordIdField(required=True)
    parent = KeyField(Address, required=True)
    content = ma.fields.String(required=True)
    created_at = ma.fields.Integer(strict=True, load_default=0)
    updated_at = ma.fields.Integer(strict=True, load_default=0)

    @ma.post_load
    def make_comment(self, data, **kwargs):
        return Comment(**data)


class PostPayloadSchema(BaseSerializer):
    title = ma.fields.String(required=True)
    content = ma.fields.String(required=True)


class CommentPayloadSchema(BaseSerializer):
    content = ma.fields.String(required=True)
    post = KeyField(Address, required=True)


class CommentUpdateSchema(BaseSerializer):
    content = ma.fields.String(required=True)


def load_payload(schema_cls: type, data: dict) -> dict:
    """Validate ``data`` with ``schema_cls``, raising ``InvalidDataError``
    with per-field messages when it does not conform"""
    try:
        return schema_cls().load(data)
    except ma.ValidationError as exc:
        raise InvalidDataError(exc.messages) from exc


def dump_record(record) -> dict:
    schema = PostSchema() if isinstance(record, Post) else CommentSchema()
    return schema.dump(record)
