"""Fixed-layout binary codec for Post and Comment records.

Every record starts with an 8 byte type discriminator followed by a fixed
header of keys, counters and timestamps, then its text fields, each as a
little-endian u32 byte length and UTF-8 bytes::

    Post:    disc | owner | id | comment_count | created_at | updated_at | title | content
    Comment: disc | owner | parent | id | created_at | updated_at | content

A record never outgrows the storage reserved for it. The content budget is
whatever the configured record size leaves after the fixed header (which
counts the length prefixes) and the title budget.
"""

from __future__ import annotations

import hashlib
import logging
import struct
from dataclasses import dataclass
from typing import Optional

import inflection

from postledger.address import Namespace
from postledger.exceptions import (
    ConfigurationError,
    CorruptRecordError,
    InvalidDataError,
    RecordOverflowError,
)
from postledger.identity import Address, Identity, RecordId
from postledger.records import Comment, Post, Record

logger = logging.getLogger(__name__)

DISCRIMINATOR_LENGTH = 8
LENGTH_PREFIX = struct.Struct("<I")

U32_MAX = 2**32 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1

_HEADERS = {
    # discriminator, owner, id, comment_count, created_at, updated_at
    Namespace.POST: struct.Struct("<8s32s32sIqq"),
    # discriminator, owner, parent, id, created_at, updated_at
    Namespace.COMMENT: struct.Struct("<8s32s32s32sqq"),
}

_TEXT_FIELDS = {
    Namespace.POST: ("title", "content"),
    Namespace.COMMENT: ("content",),
}


def discriminator(namespace: Namespace) -> bytes:
    """First 8 bytes of ``sha256("account:<TypeName>")``"""
    type_name = inflection.camelize(namespace.value)
    return hashlib.sha256(f"account:{type_name}".encode("utf-8")).digest()[
        :DISCRIMINATOR_LENGTH
    ]


@dataclass(frozen=True)
class RecordLayout:
    namespace: Namespace
    total_size: int
    title_budget: int = 0

    @property
    def header(self) -> struct.Struct:
        return _HEADERS[self.namespace]

    @property
    def text_fields(self) -> tuple[str, ...]:
        return _TEXT_FIELDS[self.namespace]

    @property
    def discriminator(self) -> bytes:
        return discriminator(self.namespace)

    @property
    def fixed_header_size(self) -> int:
        return self.header.size + LENGTH_PREFIX.size * len(self.text_fields)

    @property
    def content_budget(self) -> int:
        return self.total_size - self.fixed_header_size - self.title_budget

    def budget_for(self, field_name: str) -> int:
        return self.title_budget if field_name == "title" else self.content_budget


class RecordCodec:
    """Encodes records to bytes and back, within the configured budgets"""

    def __init__(
        self,
        post_size: int = 1000,
        title_max_bytes: int = 100,
        comment_size: int = 424,
    ) -> None:
        self.layouts = {
            Namespace.POST: RecordLayout(Namespace.POST, post_size, title_max_bytes),
            Namespace.COMMENT: RecordLayout(Namespace.COMMENT, comment_size),
        }

        for layout in self.layouts.values():
            if layout.title_budget < 0 or layout.content_budget <= 0:
                raise ConfigurationError(
                    f"A {layout.namespace.value} record of {layout.total_size} bytes "
                    f"leaves no room for content"
                )

        self._by_discriminator = {
            layout.discriminator: layout for layout in self.layouts.values()
        }

    @classmethod
    def from_config(cls, config) -> RecordCodec:
        records = config["records"]
        try:
            return cls(
                post_size=int(records["post"]["size"]),
                title_max_bytes=int(records["post"]["title_max_bytes"]),
                comment_size=int(records["comment"]["size"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid record size configuration: {exc}") from exc

    def layout_for(self, record_or_type) -> RecordLayout:
        return self.layouts[record_or_type.namespace]

    def check_budgets(self, namespace: Namespace, **texts: str) -> None:
        """Raise ``RecordOverflowError`` if any text is over its budget.

        Lets callers reject a payload before touching storage.
        """
        layout = self.layouts[namespace]
        for field_name, value in texts.items():
            size = len(value.encode("utf-8"))
            budget = layout.budget_for(field_name)
            if size > budget:
                raise RecordOverflowError(
                    f"{field_name.capitalize()} is {size} bytes, "
                    f"{namespace.value} {field_name} budget is {budget} bytes",
                    extra_info={"field": field_name, "size": size, "budget": budget},
                )

    def encode(self, record: Record) -> bytes:
        layout = self.layout_for(record)
        self._check_fields(record, layout)

        texts = {name: getattr(record, name) for name in layout.text_fields}
        self.check_budgets(layout.namespace, **texts)

        if isinstance(record, Post):
            header = layout.header.pack(
                layout.discriminator,
                bytes(record.owner),
                bytes(record.id),
                record.comment_count,
                record.created_at,
                record.updated_at,
            )
        else:
            header = layout.header.pack(
                layout.discriminator,
                bytes(record.owner),
                bytes(record.parent),
                bytes(record.id),
                record.created_at,
                record.updated_at,
            )

        chunks = [header]
        for name in layout.text_fields:
            encoded = texts[name].encode("utf-8")
            chunks.append(LENGTH_PREFIX.pack(len(encoded)))
            chunks.append(encoded)
        data = b"".join(chunks)

        if len(data) > layout.total_size:
            raise RecordOverflowError(
                f"Encoded {layout.namespace.value} is {len(data)} bytes, "
                f"record size is {layout.total_size} bytes"
            )

        return data

    def decode(self, data: bytes, address: Optional[Address] = None) -> Record:
        location = f" at {address}" if address is not None else ""
        data = bytes(data)

        layout = self._by_discriminator.get(data[:DISCRIMINATOR_LENGTH])
        if layout is None:
            raise CorruptRecordError(f"Unknown record type{location}")

        if len(data) > layout.total_size:
            raise CorruptRecordError(
                f"Stored {layout.namespace.value}{location} is {len(data)} bytes, "
                f"larger than its {layout.total_size} byte record size"
            )

        if len(data) < layout.fixed_header_size:
            raise CorruptRecordError(
                f"Stored {layout.namespace.value}{location} is shorter than its header"
            )

        fields = layout.header.unpack_from(data)
        offset = layout.header.size

        texts = {}
        for name in layout.text_fields:
            if offset + LENGTH_PREFIX.size > len(data):
                raise CorruptRecordError(f"Truncated {name} length{location}")
            (length,) = LENGTH_PREFIX.unpack_from(data, offset)
            offset += LENGTH_PREFIX.size
            if offset + length > len(data):
                raise CorruptRecordError(
                    f"Declared {name} length {length} overruns the record{location}"
                )
            try:
                texts[name] = data[offset : offset + length].decode("utf-8")
            except UnicodeDecodeError:
                raise CorruptRecordError(f"{name} is not valid UTF-8{location}") from None
            offset += length

        if offset != len(data):
            raise CorruptRecordError(
                f"Stored {layout.namespace.value}{location} is {len(data)} bytes, "
                f"expected {offset} from its header and declared fields"
            )

        owner = Identity(fields[1])
        if owner.is_null:
            raise CorruptRecordError(f"Owner is not a well-formed identity{location}")

        if layout.namespace == Namespace.POST:
            _, _, record_id, comment_count, created_at, updated_at = fields
            record = Post(
                owner=owner,
                id=RecordId(record_id),
                title=texts["title"],
                content=texts["content"],
                comment_count=comment_count,
                created_at=created_at,
                updated_at=updated_at,
            )
        else:
            _, _, parent, record_id, created_at, updated_at = fields
            record = Comment(
                owner=owner,
                id=RecordId(record_id),
                parent=Address(parent),
                content=texts["content"],
                created_at=created_at,
                updated_at=updated_at,
            )

        if record.updated_at < record.created_at:
            raise CorruptRecordError(f"Record{location} was updated before it was created")

        return record

    def namespace_of(self, data: bytes) -> Optional[Namespace]:
        """Return the record namespace for stored bytes, ``None`` if unknown"""
        layout = self._by_discriminator.get(bytes(data[:DISCRIMINATOR_LENGTH]))
        return layout.namespace if layout else None

    def _check_fields(self, record: Record, layout: RecordLayout) -> None:
        errors = {}
        for name in layout.text_fields:
            if not isinstance(getattr(record, name), str):
                errors[name] = ["Must be a string"]
        if not isinstance(record.owner, Identity) or record.owner.is_null:
            errors["owner"] = ["Owner must be a non-null identity"]
        if not isinstance(record.id, RecordId):
            errors["id"] = ["Id must be a record id"]
        if isinstance(record, Comment) and not isinstance(record.parent, Address):
            errors["parent"] = ["Parent must be an address"]
        if isinstance(record, Post) and not 0 <= record.comment_count <= U32_MAX:
            errors["comment_count"] = ["Comment count is out of range"]
        for name in ("created_at", "updated_at"):
            if not I64_MIN <= getattr(record, name) <= I64_MAX:
                errors[name] = ["Timestamp is out of range"]
        if record.updated_at < record.created_at:
            errors["updated_at"] = ["Cannot be earlier than created_at"]

        if errors:
            raise InvalidDataError(errors)
