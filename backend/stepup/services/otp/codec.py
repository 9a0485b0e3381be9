"""
Versioned serialization contract for challenges kept in the ephemeral store.

A stored challenge is a JSON object::

    {"v": 1, "identity": "...", "code": "123456", "purpose": "LOGIN",
     "created_at": "2024-01-01T00:00:00+00:00",
     "expires_at": "2024-01-01T00:05:00+00:00", "attempts": 0}

Decoding is strict: unknown keys, missing keys, a different ``v`` or a
malformed document raise :class:`StorageCorruption`. There is no fallback
shape.
"""

from __future__ import annotations

import json
from typing import Any

from marshmallow import RAISE, Schema, ValidationError, fields, post_load, validate

from stepup.services._shared.errors import StorageCorruption
from stepup.services.otp.dto import OtpChallenge, OtpPurpose

SCHEMA_VERSION = 1


class OtpChallengeRecordSchema(Schema):
    """Wire shape of :class:`OtpChallenge` inside the store."""

    class Meta:
        unknown = RAISE
        ordered = True

    v = fields.Integer(required=True, validate=validate.Equal(SCHEMA_VERSION))
    identity = fields.String(required=True, validate=validate.Length(min=1))
    code = fields.String(required=True, validate=validate.Regexp(r"^\d+$"))
    purpose = fields.Enum(OtpPurpose, required=True, by_value=True)
    created_at = fields.AwareDateTime(required=True)
    expires_at = fields.AwareDateTime(required=True)
    attempts = fields.Integer(required=True, strict=True, validate=validate.Range(min=0))

    @post_load
    def _make(self, data: dict[str, Any], **kwargs: Any) -> OtpChallenge:
        data.pop("v")
        return OtpChallenge(**data)


_schema = OtpChallengeRecordSchema()


def encode(challenge: OtpChallenge) -> str:
    """Serialize a challenge for storage."""
    payload = _schema.dump(
        {
            "v": SCHEMA_VERSION,
            "identity": challenge.identity,
            "code": challenge.code,
            "purpose": challenge.purpose,
            "created_at": challenge.created_at,
            "expires_at": challenge.expires_at,
            "attempts": challenge.attempts,
        }
    )
    return json.dumps(payload, separators=(",", ":"))


def decode(key: str, raw: str | bytes) -> OtpChallenge:
    """
    Parse a stored challenge.

    :param key: Store key (reported on failure).
    :param raw: Stored document.
    :raises StorageCorruption: If ``raw`` does not honour the contract.
    """
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise StorageCorruption(key=key, reason=f"not JSON ({exc})") from exc
    if not isinstance(document, dict):
        raise StorageCorruption(key=key, reason="not a JSON object")
    try:
        return _schema.load(document)
    except ValidationError as exc:
        raise StorageCorruption(key=key, reason=f"schema violation {exc.messages}") from exc


__all__ = ["SCHEMA_VERSION", "encode", "decode", "OtpChallengeRecordSchema"]
