"""Helpers for exercising the encrypt filter: wrappers, decoding and a tagged map."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
from typing import Optional, Union

from eventlogger.encrypt.classification import DataClassification, FilterOperation
from eventlogger.encrypt.pointer import PointerTag
from eventlogger.encrypt.wrapper import AeadWrapper, BlobInfo, new_derived_reader
from eventlogger.event import InvalidParameterError

TEST_MAP_FIELD = "foo"
TEST_PUBLIC_MAP_FIELD = "public-foo"


def _raw_urlsafe_b64decode(data: bytes) -> bytes:
    return base64.urlsafe_b64decode(data + b"=" * (-len(data) % 4))


def _raw_urlsafe_b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def new_test_wrapper() -> AeadWrapper:
    """Return an AES-GCM wrapper with a random 32-byte key."""
    root_key = os.urandom(32)
    return AeadWrapper(key=root_key, key_id=base64.b64encode(root_key).decode())


def decrypt_value(wrapper: Optional[AeadWrapper], value: Union[str, bytes]) -> Optional[bytes]:
    """Decrypt an "encrypted:"-prefixed value; None when it holds no ciphertext."""
    if wrapper is None:
        raise InvalidParameterError("wrapper is missing")
    raw = value.encode() if isinstance(value, str) else bytes(value)
    raw = raw.removeprefix(b"encrypted:")
    blob = BlobInfo.unmarshal(_raw_urlsafe_b64decode(raw))
    if blob.ciphertext is None:
        return None
    return wrapper.decrypt(blob)


def hmac_sha256_value(
    data: bytes, wrapper: AeadWrapper, salt: Optional[bytes], info: Optional[bytes]
) -> str:
    """Return the "hmac-sha256:"-prefixed HMAC the filter produces for ``data``."""
    reader = new_derived_reader(wrapper, 32, salt, info)
    key = reader.read(32)
    if len(key) != 32:
        raise ValueError(f"expected to read 32 bytes and got: {len(key)}")
    digest = hmac.new(key, bytes(data), hashlib.sha256).digest()
    return "hmac-sha256:" + _raw_urlsafe_b64encode(digest)


class TaggedTestMap(dict):
    """A taggable mapping whose "foo" key is secret and "public-foo" is public."""

    def tags(self) -> list[PointerTag]:
        return [
            PointerTag(
                pointer="/" + TEST_MAP_FIELD,
                classification=DataClassification.SECRET,
                filter=FilterOperation.REDACT,
            ),
            PointerTag(
                pointer="/" + TEST_PUBLIC_MAP_FIELD,
                classification=DataClassification.PUBLIC,
                filter=FilterOperation.NONE,
            ),
        ]