"""AES-GCM key wrappers, encrypted blobs and per-event key derivation."""

from __future__ import annotations

import enum
import io
import os
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from eventlogger.event import InvalidParameterError

_CIPHERTEXT_FIELD = 1
_IV_FIELD = 2
_KEY_ID_FIELD = 3
_LENGTH_DELIMITED = 2
_VARINT = 0
_HKDF_MAX = 255 * 32


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise ValueError("truncated varint in blob")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift > 63:
            raise ValueError("varint too long in blob")


@dataclass
class BlobInfo:
    """An encrypted value with the IV and key id used to produce it."""

    ciphertext: Optional[bytes] = None
    iv: bytes = b""
    key_id: str = ""

    def marshal(self) -> bytes:
        """Serialise to protobuf wire format; empty fields are omitted."""
        out = bytearray()
        for number, value in (
            (_CIPHERTEXT_FIELD, self.ciphertext or b""),
            (_IV_FIELD, self.iv),
            (_KEY_ID_FIELD, self.key_id.encode()),
        ):
            if value:
                out += _varint(number << 3 | _LENGTH_DELIMITED)
                out += _varint(len(value))
                out += value
        return bytes(out)

    @classmethod
    def unmarshal(cls, data: bytes) -> "BlobInfo":
        """Parse bytes written by :meth:`marshal`, skipping unknown fields."""
        data = bytes(data)
        fields: dict[int, bytes] = {}
        pos = 0
        while pos < len(data):
            key, pos = _read_varint(data, pos)
            number, wire_type = key >> 3, key & 7
            if wire_type == _VARINT:
                _, pos = _read_varint(data, pos)
                continue
            if wire_type != _LENGTH_DELIMITED:
                raise ValueError(f"unsupported wire type {wire_type} in blob")
            length, pos = _read_varint(data, pos)
            end = pos + length
            if end > len(data):
                raise ValueError("truncated field in blob")
            fields[number] = data[pos:end]
            pos = end
        return cls(
            ciphertext=fields.get(_CIPHERTEXT_FIELD),
            iv=fields.get(_IV_FIELD, b""),
            key_id=fields.get(_KEY_ID_FIELD, b"").decode(),
        )


@dataclass
class AeadWrapper:
    """Encrypts and decrypts with AES-GCM under a single key."""

    key: Optional[bytes] = field(default=None, repr=False)
    key_id: str = ""

    def __post_init__(self) -> None:
        if self.key is not None:
            self.key = bytes(self.key)
            if len(self.key) not in (16, 24, 32):
                raise InvalidParameterError(f"invalid AES-GCM key length: {len(self.key)}")

    def _cipher(self) -> AESGCM:
        if self.key is None:
            raise InvalidParameterError("aead wrapper has no key")
        return AESGCM(self.key)

    def encrypt(self, plaintext: bytes, aad: Optional[bytes] = None) -> BlobInfo:
        """Encrypt ``plaintext`` under a fresh random IV."""
        cipher = self._cipher()
        iv = os.urandom(12)
        return BlobInfo(
            ciphertext=cipher.encrypt(iv, bytes(plaintext), aad),
            iv=iv,
            key_id=self.key_id,
        )

    def decrypt(self, blob: BlobInfo, aad: Optional[bytes] = None) -> bytes:
        """Decrypt a blob; raises ValueError when authentication fails."""
        if not blob.ciphertext:
            raise InvalidParameterError("missing ciphertext")
        cipher = self._cipher()
        try:
            return cipher.decrypt(blob.iv, blob.ciphertext, aad)
        except InvalidTag as exc:
            raise ValueError("unable to decrypt blob: authentication failed") from exc


class DerivedKeyPurpose(enum.IntEnum):
    """Why a key was derived."""

    UNKNOWN = 0
    EVENT = 1

    def __str__(self) -> str:
        return "event" if self is DerivedKeyPurpose.EVENT else "unknown"


@runtime_checkable
class RotateWrapper(Protocol):
    """A payload that carries a new wrapper, salt and info for a filter."""

    def wrapper(self) -> Optional[AeadWrapper]:
        """The wrapper for encryption and hmac-sha256 operations."""

    def hmac_salt(self) -> Optional[bytes]:
        """The salt for hmac-sha256 operations."""

    def hmac_info(self) -> Optional[bytes]:
        """The info for hmac-sha256 operations."""


@runtime_checkable
class EventWrapperInfo(Protocol):
    """A payload that carries what is needed to derive a per-event wrapper."""

    def event_id(self) -> str:
        """The event id used to derive keys for this event."""

    def hmac_salt(self) -> Optional[bytes]:
        """The salt for this event's hmac-sha256 operations."""

    def hmac_info(self) -> Optional[bytes]:
        """The info for this event's hmac-sha256 operations."""


def derived_key_id(purpose: DerivedKeyPurpose, wrapper_key_id: str, event_id: str) -> str:
    """Return the key id naming a derived key."""
    return f"{DerivedKeyPurpose(purpose)}.{wrapper_key_id}.{event_id}"


def new_derived_reader(
    wrapper: Optional[AeadWrapper],
    length_limit: int,
    salt: Optional[bytes] = None,
    info: Optional[bytes] = None,
) -> io.BytesIO:
    """Return a stream of at most ``length_limit`` HKDF-SHA256 bytes keyed by the wrapper."""
    op = "new_derived_reader"
    if wrapper is None:
        raise InvalidParameterError(f"{op}: missing wrapper")
    if length_limit < 20:
        raise InvalidParameterError(f"{op}: length_limit must be >= 20")
    if not isinstance(wrapper, AeadWrapper):
        raise InvalidParameterError(f"{op}: unknown wrapper type")
    if wrapper.key is None:
        raise InvalidParameterError(f"{op}: aead wrapper missing bytes")
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=min(length_limit, _HKDF_MAX),
        salt=None if salt is None else bytes(salt),
        info=None if info is None else bytes(info),
    )
    return io.BytesIO(hkdf.derive(wrapper.key))


def new_event_wrapper(wrapper: Optional[AeadWrapper], event_id: str) -> AeadWrapper:
    """Derive a wrapper for one event from ``wrapper`` and the event id."""
    op = "new_event_wrapper"
    if wrapper is None:
        raise InvalidParameterError(f"{op}: missing wrapper")
    if not event_id:
        raise InvalidParameterError(f"{op}: missing event id")
    reader = new_derived_reader(wrapper, 32, event_id.encode(), None)
    seed = reader.read(32)
    if len(seed) != 32:
        raise InvalidParameterError(f"{op}: unable to generate key")
    key_id = derived_key_id(DerivedKeyPurpose.EVENT, wrapper.key_id, event_id)
    return AeadWrapper(key=seed, key_id=key_id)