"""Filter options and the value-level operations of the encrypt filter."""

from __future__ import annotations

import base64
import hashlib
import hmac
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Sequence, Union

from eventlogger.encrypt.classification import (
    REDACTED_DATA,
    DataClassification,
    FilterOperation,
    Overrides,
    TagInfo,
)
from eventlogger.encrypt.pointer import pointer_get, pointer_set
from eventlogger.encrypt.wrapper import AeadWrapper, new_derived_reader
from eventlogger.event import InvalidParameterError, NodeType

_TEXT_TYPES = (str, bytes, bytearray)


def _raw_urlsafe_b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


@dataclass(frozen=True)
class FilterOptions:
    """Per-call settings for filtering operations.

    ``wrapper``, ``salt`` and ``info`` take precedence over the filter's own
    values. ``pointer_target`` and ``pointer`` address a value inside a
    taggable container that is to be replaced in place.
    """

    wrapper: Optional[AeadWrapper] = None
    salt: Optional[bytes] = None
    info: Optional[bytes] = None
    filter_operations: Optional[Overrides] = None
    pointer_target: Any = None
    pointer: Optional[str] = None
    ignore_taggable: bool = False

    @property
    def has_pointer(self) -> bool:
        return self.pointer is not None

    def with_pointer(self, target: Any, pointer: str) -> "FilterOptions":
        """Return a copy addressing ``pointer`` inside ``target``."""
        return replace(self, pointer_target=target, pointer=pointer)

    def with_ignore_taggable(self, ignore: bool = True) -> "FilterOptions":
        """Return a copy with ``ignore_taggable`` set to ``ignore``."""
        return replace(self, ignore_taggable=ignore)


_DEFAULT_OPTIONS = FilterOptions()


@dataclass
class ValueFilter:
    """Redacts, encrypts or hmac-sha256s string and bytes values by classification."""

    wrapper: Optional[AeadWrapper] = None
    hmac_salt: Optional[bytes] = None
    hmac_info: Optional[bytes] = None
    filter_operation_overrides: Optional[dict[Any, Any]] = None
    ignore_types: Sequence[type] = ()
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    def rotate(
        self,
        wrapper: Optional[AeadWrapper] = None,
        salt: Optional[bytes] = None,
        info: Optional[bytes] = None,
    ) -> None:
        """Replace the wrapper, salt and info; None leaves a value unchanged."""
        with self._lock:
            if wrapper is not None:
                self.wrapper = wrapper
            if salt is not None:
                self.hmac_salt = bytes(salt)
            if info is not None:
                self.hmac_info = bytes(info)

    def node_type(self) -> NodeType:
        return NodeType.FILTER

    def reopen(self) -> None:
        """Filters hold no resources, so there is nothing to reopen."""

    def copy_overrides(self) -> Optional[dict[Any, Any]]:
        """Return a snapshot of the filter operation overrides, or None."""
        if self.filter_operation_overrides is None:
            return None
        with self._lock:
            return dict(self.filter_operation_overrides)

    def ignore(self, value: Any) -> bool:
        """Whether ``value`` is of one of the ignored types."""
        return any(type(value) is ignored for ignored in self.ignore_types)

    def filter_value(
        self,
        value: Any,
        tag: Optional[TagInfo],
        options: Optional[FilterOptions] = None,
    ) -> Any:
        """Return ``value`` filtered according to ``tag``.

        Strings come back as strings and bytes as bytes. When the options
        carry a pointer, the addressed value inside the pointer target is
        replaced in place and ``value`` is returned.
        """
        op = "filter_value"
        if tag is None:
            raise InvalidParameterError(f"{op}: missing classification tag")
        if (
            tag.classification == DataClassification.PUBLIC
            or tag.operation == FilterOperation.NONE
        ):
            return value
        if value is None:
            return None

        opts = options or _DEFAULT_OPTIONS
        if not isinstance(value, _TEXT_TYPES) and not opts.has_pointer:
            raise InvalidParameterError(
                f"{op}: field value is not a string, []byte or tagged map value: {value!r}"
            )

        if tag.classification in (DataClassification.SECRET, DataClassification.SENSITIVE):
            if opts.has_pointer:
                raw = self._pointed_bytes(opts)
            elif isinstance(value, str):
                raw = value.encode()
            else:
                raw = bytes(value)

            if tag.operation == FilterOperation.ENCRYPT:
                data = self.encrypt(raw, opts)
            elif tag.operation == FilterOperation.HMAC_SHA256:
                data = self.hmac_sha256(raw, opts)
            elif tag.operation == FilterOperation.REDACT:
                data = REDACTED_DATA
            else:
                raise InvalidParameterError(
                    f"{op}: unknown filter operation for field: {tag.operation}"
                )
        else:
            data = REDACTED_DATA

        if opts.has_pointer:
            pointer_set(opts.pointer_target, opts.pointer, data)
            return value
        return _like(value, data)

    def filter_slice(
        self,
        values: Any,
        tag: Optional[TagInfo],
        options: Optional[FilterOptions] = None,
    ) -> Any:
        """Filter every element of a list of strings or bytes.

        Lists are updated in place and returned; tuples yield a new tuple.
        """
        op = "filter_slice"
        if tag is None:
            raise InvalidParameterError(f"{op}: missing classification tag")
        if tag.classification == DataClassification.PUBLIC:
            return values
        if values is None:
            return None
        if not isinstance(values, (list, tuple)) or not all(
            item is None or isinstance(item, _TEXT_TYPES) for item in values
        ):
            raise InvalidParameterError(
                f"{op}: slice parameter is not a []string or [][]byte: ({values!r})"
            )
        filtered = [self.filter_value(item, tag, options) for item in values]
        if isinstance(values, tuple):
            return tuple(filtered)
        values[:] = filtered
        return values

    def encrypt(self, data: Optional[bytes], options: Optional[FilterOptions] = None) -> str:
        """Encrypt ``data`` and return it as an "encrypted:"-prefixed string."""
        op = "encrypt"
        if data is None:
            raise InvalidParameterError(f"{op}: missing data")
        opts = options or _DEFAULT_OPTIONS
        with self._lock:
            wrapper = opts.wrapper or self.wrapper
            if wrapper is None:
                raise InvalidParameterError(f"{op}: missing wrapper")
            blob = wrapper.encrypt(bytes(data))
        return "encrypted:" + _raw_urlsafe_b64encode(blob.marshal())

    def hmac_sha256(self, data: Optional[bytes], options: Optional[FilterOptions] = None) -> str:
        """Return the "hmac-sha256:"-prefixed HMAC of ``data`` under a derived key."""
        op = "hmac_sha256"
        if data is None:
            raise InvalidParameterError(f"{op}: missing data")
        opts = options or _DEFAULT_OPTIONS
        with self._lock:
            wrapper = opts.wrapper or self.wrapper
            if wrapper is None:
                raise InvalidParameterError(f"{op}: missing wrapper")
            salt = bytes(opts.salt if opts.salt is not None else self.hmac_salt or b"")
            info = bytes(opts.info if opts.info is not None else self.hmac_info or b"")
            key = new_derived_reader(wrapper, 32, salt, info).read(32)
        if len(key) != 32:
            raise ValueError(f"{op}: expected to read 32 bytes and got: {len(key)}")
        digest = hmac.new(key, bytes(data), hashlib.sha256).digest()
        return "hmac-sha256:" + _raw_urlsafe_b64encode(digest)

    @staticmethod
    def _pointed_bytes(opts: FilterOptions) -> bytes:
        assert opts.pointer is not None
        found = pointer_get(opts.pointer_target, opts.pointer)
        if isinstance(found, (bytes, bytearray)):
            return bytes(found)
        return str(found).encode()


def _like(original: Union[str, bytes, bytearray], data: str) -> Any:
    if isinstance(original, bytearray):
        return bytearray(data.encode())
    if isinstance(original, bytes):
        return data.encode()
    return data