import base64

import pytest

from eventlogger.encrypt.classification import DataClassification, FilterOperation
from eventlogger.encrypt.pointer import PointerTag, pointer_get
from eventlogger.encrypt.testkit import (
    TEST_MAP_FIELD,
    TaggedTestMap,
    decrypt_value,
    hmac_sha256_value,
    new_test_wrapper,
)
from eventlogger.encrypt.wrapper import BlobInfo
from eventlogger.event import InvalidParameterError


def _encode(blob):
    return "encrypted:" + base64.urlsafe_b64encode(blob.marshal()).rstrip(b"=").decode()


def _decode_hmac(value):
    body = value.removeprefix("hmac-sha256:").encode()
    return base64.urlsafe_b64decode(body + b"=" * (-len(body) % 4))


def test_new_test_wrapper_key():
    wrapper = new_test_wrapper()
    assert len(wrapper.key) == 32
    assert wrapper.key_id == base64.b64encode(wrapper.key).decode()
    assert new_test_wrapper().key != wrapper.key


def test_decrypt_value_round_trip():
    wrapper = new_test_wrapper()
    value = _encode(wrapper.encrypt(b"fido"))
    assert decrypt_value(wrapper, value) == b"fido"
    assert decrypt_value(wrapper, value.encode()) == b"fido"


def test_decrypt_value_without_ciphertext():
    wrapper = new_test_wrapper()
    assert decrypt_value(wrapper, _encode(BlobInfo(iv=b"i" * 12))) is None


def test_decrypt_value_requires_wrapper():
    with pytest.raises(InvalidParameterError):
        decrypt_value(None, "encrypted:")


def test_hmac_value_shape():
    value = hmac_sha256_value(b"fido", new_test_wrapper(), b"salt", b"info")
    assert value.startswith("hmac-sha256:")
    assert len(_decode_hmac(value)) == 32


def test_hmac_value_deterministic_and_keyed():
    wrapper = new_test_wrapper()
    first = hmac_sha256_value(b"fido", wrapper, b"salt", b"info")
    assert hmac_sha256_value(b"fido", wrapper, b"salt", b"info") == first
    assert hmac_sha256_value(b"fido", wrapper, b"opt-salt", b"info") != first
    assert hmac_sha256_value(b"fido", wrapper, b"salt", b"opt-info") != first
    assert hmac_sha256_value(b"fido", new_test_wrapper(), b"salt", b"info") != first


def test_tagged_map_tags():
    assert TaggedTestMap().tags() == [
        PointerTag("/foo", DataClassification.SECRET, FilterOperation.REDACT),
        PointerTag("/public-foo", DataClassification.PUBLIC, FilterOperation.NONE),
    ]


def test_tagged_map_pointer_resolves():
    tagged = TaggedTestMap({TEST_MAP_FIELD: "bar"})
    assert pointer_get(tagged, tagged.tags()[0].pointer) == "bar"