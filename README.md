# eventlogger

Building blocks for event pipelines: events that carry formatted renderings
of their payload, predicate filters, a rotating file sink, and helpers that
redact, encrypt or HMAC classified string and bytes values.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Events

`eventlogger.event.Event` holds an `event_type`, a `created_at` time, a
`payload` and a `formatted` table mapping a format name to bytes.

```python
from eventlogger.event import Event

event = Event(event_type="audit", payload={"color": "red"})
event.formatted_as("json", b'{"color":"red"}')
event.format("json")     # b'{"color":"red"}'
event.format("text")     # None: no such rendering
```

The module also defines `NodeType` (`FILTER`, `FORMATTER`, `SINK`) and
`InvalidParameterError`, a `ValueError` raised throughout the package for
missing or unusable arguments.

## Filters

`eventlogger.filter.Filter` wraps a predicate. `process(event)` returns the
event when the predicate returns true and `None` when it returns false.
Exceptions raised by the predicate propagate; a filter without a predicate
raises `InvalidParameterError`.

```python
from eventlogger.filter import Filter

drop_purple = Filter(predicate=lambda e: e.payload.get("color") != "purple")
```

## File sink

`eventlogger.file_sink.FileSink` appends the bytes an event holds under its
`format` (default `"json"`) to a file named `file_name` in the directory
`path`, creating the directory when needed. If the event has no rendering in
that format, `process` raises `ValueError`.

```python
from datetime import timedelta
from eventlogger.event import Event
from eventlogger.file_sink import FileSink

sink = FileSink(path="logs", file_name="audit.log",
                max_bytes=1_000_000, max_duration=timedelta(hours=24), max_files=5)
sink.process(Event(formatted={"json": b'{"msg":"hello"}\n'}))
sink.close()
```

- Rotation happens before a write once `bytes_written` reaches `max_bytes`
  or the file is older than `max_duration` (either set to zero disables it).
- With rotation enabled, each file name carries a nanosecond timestamp
  (`audit-<ns>.log`). With `timestamp_only_on_rotate=True` the current file
  keeps the plain name and is renamed with a timestamp when rotated.
- `max_files` keeps at most that many timestamped files; zero keeps all.
- `mode` sets the file's permission bits (files are created `0o600` when it
  is zero); directories are created `0o700`.
- `reopen()` closes and reopens the file, recreating it if it was removed,
  as after an external log rotation. `open()` and `close()` are also public.

## Classified values

`eventlogger.encrypt` classifies data as `public`, `sensitive` or `secret`
and applies a filter operation: `redact`, `encrypt` or `hmac-sha256`.

- `eventlogger.encrypt.classification`: `DataClassification`,
  `FilterOperation`, `TagInfo`, `convert_to_operation`,
  `default_filter_operations` (sensitive → encrypt, secret → redact,
  public → none), and `classification_from_tag_string` /
  `classification_from_tag`, which parse tags such as `"sensitive,hmac-sha256"`
  with optional per-classification overrides. Unknown classifications give
  an unknown classification and operation.
- `eventlogger.encrypt.wrapper`: `AeadWrapper` (AES-GCM with a 16, 24 or
  32 byte key), `BlobInfo` with protobuf-wire `marshal`/`unmarshal`,
  `new_derived_reader` (HKDF-SHA256), `new_event_wrapper` for a per-event
  wrapper, `derived_key_id`, `DerivedKeyPurpose`, and the `RotateWrapper` and
  `EventWrapperInfo` protocols.
- `eventlogger.encrypt.pointer`: `parse_pointer`, `pointer_get` and
  `pointer_set` read and write values at `/a/b` paths in mappings, lists and
  object attributes; `PointerNotFoundError` when a part is missing.
- `eventlogger.encrypt.values`: `ValueFilter` and `FilterOptions`.
  `filter_value` filters one string or bytes value and returns the result
  of the same type; `filter_slice` filters a list (in place) or tuple of
  them. `encrypt`, `hmac_sha256`, `rotate`, `copy_overrides` and `ignore` are
  also available.
- `eventlogger.encrypt.tracked`: `PointerTag`, the `Taggable` protocol,
  `TrackedMap` and `TrackedMaps`. `process_unfiltered` redacts every value in
  the tracked mappings that has not been marked filtered, descending into
  nested mappings and lists.
- `eventlogger.encrypt.testkit`: `new_test_wrapper`, `decrypt_value`,
  `hmac_sha256_value` and `TaggedTestMap`, for tests.

```python
from eventlogger.encrypt.classification import classification_from_tag_string
from eventlogger.encrypt.testkit import decrypt_value, new_test_wrapper
from eventlogger.encrypt.tracked import TrackedMap, TrackedMaps
from eventlogger.encrypt.values import ValueFilter

wrapper = new_test_wrapper()
vf = ValueFilter(wrapper=wrapper, hmac_salt=b"salt", hmac_info=b"info")

vf.filter_value("alice", classification_from_tag_string("secret"))   # "[REDACTED]"
hidden = vf.filter_value("alice", classification_from_tag_string("sensitive"))
decrypt_value(wrapper, hidden)                                        # b"alice"
vf.filter_value(b"alice", classification_from_tag_string("sensitive,hmac-sha256"))
# b"hmac-sha256:..."

payload = {"user": "alice", "keys": ["k1", "k2"]}
TrackedMaps(TrackedMap(value=payload)).process_unfiltered(vf)
# payload == {"user": "[REDACTED]", "keys": ["[REDACTED]", "[REDACTED]"]}
```

Encrypted values are written as `encrypted:<base64url blob>`, HMACs as
`hmac-sha256:<base64url digest>`, and redacted values as `[REDACTED]`.

## What this package does not do

- There is no broker that registers nodes, routes events to pipelines or
  counts successful sinks, and no formatter that renders events as JSON:
  callers run nodes themselves and put rendered bytes into `Event.formatted`.
- There is no pipeline node that walks a whole event payload and filters
  classified dataclass fields. `ValueFilter` works on single values and
  lists, and `TrackedMaps.process_unfiltered` on mappings; objects met inside
  a mapping can only be filtered by a filter that provides `filter_fields`,
  which `ValueFilter` does not, so with it they raise `InvalidParameterError`.