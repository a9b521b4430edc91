"""Tests for the structural redactor."""

import copy
import datetime
import random
import string
import uuid
from dataclasses import dataclass

import pytest

from log_redactor.config import RedactionConfig
from log_redactor.redactor import (
    LARGE_OBJECT_KEY,
    ConversionError,
    Redactor,
    _RedactionState,
    _Walker,
    create_redactor,
    redact,
    to_mapping,
)

RANDOM_TOKEN = "".join(random.Random(7).sample(string.ascii_letters + string.digits, 45))
SENTENCE = "The quick brown fox jumps over the lazy dog!!"


class Node:
    """Plain object converted through __dict__."""

    def __init__(self, name, secret=None):
        self.name = name
        self.password = secret


class ExportsDict:
    def __init__(self, data):
        self._data = data

    def to_dict(self):
        return dict(self._data)


class ExportsString:
    def to_dict(self):
        return "not a mapping"


class PydanticLike:
    def model_dump(self):
        return {"token": "abc", "name": "widget"}


class Slotted:
    __slots__ = ("user", "api_key")

    def __init__(self):
        self.user = "alice"
        self.api_key = "k-123"


@dataclass
class Account:
    username: str
    password: str
    meta: dict


class Wide:
    def __init__(self, count):
        for i in range(count):
            setattr(self, f"field_{i}", i)


class TestKeyRules:
    """Tests for safe and blocked keys."""

    def test_blocked_key_exact_output(self):
        """A blocked key is replaced and the result is marked."""
        result = redact({"password": "hunter2"}, {"blocked_keys": ["password"]})
        assert result == {"password": "[REDACTED]", "_redacted": True}

    def test_blocked_keys_case_insensitive(self):
        """Key matching ignores case."""
        result = redact({"PassWord": "x", "API_KEY": "y"})
        assert result["PassWord"] == "[REDACTED]"
        assert result["API_KEY"] == "[REDACTED]"

    def test_safe_beats_blocked(self):
        """A key in both lists is left alone."""
        settings = {"safe_keys": ["email"], "blocked_keys": ["email"]}
        result = redact({"email": "x@y.com"}, settings)
        assert result == {"email": "x@y.com"}

    def test_safe_key_subtree_untouched(self):
        """Values under safe keys are passed through without recursion."""
        inner = {"password": "secret"}
        result = redact({"id": inner})
        assert result["id"] is inner
        assert "_redacted" not in result

    def test_blocked_key_with_container_value(self):
        """A blocked key replaces the whole value, containers included."""
        result = redact({"token": {"value": "abc", "expires": 10}})
        assert result["token"] == "[REDACTED]"

    def test_custom_replacement(self):
        """Replacement text is configurable."""
        result = redact({"secret": "x"}, {"replacement": "***"})
        assert result["secret"] == "***"

    def test_non_string_keys_kept(self):
        """Non-string keys are preserved and checked by their string form."""
        result = redact({1: "plain", 2: "john@example.com"})
        assert result[1] == "plain"
        assert result[2] == "[REDACTED]"


class TestValueRules:
    """Tests for value patterns, length limits and entropy."""

    def test_email_in_value(self):
        """Emails inside free text are redacted."""
        result = redact({"note": "Contact me at john@example.com"})
        assert result["note"] == "[REDACTED]"
        assert result["_redacted"] is True

    def test_credit_card_value(self):
        """Card numbers are redacted."""
        result = redact({"payment": "4532-1234-5678-9012"})
        assert result["payment"] == "[REDACTED]"

    def test_plain_values_untouched(self):
        """Ordinary text is not redacted and no marker is added."""
        context = {"message": "user logged in", "action": "login", "count": 3}
        assert redact(context) == context

    def test_oversized_string(self):
        """Strings over max_value_length are replaced with a length note."""
        value = "x" * 60
        result = redact({"payload": value}, {"max_value_length": 50})
        assert result["payload"] == "[REDACTED] (String with 60 characters)"

    def test_max_value_length_none(self):
        """Length checks can be turned off."""
        value = "word " * 6000
        settings = {"max_value_length": None, "patterns": []}
        assert redact({"body": value}, settings) == {"body": value}

    def test_high_entropy_token_redacted(self):
        """Random tokens are caught by entropy detection."""
        result = redact({"note": RANDOM_TOKEN})
        assert result["note"] == "[REDACTED]"

    def test_sentence_not_redacted(self):
        """Natural language of the same length passes."""
        assert redact({"note": SENTENCE}) == {"note": SENTENCE}

    def test_uuid_not_redacted_at_low_threshold(self):
        """UUIDs are excluded from entropy detection."""
        value = "550e8400-e29b-41d4-a716-446655440000"
        settings = {"patterns": [], "shannon_entropy": {"threshold": 1.0, "min_length": 10}}
        assert redact({"ref": value}, settings) == {"ref": value}

    @pytest.mark.parametrize(
        "value",
        [
            "6ba7b810-9dad-11d1-80b4-00c04fd430c8",
            "000003e8-1c2d-21ef-8a00-325096b39f47",
            "a8098c1a-f86e-31da-b5c4-d0d1b1a2c3e4",
            "018f2b6c-7d3e-7a41-9c2b-5e8f1d0a6b3c",
        ],
    )
    def test_other_uuid_versions_not_redacted(self, value):
        """Time-based and name-based UUIDs are excluded as well."""
        settings = {"patterns": [], "shannon_entropy": {"threshold": 1.0, "min_length": 10}}
        assert redact({"ref": value}, settings) == {"ref": value}

    def test_entropy_disabled(self):
        """Entropy detection can be switched off."""
        settings = {"shannon_entropy": {"enabled": False}}
        assert redact({"note": RANDOM_TOKEN}, settings) == {"note": RANDOM_TOKEN}

    def test_non_string_scalars_pass(self):
        """Numbers, booleans, None, dates and UUIDs are never redacted."""
        when = datetime.datetime(2024, 1, 15, 10, 30)
        ident = uuid.uuid4()
        context = {
            "count": 12345678901234567,
            "ratio": 0.5,
            "flag": False,
            "missing": None,
            "when": when,
            "ref": ident,
        }
        assert redact(context) == context


class TestNesting:
    """Tests for recursive structures."""

    def test_nested_redaction(self):
        """Redaction reaches deeply nested values."""
        context = {"request": {"headers": {"authorization": "Bearer abc"}, "path": "/login"}}
        result = redact(context)
        assert result["request"]["headers"]["authorization"] == "[REDACTED]"
        assert result["request"]["path"] == "/login"
        assert result["_redacted"] is True
        assert "_redacted" not in result["request"]

    def test_list_elements_have_no_key(self):
        """List elements are checked by value only."""
        result = redact({"items": ["plain", "john@example.com"]})
        assert result["items"] == ["plain", "[REDACTED]"]

    def test_list_of_dicts(self):
        """Dicts inside lists get key checks."""
        result = redact({"users": [{"name": "a", "password": "p"}]})
        assert result["users"] == [{"name": "a", "password": "[REDACTED]"}]

    def test_tuple_stays_tuple(self):
        """Tuples come back as tuples."""
        result = redact({"pair": ("plain", "john@example.com")})
        assert result["pair"] == ("plain", "[REDACTED]")

    def test_top_level_list_has_no_marker(self):
        """Markers are only added to mapping results."""
        result = redact(["john@example.com", "ok"])
        assert result == ["[REDACTED]", "ok"]

    def test_top_level_string(self):
        """A bare string is classified directly."""
        assert redact("john@example.com") == "[REDACTED]"
        assert redact("hello") == "hello"

    def test_input_not_mutated(self):
        """The original context is left untouched."""
        context = {"password": "x", "nested": {"token": "y", "items": ["john@example.com"]}}
        before = copy.deepcopy(context)
        redact(context)
        assert context == before


class TestLargeObjects:
    """Tests for size caps on containers."""

    def test_large_map(self):
        """Maps over the limit are replaced with a sentinel."""
        payload = {f"k{i}": i for i in range(5)}
        result = redact({"payload": payload}, {"max_object_size": 3})
        assert result["payload"] == {LARGE_OBJECT_KEY: "[REDACTED] (Map with 5 items)"}
        assert result["_redacted"] is True

    def test_large_list(self):
        """Lists over the limit are replaced with a sentinel."""
        result = redact({"rows": list(range(5))}, {"max_object_size": 3})
        assert result["rows"] == {LARGE_OBJECT_KEY: "[REDACTED] (Array with 5 items)"}

    def test_large_top_level(self):
        """The top-level context itself is subject to the limit."""
        context = {f"k{i}": i for i in range(5)}
        result = redact(context, {"max_object_size": 3})
        assert result == {
            LARGE_OBJECT_KEY: "[REDACTED] (Map with 5 items)",
            "_redacted": True,
        }

    def test_large_object(self):
        """Objects over the limit report their type and property count."""
        result = redact({"obj": Wide(5)}, {"max_object_size": 3})
        assert result["obj"] == {LARGE_OBJECT_KEY: "[REDACTED] (Object Wide with 5 properties)"}

    def test_at_limit_not_redacted(self):
        """Containers of exactly max_object_size are walked normally."""
        payload = {f"k{i}": i for i in range(3)}
        assert redact({"payload": payload}, {"max_object_size": 3}) == {"payload": payload}

    def test_large_object_redaction_disabled(self):
        """Size caps can be turned off."""
        rows = list(range(500))
        assert redact({"rows": rows}, {"redact_large_objects": False}) == {"rows": rows}


class TestObjects:
    """Tests for object conversion."""

    def test_plain_object(self):
        """Objects are converted through their attributes."""
        result = redact({"user": Node("alice", "hunter2")})
        assert result["user"] == {"name": "alice", "password": "[REDACTED]"}

    def test_dataclass(self):
        """Dataclasses are converted shallowly and walked."""
        account = Account("alice", "hunter2", {"token": "t"})
        result = redact({"account": account})
        assert result["account"] == {
            "username": "alice",
            "password": "[REDACTED]",
            "meta": {"token": "[REDACTED]"},
        }

    def test_to_dict_object(self):
        """Objects exporting to_dict() are walked through that mapping."""
        result = redact({"obj": ExportsDict({"secret": "s", "name": "n"})})
        assert result["obj"] == {"secret": "[REDACTED]", "name": "n"}

    def test_model_dump_object(self):
        """Objects exporting model_dump() are supported."""
        result = redact({"model": PydanticLike()})
        assert result["model"] == {"token": "[REDACTED]", "name": "widget"}

    def test_slotted_object(self):
        """Objects with __slots__ are supported."""
        result = redact({"obj": Slotted()})
        assert result["obj"] == {"user": "alice", "api_key": "[REDACTED]"}

    def test_to_dict_returning_non_mapping_preserved(self):
        """Objects that fail conversion are preserved by default."""
        obj = ExportsString()
        result = redact({"obj": obj})
        assert result["obj"] is obj
        assert "_redacted" not in result

    def test_to_mapping_rejects_classes(self):
        """Classes are not converted."""
        with pytest.raises(ConversionError):
            to_mapping(Node)

    def test_to_mapping_rejects_bare_object(self):
        """Objects without attributes cannot be converted."""
        with pytest.raises(ConversionError):
            to_mapping(object())


class TestNonRedactableObjects:
    """Tests for non-redactable object behaviors."""

    def test_remove(self):
        """Removed objects disappear from their container without a marker."""
        settings = {"non_redactable_object_behavior": "remove"}
        result = redact({"obj": ExportsString(), "items": [ExportsString(), "ok"], "a": 1}, settings)
        assert result == {"items": ["ok"], "a": 1}

    def test_remove_top_level(self):
        """A removed top-level value becomes None."""
        settings = {"non_redactable_object_behavior": "remove"}
        assert redact(ExportsString(), settings) is None

    def test_empty_array(self):
        """empty_array replaces the object with an empty mapping."""
        settings = {"non_redactable_object_behavior": "empty_array"}
        result = redact({"obj": ExportsString()}, settings)
        assert result == {"obj": {}, "_redacted": True}

    def test_redact(self):
        """redact replaces the object with a note naming its type."""
        settings = {"non_redactable_object_behavior": "redact"}
        result = redact({"obj": ExportsString()}, settings)
        assert result["obj"] == "[REDACTED] (Non-redactable object ExportsString)"
        assert result["_redacted"] is True


class TestCycles:
    """Tests for cyclic structures."""

    def test_cyclic_object_preserved(self):
        """A self-referencing object terminates and keeps the back reference."""
        node = Node("root")
        node.self = node
        result = redact({"user": node})
        assert result["user"]["name"] == "root"
        assert result["user"]["self"] is node

    def test_cyclic_object_redacted(self):
        """With the redact behavior the back reference is replaced."""
        node = Node("root")
        node.self = node
        result = redact({"user": node}, {"non_redactable_object_behavior": "redact"})
        assert result["user"]["self"] == "[REDACTED] (Non-redactable object Node)"

    def test_cyclic_dict(self):
        """Self-referencing dicts terminate."""
        context = {"name": "loop"}
        context["again"] = context
        result = redact(context, {"non_redactable_object_behavior": "remove"})
        assert result == {"name": "loop"}

    def test_shared_reference_not_a_cycle(self):
        """The same object in two sibling branches is walked twice."""
        shared = {"token": "t"}
        result = redact({"a": shared, "b": shared})
        assert result["a"] == {"token": "[REDACTED]"}
        assert result["b"] == {"token": "[REDACTED]"}


class TestMarkers:
    """Tests for redaction markers and results."""

    def test_mark_redacted_disabled(self):
        """No marker is added when marking is off."""
        result = redact({"password": "x"}, {"mark_redacted": False})
        assert result == {"password": "[REDACTED]"}

    def test_track_redacted_keys(self):
        """Redacted key names are listed when tracking is on."""
        redactor = Redactor({"track_redacted_keys": True})
        result = redactor.redact_with_result({
            "password": "x",
            "note": "mail john@example.com",
            "nested": {"token": "y"},
            "ok": "fine",
        })
        assert result.was_redacted
        assert result.redacted_keys == ("password", "note", "token")
        assert result.value["_redacted_keys"] == ["password", "note", "token"]

    def test_tracked_keys_without_marker(self):
        """Key tracking does not depend on the boolean marker."""
        settings = {"track_redacted_keys": True, "mark_redacted": False}
        result = redact({"password": "x"}, settings)
        assert result == {"password": "[REDACTED]", "_redacted_keys": ["password"]}

    def test_keys_not_tracked_by_default(self):
        """The key list is omitted unless tracking is enabled."""
        result = Redactor().redact_with_result({"password": "x"})
        assert result.redacted_keys == ()
        assert "_redacted_keys" not in result.value

    def test_counts(self):
        """Redactions are counted per reason."""
        result = Redactor().redact_with_result({
            "password": "x",
            "token": "y",
            "note": "mail john@example.com",
        })
        assert result.counts == {"blocked_key": 2, "value": 1}

    def test_idempotent(self):
        """Redacting an already-redacted context changes nothing."""
        settings = {"max_object_size": 3, "max_value_length": 50}
        context = {
            "password": "x",
            "note": "mail john@example.com",
            "payload": {f"k{i}": i for i in range(5)},
            "body": "y" * 80,
        }
        once = redact(context, settings)
        assert redact(once, settings) == once


class TestRedactorConfig:
    """Tests for enabling and configuring redactors."""

    def test_disabled_redactor_returns_input(self):
        """A disabled redactor returns the context itself."""
        context = {"password": "x"}
        assert Redactor(enabled=False).redact(context) is context
        assert create_redactor(enabled=False).redact(context) is context

    def test_disabled_by_settings(self):
        """enabled=false in settings disables redaction."""
        context = {"password": "x"}
        assert redact(context, {"enabled": False}) is context

    def test_provider_read_per_call(self):
        """A settings provider is consulted on every call."""
        settings = {"replacement": "***"}
        redactor = Redactor(lambda: settings)
        assert redactor.redact({"password": "x"})["password"] == "***"

        settings["replacement"] = "###"
        assert redactor.redact({"password": "x"})["password"] == "###"

    def test_create_redactor_with_mapping(self):
        """create_redactor accepts a settings mapping."""
        redactor = create_redactor(config={"blocked_keys": ["pin"]})
        assert redactor.redact({"pin": "1234", "password": "x"}) == {
            "pin": "[REDACTED]",
            "password": "x",
            "_redacted": True,
        }


class TestEntropyCache:
    """Tests for the per-call entropy cache."""

    def test_repeated_values_scored_once(self):
        """A value seen several times in one context is scored once."""
        state = _RedactionState()
        walker = _Walker(RedactionConfig(), state)

        result = walker.walk({"a": RANDOM_TOKEN, "b": RANDOM_TOKEN, "c": [RANDOM_TOKEN]}, None)

        assert result == {"a": "[REDACTED]", "b": "[REDACTED]", "c": ["[REDACTED]"]}
        assert len(state.scorer) == 1

    def test_cache_not_shared_between_calls(self):
        """Each redaction call starts with an empty cache."""
        assert len(_RedactionState().scorer) == 0


class TestConfigSnapshot:
    """Tests for the snapshot a redactor works with."""

    def test_static_snapshot_returned_as_is(self):
        """A redactor built from a snapshot keeps that exact snapshot."""
        config = RedactionConfig()
        assert Redactor(config).config is config

    def test_mapping_built_once(self):
        """A settings mapping is turned into one snapshot up front."""
        redactor = Redactor({"replacement": "***"})
        assert redactor.config is redactor.config
        assert redactor.config.replacement == "***"
