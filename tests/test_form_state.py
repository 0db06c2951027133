"""Tests for FieldState, FormArray and FormRecord."""

import logging

import pytest

from signupkit.forms.state import UPDATE_ON_BLUR, FieldState, FormArray, FormRecord
from signupkit.validation import rules
from signupkit.validation.cross_field import at_least_one_required


def phone_entry():
    return FormRecord(
        name="extra_phones",
        fields=[
            FieldState(name="type", value="mobile", rules=(rules.required(),)),
            FieldState(name="number", rules=(rules.required(), rules.telefono())),
        ],
    )


@pytest.fixture
def phones():
    return FormArray("extra_phones", phone_entry, max_length=3)


@pytest.fixture
def record(phones):
    return FormRecord(
        name="registration",
        fields=[
            FieldState(name="email", rules=(rules.required(), rules.email())),
            FieldState(name="primary_phone", rules=(rules.telefono(),)),
            FieldState(name="secondary_phone", rules=(rules.telefono(),)),
        ],
        groups=[
            FormRecord(
                name="address",
                fields=[
                    FieldState(
                        name="postal_code",
                        rules=(rules.required(), rules.codigo_postal()),
                    ),
                ],
            )
        ],
        arrays=[phones],
        cross_field_rules=[at_least_one_required("primary_phone", "secondary_phone")],
    )


# =============================================================================
# Field State
# =============================================================================


class TestFieldState:
    def test_rules_run_on_creation(self):
        state = FieldState(name="email", rules=(rules.required(),))
        assert state.sync_errors == {"required": True}
        assert not state.valid

    def test_errors_merge_sync_and_async(self):
        state = FieldState(name="email", value="x@y.com")
        state.async_errors["emailTaken"] = True
        assert state.errors == {"emailTaken": True}
        assert not state.valid

    def test_pending_is_never_valid(self):
        state = FieldState(name="email", value="x@y.com")
        state.pending_async = True
        assert state.errors == {}
        assert not state.valid

    def test_stage_and_take(self):
        state = FieldState(name="nickname", update_on=UPDATE_ON_BLUR)
        state.stage("pepe")
        assert state.has_staged
        assert state.value == ""
        assert state.dirty
        assert state.take_staged() == "pepe"
        assert not state.has_staged

    def test_reset_restores_initial(self):
        state = FieldState(name="terms", value=False, rules=(rules.required_true(),))
        state.value = True
        state.touched = True
        state.dirty = True
        state.async_errors["x"] = True
        state.validate()
        assert state.valid is False  # async error still present

        state.reset()
        assert state.value is False
        assert not state.touched
        assert not state.dirty
        assert state.async_errors == {}
        assert state.sync_errors == {"required": True}


# =============================================================================
# Form Array
# =============================================================================


class TestFormArray:
    def test_add_stops_at_max(self, phones):
        added = [phones.add() for _ in range(4)]
        assert len(phones) == 3
        assert added[3] is None
        assert phones.full

    def test_remove_at_keeps_order(self, phones):
        for number in ("611111111", "622222222", "633333333"):
            phones.add().fields["number"].value = number

        removed = phones.remove_at(1)
        assert removed.fields["number"].value == "622222222"
        assert [entry.fields["number"].value for entry in phones] == [
            "611111111",
            "633333333",
        ]

    @pytest.mark.parametrize("index", [-1, 0, 5])
    def test_remove_out_of_range_is_ignored(self, index, caplog):
        empty = FormArray("extra_phones", phone_entry, max_length=3)
        with caplog.at_level(logging.WARNING, logger="signupkit.forms.state"):
            assert empty.remove_at(index) is None
        assert "Ignoring removal" in caplog.text

    def test_unbounded_array(self):
        array = FormArray("items", phone_entry)
        for _ in range(10):
            assert array.add() is not None
        assert not array.full

    def test_values_in_order(self, phones):
        phones.add().fields["number"].value = "611111111"
        phones.add().fields["type"].value = "landline"
        assert phones.values() == [
            {"type": "mobile", "number": "611111111"},
            {"type": "landline", "number": ""},
        ]

    def test_entry_validity(self, phones):
        entry = phones.add()
        assert not phones.valid

        entry.set_value("number", "612345678")
        assert phones.valid


# =============================================================================
# Form Record
# =============================================================================


class TestFormRecord:
    def test_values_are_nested(self, record):
        record.set_value("email", "a@b.com")
        record.set_value("address.postal_code", "28001")
        record.array("extra_phones").add()

        values = record.values()
        assert values["email"] == "a@b.com"
        assert values["address"] == {"postal_code": "28001"}
        assert values["extra_phones"] == [{"type": "mobile", "number": ""}]

    def test_validity_is_the_and_of_everything(self, record):
        record.set_value("email", "a@b.com")
        record.set_value("primary_phone", "612345678")
        assert not record.valid  # postal code still missing

        record.set_value("address.postal_code", "28001")
        assert record.valid

        record.array("extra_phones").add()
        assert not record.valid

        record.set_value("extra_phones.0.number", "712345678")
        assert record.valid

    def test_pending_field_blocks_validity(self, record):
        record.set_value("email", "a@b.com")
        record.set_value("primary_phone", "612345678")
        record.set_value("address.postal_code", "28001")
        record.get("email").pending_async = True
        assert record.pending
        assert not record.valid

    def test_cross_field_error_is_keyed_by_record(self, record):
        errors = record.errors_by_path()
        assert errors[""] == {
            "atLeastOneRequired": {"fields": ["primary_phone", "secondary_phone"]}
        }
        assert errors["email"] == {"required": True}
        assert errors["address.postal_code"] == {"required": True}

    def test_errors_by_path_for_array_entries(self, record):
        record.array("extra_phones").add()
        record.set_value("extra_phones.0.number", "512")
        assert "invalidTelefono" in record.errors_by_path()["extra_phones.0.number"]

    def test_set_value_reruns_cross_rules(self, record):
        assert record.errors
        record.set_value("secondary_phone", "712345678")
        assert record.errors == {}

    def test_validate_reruns_everything(self, record):
        record.get("email").value = "bad"
        assert record.get("email").sync_errors == {"required": True}
        record.validate()
        assert record.get("email").sync_errors == {"email": True}


class TestNavigation:
    @pytest.mark.parametrize(
        "path",
        ["missing", "address.missing", "address", "extra_phones.0.number", "extra_phones.x.number"],
    )
    def test_unknown_paths_raise_key_error(self, record, path):
        with pytest.raises(KeyError):
            record.locate(path)

    def test_locate_returns_owning_record(self, record):
        owner, state = record.locate("address.postal_code")
        assert owner is record.groups["address"]
        assert state.name == "postal_code"

        entry = record.array("extra_phones").add()
        owner, state = record.locate("extra_phones.0.number")
        assert owner is entry
        assert state is entry.fields["number"]

    def test_iter_fields_paths(self, record):
        record.array("extra_phones").add()
        paths = [path for path, _ in record.iter_fields()]
        assert paths == [
            "email",
            "primary_phone",
            "secondary_phone",
            "address.postal_code",
            "extra_phones.0.type",
            "extra_phones.0.number",
        ]

    def test_unknown_array(self, record):
        with pytest.raises(KeyError):
            record.array("nope")


class TestLifecycle:
    def test_mark_all_touched(self, record):
        record.array("extra_phones").add()
        record.mark_all_touched()
        assert all(state.touched for _, state in record.iter_fields())
        assert all(rec.touched for _, rec in record.iter_records())

    def test_reset_empties_arrays_and_restores_values(self, record):
        record.set_value("email", "a@b.com")
        record.set_value("primary_phone", "612345678")
        record.array("extra_phones").add()
        record.mark_all_touched()

        record.reset()
        assert record.get("email").value == ""
        assert not record.get("email").touched
        assert len(record.array("extra_phones")) == 0
        assert "atLeastOneRequired" in record.errors
