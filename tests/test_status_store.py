"""
Tests for field write bookkeeping and the status state machine.

Covers:
- original values recorded on the first real change and dropped on revert
- status transitions and when status_changed fires
- accept/reject, delete/undelete and their guards
- changed_properties and get_original_value queries
"""
import pytest

from changetracking import ChangeStatus, InvalidStateError, UnknownFieldError, as_trackable

from conftest import Address, Customer


class TestFieldWrites:
    """Original values follow the A -> B -> A rule."""

    def test_write_records_original_and_marks_changed(self):
        customer = as_trackable(Customer(name="A"))
        customer.name = "B"

        assert customer.change_status is ChangeStatus.CHANGED
        assert dict(customer.original_values) == {"name": "A"}
        assert customer.is_changed

    def test_write_back_to_original_restores_unchanged(self):
        customer = as_trackable(Customer(name="A"))
        customer.name = "B"
        customer.name = "A"

        assert customer.change_status is ChangeStatus.UNCHANGED
        assert dict(customer.original_values) == {}
        assert not customer.is_changed

    def test_equal_write_records_nothing(self):
        customer = as_trackable(Customer(name="A"))
        customer.name = "A"

        assert customer.change_status is ChangeStatus.UNCHANGED
        assert dict(customer.original_values) == {}

    def test_further_writes_keep_first_original(self):
        customer = as_trackable(Customer(name="A"))
        customer.name = "B"
        customer.name = "C"

        assert dict(customer.original_values) == {"name": "A"}
        assert customer.get_original_value("name") == "A"

    def test_status_changed_fires_only_on_transitions(self, recorder):
        customer = as_trackable(Customer(name="A"))
        customer.on_status_changed(recorder)

        customer.name = "B"
        customer.name = "C"
        assert len(recorder.events) == 1

        customer.name = "A"
        assert len(recorder.events) == 2
        assert recorder.events[-1] == (customer,)

    def test_off_status_changed_stops_callbacks(self, recorder):
        customer = as_trackable(Customer(name="A"))
        customer.on_status_changed(recorder)
        customer.off_status_changed(recorder)

        customer.name = "B"

        assert recorder.events == []

    def test_added_status_survives_writes(self):
        customer = as_trackable(Customer(name="A"), status=ChangeStatus.ADDED)
        customer.name = "B"
        assert customer.change_status is ChangeStatus.ADDED

        customer.name = "A"
        assert customer.change_status is ChangeStatus.ADDED

    def test_non_field_attribute_is_not_tracked(self):
        customer = as_trackable(Customer(name="A"))
        customer.note = "scratch"

        assert customer.change_status is ChangeStatus.UNCHANGED
        assert customer.note == "scratch"


class TestDeleteUndelete:
    """delete() and undelete() are inverse."""

    def test_delete_marks_deleted_and_fires(self, recorder):
        customer = as_trackable(Customer(name="A"))
        customer.on_status_changed(recorder)

        assert customer.delete() is True
        assert customer.change_status is ChangeStatus.DELETED
        assert len(recorder.events) == 1

    def test_second_delete_is_noop(self):
        customer = as_trackable(Customer(name="A"))
        customer.delete()

        assert customer.delete() is False

    def test_write_to_deleted_object_raises(self):
        customer = as_trackable(Customer(name="A"))
        customer.delete()

        with pytest.raises(InvalidStateError):
            customer.name = "B"
        assert customer.name == "A"

    def test_undelete_restores_changed_status_and_originals(self):
        customer = as_trackable(Customer(name="A"))
        customer.name = "B"
        customer.delete()

        assert customer.undelete() is True
        assert customer.change_status is ChangeStatus.CHANGED
        assert dict(customer.original_values) == {"name": "A"}

    def test_undelete_of_unchanged_object(self):
        customer = as_trackable(Customer(name="A"))
        customer.delete()
        customer.undelete()

        assert customer.change_status is ChangeStatus.UNCHANGED

    def test_undelete_when_not_deleted_is_noop(self):
        customer = as_trackable(Customer(name="A"))

        assert customer.undelete() is False
        assert customer.change_status is ChangeStatus.UNCHANGED


class TestAcceptReject:
    """Checkpoint handling."""

    def test_accept_makes_current_values_original(self):
        customer = as_trackable(Customer(name="A"))
        customer.name = "B"
        customer.accept_changes()

        assert customer.change_status is ChangeStatus.UNCHANGED
        assert dict(customer.original_values) == {}
        assert customer.get_original_value("name") == "B"

    def test_accept_is_idempotent(self, recorder):
        customer = as_trackable(Customer(name="A"))
        customer.name = "B"
        customer.on_status_changed(recorder)

        customer.accept_changes()
        customer.accept_changes()

        assert customer.change_status is ChangeStatus.UNCHANGED
        assert len(recorder.events) == 1

    def test_accept_of_added_object_makes_it_unchanged(self):
        customer = as_trackable(Customer(name="A"), status=ChangeStatus.ADDED)
        customer.accept_changes()

        assert customer.change_status is ChangeStatus.UNCHANGED

    def test_accept_on_deleted_object_raises(self):
        customer = as_trackable(Customer(name="A"))
        customer.delete()

        with pytest.raises(InvalidStateError):
            customer.accept_changes()
        assert customer.change_status is ChangeStatus.DELETED

    def test_reject_restores_original_values(self):
        customer = as_trackable(Customer(name="A", age=30))
        customer.name = "B"
        customer.age = 31
        customer.reject_changes()

        assert customer.name == "A"
        assert customer.age == 30
        assert customer.change_status is ChangeStatus.UNCHANGED
        assert dict(customer.original_values) == {}

    def test_reject_of_deleted_object_restores_it(self):
        customer = as_trackable(Customer(name="A"))
        customer.name = "B"
        customer.delete()
        customer.reject_changes()

        assert customer.name == "A"
        assert customer.change_status is ChangeStatus.UNCHANGED

    def test_reject_of_added_object_makes_it_unchanged(self):
        customer = as_trackable(Customer(name="A"), status=ChangeStatus.ADDED)
        customer.name = "B"
        customer.reject_changes()

        assert customer.name == "A"
        assert customer.change_status is ChangeStatus.UNCHANGED


class TestQueries:
    """changed_properties and original value lookups."""

    def test_changed_properties_lists_changed_fields(self):
        customer = as_trackable(Customer(name="A", age=30))
        assert customer.changed_properties == ()

        customer.age = 31
        assert customer.changed_properties == ("age",)

    def test_changed_properties_of_added_and_deleted_is_every_field(self):
        added = as_trackable(Customer(), status=ChangeStatus.ADDED)
        deleted = as_trackable(Customer())
        deleted.delete()

        expected = ("name", "age", "address", "orders")
        assert added.changed_properties == expected
        assert deleted.changed_properties == expected

    def test_get_original_value_of_unchanged_field_is_current_value(self):
        customer = as_trackable(Customer(name="A", age=30))
        customer.name = "B"

        assert customer.get_original_value("age") == 30

    def test_get_original_value_of_unknown_field_raises(self):
        customer = as_trackable(Customer(name="A"))

        with pytest.raises(UnknownFieldError) as exc_info:
            customer.get_original_value("nickname")
        assert "nickname" in str(exc_info.value)
        assert isinstance(exc_info.value, ValueError)

    def test_get_original_value_of_child_is_plain_snapshot(self):
        customer = as_trackable(Customer(address=Address(street="Main St", city="Springfield")))
        customer.address.city = "Shelbyville"

        original = customer.get_original_value("address")

        assert type(original) is Address
        assert original == Address(street="Main St", city="Springfield")
