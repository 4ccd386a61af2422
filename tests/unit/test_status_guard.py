"""
Unit tests for purchase order lifecycle rules.
"""
import itertools

import pytest

from ordering.errors import PreconditionFailed, ValidationError
from ordering.status_guard import (
    ALL_STATUSES,
    ALLOWED_TRANSITIONS,
    DELETE_REJECTED_MESSAGE,
    allowed_next_statuses,
    can_delete,
    can_edit_line_items,
    can_void,
    check_transition,
    ensure_deletable,
    ensure_line_items_editable,
    ensure_voidable,
    is_transition_allowed,
    require_known_status,
)

LEGAL_PAIRS = {
    ("draft", "draft"), ("draft", "pending"),
    ("pending", "pending"), ("pending", "approved"), ("pending", "cancelled"),
    ("approved", "approved"), ("approved", "delivered"),
    ("delivered", "delivered"),
    ("cancelled", "cancelled"),
    ("voided", "voided"),
}


@pytest.mark.unit
class TestTransitions:
    """Tests for check_transition() and the transition table."""

    def test_pending_to_approved_allowed(self):
        """Test the approval step passes the guard."""
        check_transition("pending", "approved")
        assert is_transition_allowed("pending", "approved")

    def test_approved_to_pending_rejected(self):
        """Test an approved order cannot go back to pending."""
        with pytest.raises(PreconditionFailed, match="from 'approved' to 'pending'"):
            check_transition("approved", "pending")

    @pytest.mark.parametrize("current,requested", sorted(LEGAL_PAIRS))
    def test_legal_pairs_pass(self, current, requested):
        """Test every pair in the table is accepted."""
        check_transition(current, requested)

    @pytest.mark.parametrize(
        "current,requested",
        sorted(set(itertools.product(ALL_STATUSES, repeat=2)) - LEGAL_PAIRS),
    )
    def test_every_other_pair_rejected(self, current, requested):
        """Test every pair outside the table is refused."""
        assert not is_transition_allowed(current, requested)
        with pytest.raises(PreconditionFailed):
            check_transition(current, requested)

    def test_table_matches_lifecycle(self):
        """Test the exported table holds exactly the legal pairs."""
        pairs = {(src, dst) for src, dsts in ALLOWED_TRANSITIONS.items() for dst in dsts}
        assert pairs == LEGAL_PAIRS

    def test_transition_to_voided_points_at_void(self):
        """Test status edits cannot void; the message names the void operation."""
        with pytest.raises(PreconditionFailed, match="Use void instead"):
            check_transition("approved", "voided")

    def test_rejection_lists_allowed_statuses(self):
        """Test the reason includes what the order could move to."""
        with pytest.raises(PreconditionFailed, match="Allowed: pending, approved, cancelled"):
            check_transition("pending", "delivered")

    def test_allowed_next_statuses_in_lifecycle_order(self):
        """Test allowed_next_statuses() ordering."""
        assert allowed_next_statuses("pending") == ["pending", "approved", "cancelled"]
        assert allowed_next_statuses("delivered") == ["delivered"]
        assert allowed_next_statuses("nonsense") == []


@pytest.mark.unit
class TestStatusValues:
    """Tests for rejecting unknown and legacy statuses."""

    @pytest.mark.parametrize("legacy", ["sent", "received", "completed"])
    def test_deprecated_status_rejected(self, legacy):
        """Test legacy statuses are refused rather than mapped."""
        with pytest.raises(ValidationError) as exc_info:
            require_known_status(legacy)
        assert exc_info.value.issues[0].code == "deprecated_status"

    def test_unknown_status_rejected(self):
        """Test an arbitrary string is an invalid status."""
        with pytest.raises(ValidationError) as exc_info:
            check_transition("draft", "shipped")
        assert exc_info.value.issues[0].code == "invalid_status"

    def test_unknown_current_status_rejected(self):
        """Test a corrupt stored status is reported, not treated as terminal."""
        with pytest.raises(ValidationError) as exc_info:
            check_transition("completed", "draft")
        assert exc_info.value.issues[0].field == "current_status"


@pytest.mark.unit
class TestDeleteAndVoid:
    """Tests for the delete / void rules."""

    def test_draft_can_be_deleted_not_voided(self):
        """Test a draft is deleted, never voided."""
        assert can_delete("draft")
        assert not can_void("draft")
        ensure_deletable("draft")
        with pytest.raises(PreconditionFailed, match="Delete the draft instead"):
            ensure_voidable("draft")

    @pytest.mark.parametrize("status", ["pending", "approved", "delivered", "cancelled"])
    def test_non_draft_voided_not_deleted(self, status):
        """Test every non-draft, non-voided order is voided instead of deleted."""
        assert can_void(status)
        assert not can_delete(status)
        ensure_voidable(status)
        with pytest.raises(PreconditionFailed) as exc_info:
            ensure_deletable(status)
        assert str(exc_info.value) == (
            "Only draft purchase orders can be deleted. Use void instead for non-draft orders."
        )

    def test_delete_message_verbatim(self):
        """Test the delete rejection message text."""
        assert DELETE_REJECTED_MESSAGE == (
            "Only draft purchase orders can be deleted. Use void instead for non-draft orders."
        )

    def test_voided_cannot_be_voided_or_deleted(self):
        """Test a voided order is final."""
        assert not can_void("voided")
        assert not can_delete("voided")
        with pytest.raises(PreconditionFailed, match="already voided"):
            ensure_voidable("voided")

    @pytest.mark.parametrize("status", ALL_STATUSES)
    def test_delete_and_void_exclusive(self, status):
        """Test no status permits both delete and void."""
        assert not (can_delete(status) and can_void(status))


@pytest.mark.unit
class TestLineItemEditing:
    """Tests for the editable-status rule."""

    @pytest.mark.parametrize("status", ["draft", "pending"])
    def test_editable(self, status):
        """Test line items can change while draft or pending."""
        assert can_edit_line_items(status)
        ensure_line_items_editable(status)

    @pytest.mark.parametrize("status", ["approved", "delivered", "cancelled", "voided"])
    def test_locked(self, status):
        """Test line items are locked once approved or retired."""
        assert not can_edit_line_items(status)
        with pytest.raises(PreconditionFailed):
            ensure_line_items_editable(status)
