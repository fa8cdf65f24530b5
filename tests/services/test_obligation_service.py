"""ObligationService: creation, edits, status changes and due-date queries."""

from datetime import timedelta
from decimal import Decimal

import pytest

from clm_config.schema import LifecycleSettings
from clm_kernel.domain.identifiers import ObligationID
from clm_kernel.domain.obligation import (
    Frequency,
    ObligationStatus,
    ObligationType,
)
from clm_kernel.exceptions import (
    InvalidTransitionError,
    ObligationClosedError,
    ObligationNotFoundError,
    ValidationError,
)
from clm_kernel.services import (
    CreateObligationRequest,
    ObligationService,
    UpdateObligationRequest,
)

from conftest import EPOCH


@pytest.fixture
def make_obligation(obligation_service, draft_contract, party, tenant, actor):
    def _make(due_in_days: float = 30, **fields):
        request = CreateObligationRequest(
            contract_id=draft_contract.id,
            responsible_party=party.id,
            title=fields.pop("title", "Monthly invoice"),
            due_date=EPOCH + timedelta(days=due_in_days),
            obligation_type=fields.pop("obligation_type", ObligationType.PAYMENT),
            **fields,
        )
        return obligation_service.create(tenant, actor, request)

    return _make


class TestCreateObligation:
    """create() validation and defaults."""

    def test_defaults(self, make_obligation, draft_contract):
        """New obligations are pending, one-off, with the default reminder."""
        ob = make_obligation(amount=Decimal("500.00"), currency="USD")
        assert ob.status == ObligationStatus.PENDING
        assert ob.reminder_days == 7
        assert ob.frequency == Frequency.ONCE
        assert ob.contract_id == draft_contract.id
        assert ob.amount.amount == Decimal("500.00")

    def test_reminder_default_from_settings(
        self, obligation_repo, auditor, clock, draft_contract, party, tenant, actor,
    ):
        """The reminder default comes from lifecycle settings."""
        service = ObligationService(
            obligation_repo,
            auditor=auditor,
            clock=clock,
            lifecycle=LifecycleSettings(default_reminder_days=14),
        )
        ob = service.create(
            tenant,
            actor,
            CreateObligationRequest(
                contract_id=draft_contract.id,
                responsible_party=party.id,
                title="Insurance certificate",
                due_date=EPOCH + timedelta(days=60),
                obligation_type=ObligationType.COMPLIANCE,
            ),
        )
        assert ob.reminder_days == 14

    @pytest.mark.parametrize(
        "fields,field",
        [
            ({"title": ""}, "title"),
            ({"reminder_days": -1}, "reminder_days"),
            ({"amount": Decimal("10"), "currency": ""}, "value_currency"),
        ],
    )
    def test_validation(self, make_obligation, fields, field):
        """Blank titles, negative reminders and currency-less amounts are refused."""
        with pytest.raises(ValidationError) as exc_info:
            make_obligation(**fields)
        assert exc_info.value.field == field

    def test_missing_due_date(
        self, obligation_service, draft_contract, party, tenant, actor,
    ):
        """A due date is required."""
        request = CreateObligationRequest(
            contract_id=draft_contract.id,
            responsible_party=party.id,
            title="No date",
            due_date=None,
            obligation_type=ObligationType.DELIVERY,
        )
        with pytest.raises(ValidationError) as exc_info:
            obligation_service.create(tenant, actor, request)
        assert exc_info.value.field == "due_date"

    def test_listing(self, obligation_service, make_obligation, draft_contract, tenant):
        """Obligations list and count under their contract."""
        make_obligation(10)
        make_obligation(20)
        listed = obligation_service.list_by_contract(tenant, draft_contract.id)
        assert len(listed) == 2
        assert obligation_service.count_by_contract(tenant, draft_contract.id) == 2


class TestObligationStatus:
    """Status actions and edit locking."""

    def test_complete_stamps_date(self, obligation_service, make_obligation, tenant, actor, clock):
        """Completion stores the clock's date."""
        ob = make_obligation()
        clock.advance(days=3)
        done = obligation_service.complete(tenant, actor, ob.id)
        assert done.status == ObligationStatus.COMPLETED
        assert done.completed_date == EPOCH + timedelta(days=3)
        assert obligation_service.get(tenant, ob.id).status == ObligationStatus.COMPLETED

    def test_in_progress_then_waive(self, obligation_service, make_obligation, tenant, actor):
        """Work in progress can still be waived."""
        ob = make_obligation()
        obligation_service.mark_in_progress(tenant, actor, ob.id)
        waived = obligation_service.waive(tenant, actor, ob.id)
        assert waived.status == ObligationStatus.WAIVED

    def test_terminal_cannot_move(self, obligation_service, make_obligation, tenant, actor):
        """A cancelled obligation cannot be completed."""
        ob = make_obligation()
        obligation_service.cancel(tenant, actor, ob.id)
        with pytest.raises(InvalidTransitionError):
            obligation_service.complete(tenant, actor, ob.id)

    def test_terminal_cannot_be_edited(
        self, obligation_service, make_obligation, tenant, actor,
    ):
        """A completed obligation cannot be edited."""
        ob = make_obligation()
        obligation_service.complete(tenant, actor, ob.id)
        with pytest.raises(ObligationClosedError):
            obligation_service.update(tenant, actor, ob.id, UpdateObligationRequest(notes="x"))

    def test_partial_update(self, obligation_service, make_obligation, tenant, actor):
        """Only supplied fields change."""
        ob = make_obligation()
        updated = obligation_service.update(
            tenant, actor, ob.id, UpdateObligationRequest(notes="Paid by wire", reminder_days=3),
        )
        assert updated.notes == "Paid by wire"
        assert updated.reminder_days == 3
        assert updated.title == ob.title

    def test_status_change_logged(
        self, obligation_service, make_obligation, tenant, actor, captured_logs,
    ):
        """Status changes are logged with the new status."""
        ob = make_obligation()
        obligation_service.complete(tenant, actor, ob.id)
        records = [r for r in captured_logs() if r["message"] == "obligation_status_changed"]
        assert records and records[-1]["to_status"] == "COMPLETED"

    def test_missing(self, obligation_service, tenant, actor):
        """Acting on an unknown obligation raises ObligationNotFoundError."""
        with pytest.raises(ObligationNotFoundError):
            obligation_service.complete(tenant, actor, ObligationID.new())


class TestDueDateQueries:
    """Overdue and due-soon are derived from the clock, never stored."""

    def test_overdue(self, obligation_service, make_obligation, tenant, actor, clock):
        """Only open obligations past due are overdue; status is untouched."""
        early = make_obligation(1)
        make_obligation(30)
        closed = make_obligation(2)
        obligation_service.complete(tenant, actor, closed.id)

        clock.advance(days=5)
        overdue = obligation_service.find_overdue(tenant)
        assert [o.id for o in overdue] == [early.id]
        assert obligation_service.count_overdue(tenant) == 1
        assert obligation_service.get(tenant, early.id).status == ObligationStatus.PENDING

    def test_nothing_overdue_at_due_instant(self, obligation_service, make_obligation, tenant, clock):
        """At the due instant nothing is overdue yet."""
        make_obligation(1)
        clock.advance(days=1)
        assert obligation_service.find_overdue(tenant) == []

    def test_due_soon_respects_reminder_window(
        self, obligation_service, make_obligation, tenant,
    ):
        """Each obligation's own reminder window decides due-soon."""
        inside = make_obligation(5, reminder_days=7)
        make_obligation(5, reminder_days=2)
        make_obligation(40, reminder_days=60)

        due_soon = obligation_service.find_due_soon(tenant)
        assert [o.id for o in due_soon] == [inside.id]

    def test_due_soon_window_argument(self, obligation_service, make_obligation, tenant):
        """An explicit window overrides the reminder days."""
        far = make_obligation(40, reminder_days=60)
        found = obligation_service.find_due_soon(tenant, within_days=45)
        assert [o.id for o in found] == [far.id]

    def test_due_soon_negative_window(self, obligation_service, tenant):
        """A negative window is refused."""
        with pytest.raises(ValidationError):
            obligation_service.find_due_soon(tenant, within_days=-1)
