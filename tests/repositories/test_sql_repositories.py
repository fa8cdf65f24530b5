"""
SQL adapters: tenant-scoped conditional updates, fresh reads and the
append-only audit table.
"""

from dataclasses import replace
from datetime import timedelta

import pytest
from sqlalchemy import select, text

from clm_kernel.domain.audit import AuditAction, AuditCategory, new_audit_entry
from clm_kernel.domain.document import DocumentType, new_document
from clm_kernel.domain.identifiers import ContractID, PartyID, UserID
from clm_kernel.domain.obligation import ObligationStatus, ObligationType, new_obligation
from clm_kernel.domain.party import PartyType, new_party
from clm_kernel.exceptions import (
    ContractNotFoundError,
    ImmutabilityViolationError,
    PartyNotFoundError,
    PersistenceError,
)
from clm_kernel.models import (
    AuditEntryModel,
    DocumentModel,
    ObligationModel,
    WorkflowInstanceModel,
)

from conftest import EPOCH, TENANT

ACTOR = UserID.new()


def _party(name="Wayne Enterprises"):
    return new_party(
        tenant_id=TENANT,
        party_type=PartyType.CORPORATION,
        name=name,
        actor=ACTOR,
        at=EPOCH,
    )


class TestConditionalUpdates:
    """Updates match on tenant and id; zero rows means not found."""

    def test_update_missing_party(self, party_repo):
        """Updating a party that was never stored raises PartyNotFoundError."""
        with pytest.raises(PartyNotFoundError):
            party_repo.update(_party())

    def test_set_active_reports_match(self, party_repo):
        """set_active reports whether a row matched."""
        party = party_repo.create(_party())
        assert party_repo.set_active(TENANT, party.id, False, ACTOR, EPOCH) is True
        assert party_repo.set_active("tenant-z", party.id, True, ACTOR, EPOCH) is False
        assert party_repo.set_active(TENANT, PartyID.new(), True, ACTOR, EPOCH) is False

    def test_update_contract_from_other_tenant(self, contract_repo, draft_contract):
        """An update carrying another tenant's id finds nothing."""
        foreign = replace(draft_contract, tenant_id="tenant-z", title="Hijacked")
        with pytest.raises(ContractNotFoundError):
            contract_repo.update(foreign)

    def test_obligation_status_update_is_conditional(
        self, obligation_repo, draft_contract, party,
    ):
        """A status update on a stored obligation matches one row."""
        ob = obligation_repo.create(
            new_obligation(
                tenant_id=TENANT,
                contract_id=draft_contract.id,
                responsible_party=party.id,
                title="Deliver hardware",
                obligation_type=ObligationType.DELIVERY,
                due_date=EPOCH + timedelta(days=3),
                actor=ACTOR,
                at=EPOCH,
            )
        )
        done = ob.complete(ACTOR, EPOCH)
        matched = obligation_repo.update_status(
            TENANT, ob.id, done.status, ACTOR, EPOCH, completed_date=EPOCH,
        )
        assert matched is True
        assert obligation_repo.find_by_id(TENANT, ob.id).status == ObligationStatus.COMPLETED

    def test_sign_only_once(self, document_repo, draft_contract):
        """A signed document cannot be signed again or deleted."""
        doc = document_repo.create(
            new_document(
                tenant_id=TENANT,
                contract_id=draft_contract.id,
                document_type=DocumentType.AMENDMENT,
                title="Amendment 1",
                file_path="a1.pdf",
                actor=ACTOR,
                at=EPOCH,
            )
        )
        assert document_repo.mark_signed(TENANT, doc.id, ACTOR, EPOCH) is True
        assert document_repo.mark_signed(TENANT, doc.id, ACTOR, EPOCH) is False
        assert document_repo.delete(TENANT, doc.id) is False


class TestReferenceChecks:
    """create() resolves referenced contracts and parties inside the tenant."""

    def _obligation(self, contract_id, party_id, tenant_id=TENANT):
        return new_obligation(
            tenant_id=tenant_id,
            contract_id=contract_id,
            responsible_party=party_id,
            title="Insurance renewal",
            obligation_type=ObligationType.COMPLIANCE,
            due_date=EPOCH + timedelta(days=10),
            actor=ACTOR,
            at=EPOCH,
        )

    def test_unknown_contract(self, obligation_repo, party):
        """A dangling contract id is reported before anything is written."""
        with pytest.raises(ContractNotFoundError):
            obligation_repo.create(self._obligation(ContractID.new(), party.id))
        assert obligation_repo.count_overdue(TENANT, EPOCH + timedelta(days=365)) == 0

    def test_contract_of_other_tenant(self, obligation_repo, draft_contract, party):
        """A contract id from another tenant is treated as missing."""
        with pytest.raises(ContractNotFoundError):
            obligation_repo.create(
                self._obligation(draft_contract.id, party.id, tenant_id="tenant-z"),
            )

    def test_unknown_responsible_party(self, obligation_repo, draft_contract):
        """A dangling responsible party id is reported."""
        with pytest.raises(PartyNotFoundError):
            obligation_repo.create(self._obligation(draft_contract.id, PartyID.new()))

    def test_contract_party_of_other_tenant(self, contract_repo, draft_contract):
        """A contract copied into another tenant cannot keep the original parties."""
        foreign = replace(
            draft_contract, id=ContractID.new(), tenant_id="tenant-z", contract_number="Z-1",
        )
        with pytest.raises(PartyNotFoundError):
            contract_repo.create(foreign)

    def test_foreign_keys_declared(self):
        """Referencing columns carry foreign keys to their parent tables."""
        def targets(model, column):
            return {fk.target_fullname for fk in model.__table__.c[column].foreign_keys}

        assert targets(ObligationModel, "contract_id") == {"clm_contracts.id"}
        assert targets(ObligationModel, "responsible_party_id") == {"clm_parties.id"}
        assert targets(DocumentModel, "contract_id") == {"clm_contracts.id"}
        assert targets(WorkflowInstanceModel, "contract_id") == {"clm_contracts.id"}


class TestFreshReads:
    """Reads reflect bulk updates made outside the identity map."""

    def test_find_after_bulk_update(self, session, party_repo):
        """find_by_id sees a bulk update to a cached row."""
        party = party_repo.create(_party())
        party_repo.find_by_id(TENANT, party.id)
        party_repo.set_active(TENANT, party.id, False, ACTOR, EPOCH)
        assert party_repo.find_by_id(TENANT, party.id).is_active is False


class TestPersistenceErrors:
    """Driver errors surface as PersistenceError."""

    def test_duplicate_primary_key(self, session, party_repo):
        """A duplicate insert raises PersistenceError, not IntegrityError."""
        party = party_repo.create(_party())
        session.expunge_all()
        with pytest.raises(PersistenceError) as exc_info:
            party_repo.create(party)
        assert exc_info.value.kind.value == "INTERNAL"


class TestAuditImmutability:
    """Audit rows cannot be changed or removed through the ORM."""

    @pytest.fixture
    def stored_entry(self, session, audit_repo):
        entry = new_audit_entry(
            tenant_id=TENANT,
            entity_type="contract",
            entity_id=ContractID.new(),
            action=AuditAction.CREATED,
            category=AuditCategory.CONTRACT,
            user_id=ACTOR,
            timestamp=EPOCH,
            after={"title": "x"},
        )
        audit_repo.create(entry)
        return session.execute(
            select(AuditEntryModel).where(AuditEntryModel.id == entry.id.value)
        ).scalar_one()

    def test_update_blocked(self, session, stored_entry):
        """Changing a flushed audit row raises."""
        stored_entry.user_name = "tampered"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, session, stored_entry):
        """Deleting a flushed audit row raises."""
        session.delete(stored_entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_entry_round_trip(self, session, audit_repo, stored_entry):
        """A stored entry reads back with its checksum intact."""
        found = audit_repo.find_by_entity(
            TENANT, "contract", stored_entry.entity_id, 0, 10,
        )
        assert len(found) == 1
        assert found[0].new_values == {"data": {"title": "x"}}
        assert found[0].verify()
        assert session.execute(text("SELECT count(*) FROM clm_audit_entries")).scalar() == 1
