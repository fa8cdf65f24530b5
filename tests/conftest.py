"""
Pytest fixtures for the CLM kernel test suite.

Provides:
- Structured-logging fixtures (suite-wide configuration, log capture)
- An in-memory SQLite engine with SAVEPOINT support, one session per test
- A DeterministicClock and tenant/actor identities
- Repository and service fixtures wired to the test session
- A failing audit repository for audit-independence tests
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from clm_kernel.db.base import Base
from clm_kernel.db.engine import create_sqlite_engine
from clm_kernel.db.immutability import register_immutability_listeners
from clm_kernel.domain.clock import DeterministicClock
from clm_kernel.domain.contract import ContractType, PartyRole
from clm_kernel.domain.identifiers import UserID
from clm_kernel.domain.party import PartyType
from clm_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from clm_kernel.repositories import (
    AuditRepository,
    SqlAuditRepository,
    SqlContractRepository,
    SqlDocumentRepository,
    SqlObligationRepository,
    SqlPartyRepository,
    SqlTemplateRepository,
    SqlWorkflowRepository,
)
from clm_kernel.services import (
    AuditorService,
    ContractService,
    CreateContractRequest,
    CreatePartyRequest,
    DocumentService,
    ObligationService,
    PartyInput,
    PartyService,
    WorkflowService,
)
import clm_kernel.models  # noqa: F401  (registers tables on Base.metadata)

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture clm_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, contract_service):
            contract_service.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "contract_status_changed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("clm_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    eng = create_sqlite_engine("sqlite://")
    Base.metadata.create_all(eng)
    register_immutability_listeners()
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    sess = Session(bind=engine, expire_on_commit=False)
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Identities and time
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(EPOCH)


@pytest.fixture
def tenant() -> str:
    return TENANT


@pytest.fixture
def other_tenant() -> str:
    return OTHER_TENANT


@pytest.fixture
def actor() -> UserID:
    return UserID.new()


# =============================================================================
# Repositories and services
# =============================================================================


class FailingAuditRepository(AuditRepository):
    """Audit port whose every write fails."""

    def __init__(self):
        self.attempts = 0

    def create(self, entry):
        self.attempts += 1
        raise RuntimeError("audit store unavailable")

    def find_by_entity(self, tenant_id, entity_type, entity_id, offset, limit):
        return []

    def find_by_user(self, tenant_id, user_id, offset, limit):
        return []


@pytest.fixture
def audit_repo(session):
    return SqlAuditRepository(session)


@pytest.fixture
def auditor(audit_repo, clock):
    return AuditorService(audit_repo, clock=clock)


@pytest.fixture
def failing_audit_repo():
    return FailingAuditRepository()


@pytest.fixture
def failing_auditor(failing_audit_repo, clock):
    return AuditorService(failing_audit_repo, clock=clock)


@pytest.fixture
def contract_repo(session):
    return SqlContractRepository(session)


@pytest.fixture
def party_repo(session):
    return SqlPartyRepository(session)


@pytest.fixture
def obligation_repo(session):
    return SqlObligationRepository(session)


@pytest.fixture
def workflow_repo(session):
    return SqlWorkflowRepository(session)


@pytest.fixture
def document_repo(session):
    return SqlDocumentRepository(session)


@pytest.fixture
def template_repo(session):
    return SqlTemplateRepository(session)


@pytest.fixture
def contract_service(contract_repo, auditor, clock):
    return ContractService(contract_repo, auditor=auditor, clock=clock)


@pytest.fixture
def party_service(party_repo, auditor, clock):
    return PartyService(party_repo, auditor=auditor, clock=clock)


@pytest.fixture
def obligation_service(obligation_repo, auditor, clock):
    return ObligationService(obligation_repo, auditor=auditor, clock=clock)


@pytest.fixture
def workflow_service(workflow_repo, auditor, clock):
    return WorkflowService(workflow_repo, auditor=auditor, clock=clock)


@pytest.fixture
def document_service(document_repo, template_repo, auditor, clock):
    return DocumentService(document_repo, template_repo, auditor=auditor, clock=clock)


# =============================================================================
# Data builders
# =============================================================================


SERVICES_TYPE = ContractType(name="Master Services Agreement", code="MSA")


@pytest.fixture
def party(party_service, tenant, actor):
    """A persisted counterparty in ``tenant``."""
    return party_service.create(
        tenant,
        actor,
        CreatePartyRequest(party_type=PartyType.CORPORATION, name="Globex Corporation"),
    )


@pytest.fixture
def make_contract_request(party):
    """Factory for valid ``CreateContractRequest`` objects."""
    counter = iter(range(1, 10_000))

    def _make(**overrides) -> CreateContractRequest:
        fields = {
            "contract_number": f"CTR-{next(counter):05d}",
            "title": "Facilities maintenance",
            "contract_type": SERVICES_TYPE,
            "parties": (PartyInput(party.id, PartyRole.COUNTERPARTY, is_primary=True),),
            "value_amount": Decimal("125000.00"),
            "value_currency": "USD",
            "effective_date": EPOCH,
            "expiration_date": EPOCH + timedelta(days=365),
        }
        fields.update(overrides)
        return CreateContractRequest(**fields)

    return _make


@pytest.fixture
def draft_contract(contract_service, tenant, actor, make_contract_request):
    return contract_service.create(tenant, actor, make_contract_request())
