"""
Hypothesis-based fuzzing of the lifecycle state machines and value rules.

Properties checked:
- Contract action sequences only ever follow CONTRACT_TRANSITIONS, and a
  refused action leaves the snapshot untouched.
- Workflow step pointers never move backwards or past the last step.
- The overdue predicate is exactly "open and due before as_of".
- Amount/currency validation and pagination clamping.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

import pytest

from clm_config.schema import PaginationSettings
from clm_kernel.domain.contract import (
    CONTRACT_TRANSITIONS,
    TERMINAL_CONTRACT_STATUSES,
    ContractType,
    new_contract,
)
from clm_kernel.domain.identifiers import ContractID, PartyID, UserID
from clm_kernel.domain.obligation import (
    OPEN_OBLIGATION_STATUSES,
    ObligationStatus,
    ObligationType,
    new_obligation,
)
from clm_kernel.domain.workflow import (
    StepDefinition,
    WorkflowType,
    new_workflow,
)
from clm_kernel.exceptions import (
    InvalidTransitionError,
    StepNotOptionalError,
    ValidationError,
)
from clm_kernel.services.contract_service import build_money

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
ACTOR = UserID.new()

CONTRACT_ACTIONS = [
    "submit",
    "approve",
    "reject",
    "execute",
    "activate",
    "suspend",
    "start_renewal",
    "expire",
    "revert_to_draft",
    "terminate",
]

STEP_ACTIONS = ["approve", "reject", "skip", "complete"]


class TestContractActionFuzzing:
    """Random action sequences against the contract state machine."""

    @given(st.lists(st.sampled_from(CONTRACT_ACTIONS), max_size=30))
    @settings(max_examples=200, deadline=None)
    def test_sequences_follow_table(self, actions):
        """Every accepted action is an edge of the transition table."""
        contract = new_contract(
            tenant_id="t1",
            contract_number="CTR-FUZZ",
            title="Fuzz",
            contract_type=ContractType(name="NDA", code="NDA"),
            actor=ACTOR,
            at=T0,
        )
        for action in actions:
            before = contract
            try:
                contract = getattr(contract, action)(ACTOR, T0)
            except InvalidTransitionError:
                assert contract is before
                continue
            assert contract.status in CONTRACT_TRANSITIONS[before.status]
            assert before.status not in TERMINAL_CONTRACT_STATUSES


class TestWorkflowPointerFuzzing:
    """Random step actions never move the pointer backwards."""

    @given(
        optional_flags=st.lists(st.booleans(), min_size=1, max_size=6),
        moves=st.lists(
            st.tuples(st.integers(min_value=0, max_value=5), st.sampled_from(STEP_ACTIONS)),
            max_size=20,
        ),
    )
    @settings(max_examples=200, deadline=None)
    def test_pointer_bounded_and_monotonic(self, optional_flags, moves):
        """The step pointer only moves forward and stays in range."""
        wf = new_workflow(
            tenant_id="t1",
            contract_id=ContractID.new(),
            workflow_type=WorkflowType.APPROVAL,
            steps=[
                StepDefinition(i, f"Step {i}", is_optional=flag)
                for i, flag in enumerate(optional_flags, start=1)
            ],
            actor=ACTOR,
            at=T0,
        )
        for index, action in moves:
            step = wf.steps[index % len(wf.steps)]
            try:
                acted = getattr(step, action)(ACTOR, T0)
            except (InvalidTransitionError, StepNotOptionalError):
                continue
            pointer = wf.current_step
            wf = wf.with_step(acted).advance_to_next_step(ACTOR, T0)
            assert pointer <= wf.current_step <= len(wf.steps)
            assert wf.step_by_number(step.step_number).status == acted.status


class TestOverdueFuzzing:
    """is_overdue agrees with its definition for any instant."""

    @given(
        status=st.sampled_from(list(ObligationStatus)),
        due_offset=st.integers(min_value=-10_000, max_value=10_000),
        as_of_offset=st.integers(min_value=-10_000, max_value=10_000),
    )
    def test_definition(self, status, due_offset, as_of_offset):
        """Overdue means open and due before as_of."""
        due = T0 + timedelta(minutes=due_offset)
        as_of = T0 + timedelta(minutes=as_of_offset)
        ob = replace(
            new_obligation(
                tenant_id="t1",
                contract_id=ContractID.new(),
                responsible_party=PartyID.new(),
                title="Fuzz",
                obligation_type=ObligationType.PAYMENT,
                due_date=due,
                actor=ACTOR,
                at=T0,
            ),
            status=status,
        )
        assert ob.is_overdue(as_of) == (status in OPEN_OBLIGATION_STATUSES and due < as_of)


class TestValueFuzzing:
    """Amount validation and pagination clamping."""

    @given(
        amount=st.decimals(
            min_value=Decimal("-999999999.99"),
            max_value=Decimal("999999999.99"),
            places=2,
            allow_nan=False,
            allow_infinity=False,
        ),
        currency=st.sampled_from(["USD", "EUR", "GBP", "JPY"]),
    )
    def test_valid_money(self, amount, currency):
        """Two-decimal amounts with ISO codes are accepted unchanged."""
        money = build_money(amount, currency)
        assert money.amount == amount
        assert money.currency == currency

    @given(st.floats(allow_nan=False, allow_infinity=False))
    def test_floats_rejected(self, amount):
        """Binary floats are never accepted as amounts."""
        with pytest.raises(ValidationError):
            build_money(amount, "USD")

    @given(
        currency=st.text(
            alphabet=st.characters(min_codepoint=32, max_codepoint=126), min_size=1, max_size=5,
        ),
    )
    def test_currency_codes(self, currency):
        """Only three uppercase ASCII letters make a currency code."""
        valid = len(currency) == 3 and currency.isascii() and currency.isalpha() and (
            currency.isupper()
        )
        if valid:
            assert build_money(Decimal("1"), currency).currency == currency
        else:
            with pytest.raises(ValidationError):
                build_money(Decimal("1"), currency)

    @given(
        offset=st.one_of(st.none(), st.integers(min_value=-1000, max_value=10**6)),
        limit=st.one_of(st.none(), st.integers(min_value=-1000, max_value=10**6)),
    )
    def test_pagination_bounds(self, offset, limit):
        """Normalized pages always fall inside the configured bounds."""
        page = PaginationSettings()
        normalized_offset, normalized_limit = page.normalize(offset, limit)
        assert normalized_offset >= 0
        assert 1 <= normalized_limit <= page.max_limit
