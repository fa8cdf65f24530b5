"""PartyService: creation, partial edits, activation and search."""

import pytest

from clm_kernel.domain.identifiers import PartyID
from clm_kernel.domain.party import PartyType, RiskLevel
from clm_kernel.domain.values import Address
from clm_kernel.exceptions import PartyNotFoundError, ValidationError
from clm_kernel.services import CreatePartyRequest, UpdatePartyRequest


def _create(service, tenant, actor, name, **fields):
    party_type = fields.pop("party_type", PartyType.CORPORATION)
    return service.create(tenant, actor, CreatePartyRequest(party_type, name, **fields))


class TestCreateParty:
    """create() validation."""

    def test_defaults(self, party):
        """New parties are active with low risk."""
        assert party.is_active
        assert party.risk_level == RiskLevel.LOW
        assert party.risk_score == 0

    def test_address_round_trip(self, party_service, tenant, actor):
        """The address survives storage."""
        address = Address(street1="1 Main St", city="Springfield", country="US")
        created = _create(party_service, tenant, actor, "Initech", address=address)
        assert party_service.get(tenant, created.id).address == address

    @pytest.mark.parametrize(
        "name,fields,field",
        [
            ("", {}, "name"),
            ("Acme", {"party_type": None}, "party_type"),
            ("Acme", {"risk_score": -1}, "risk_score"),
        ],
    )
    def test_validation(self, party_service, tenant, actor, name, fields, field):
        """Blank names, missing types and negative scores are refused."""
        with pytest.raises(ValidationError) as exc_info:
            _create(party_service, tenant, actor, name, **fields)
        assert exc_info.value.field == field


class TestUpdateParty:
    """Partial edits keep unspecified fields."""

    def test_partial_update(self, party_service, party, tenant, actor):
        """Only supplied fields change."""
        updated = party_service.update(
            tenant, actor, party.id, UpdatePartyRequest(email="legal@globex.example"),
        )
        assert updated.email == "legal@globex.example"
        assert updated.name == party.name

    def test_score_only_keeps_level(self, party_service, party, tenant, actor):
        """Changing the score keeps the risk level."""
        party_service.update(
            tenant, actor, party.id, UpdatePartyRequest(risk_level=RiskLevel.HIGH),
        )
        updated = party_service.update(
            tenant, actor, party.id, UpdatePartyRequest(risk_score=70),
        )
        assert updated.risk_level == RiskLevel.HIGH
        assert updated.risk_score == 70

    def test_blank_name_rejected(self, party_service, party, tenant, actor):
        """A blank name is refused on update."""
        with pytest.raises(ValidationError):
            party_service.update(tenant, actor, party.id, UpdatePartyRequest(name=" "))

    def test_missing(self, party_service, tenant, actor):
        """Updating an unknown party raises PartyNotFoundError."""
        with pytest.raises(PartyNotFoundError):
            party_service.update(tenant, actor, PartyID.new(), UpdatePartyRequest(name="x"))


class TestActivation:
    """Deactivated parties are hidden from default listings."""

    def test_deactivate_and_activate(self, party_service, party, tenant, actor):
        """Deactivation hides the party until it is activated."""
        assert party_service.deactivate(tenant, actor, party.id) is True
        assert party_service.list(tenant) == []
        assert [p.id for p in party_service.list(tenant, include_inactive=True)] == [party.id]
        assert not party_service.get(tenant, party.id).is_active

        assert party_service.activate(tenant, actor, party.id) is True
        assert [p.id for p in party_service.list(tenant)] == [party.id]

    def test_unknown_party(self, party_service, tenant, actor):
        """Deactivating an unknown party raises PartyNotFoundError."""
        with pytest.raises(PartyNotFoundError):
            party_service.deactivate(tenant, actor, PartyID.new())


class TestPartySearch:
    """Listing is ordered by name; search matches name or legal name."""

    def test_ordering_and_search(self, party_service, tenant, actor):
        """Names sort alphabetically; search also checks legal names."""
        _create(party_service, tenant, actor, "Umbrella", legal_name="Umbrella Corp Ltd")
        _create(party_service, tenant, actor, "Acme", party_type=PartyType.PARTNERSHIP)
        _create(party_service, tenant, actor, "Hooli", party_type=PartyType.INDIVIDUAL)

        assert [p.name for p in party_service.list(tenant)] == ["Acme", "Hooli", "Umbrella"]
        assert [p.name for p in party_service.list(tenant, search="corp")] == ["Umbrella"]
        assert party_service.count(tenant, search="o") == 2
        assert party_service.count(tenant) == 3
