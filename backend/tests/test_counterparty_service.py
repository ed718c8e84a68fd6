"""
Counterparty (B2B pharmacy) directory tests.

Verifies:
- Registration field rules and messages
- Names are unique (sales resolve a pharmacy by exact name)
- Partial edits keep the other stored fields
- A registered pharmacy can be billed as a B2B customer
"""

import pytest

from pharmapos.services.catalog_service import CounterpartyDirectory
from pharmapos.services.counterparty_service import (
    CounterpartyNotFound,
    CounterpartyValidationError,
    DuplicateCounterparty,
    get_counterparty,
    list_counterparties,
    register_counterparty,
    remove_counterparty,
    update_counterparty,
)


def registration(**overrides) -> dict:
    data = {
        "pharmacyName": "Himal Drugs",
        "registrationNumber": "100234",
        "phone": "9801112223",
        "email": "himal@drugs.local",
        "address": "Lakeside-6, Pokhara",
        "ownerName": "Gita Gurung",
    }
    data.update(overrides)
    return data


class TestRegister:

    def test_register(self, seeded_store):
        entry = register_counterparty(seeded_store, registration(), registered_by="Admin")

        record = seeded_store.get(f"pharmacyDetailsList/{entry.id}")
        assert record["pharmacyName"] == "Himal Drugs"
        assert record["registeredBy"] == "Admin"
        assert record["createdAt"].endswith("Z")
        assert entry.owner_name == "Gita Gurung"

    def test_values_are_trimmed(self, store):
        entry = register_counterparty(store, registration(pharmacyName="  Himal Drugs "))
        assert entry.pharmacy_name == "Himal Drugs"

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"phone": ""}, "Please fill out all fields."),
            ({"pharmacyName": "Himal Drugs 2"}, "Pharmacy name must be alphabetic and up to 200 characters."),
            ({"pharmacyName": "H" * 201}, "Pharmacy name must be alphabetic and up to 200 characters."),
            ({"registrationNumber": "REG-1"}, "Registration number must be numeric and up to 15 digits."),
            ({"registrationNumber": "1" * 16}, "Registration number must be numeric and up to 15 digits."),
            ({"phone": "98011122234"}, "Contact number must be numeric and up to 10 digits."),
            ({"email": "himal.drugs.local"}, "Please enter a valid email address."),
            ({"address": "Lakeside #6"},
             "Address can contain letters, numbers, spaces, commas, periods, hyphens (max 200 chars)."),
            ({"ownerName": "Gita\tGurung"}, "Owner name must be alphabetic and up to 200 characters."),
        ],
    )
    def test_field_rules(self, store, overrides, message):
        with pytest.raises(CounterpartyValidationError) as exc:
            register_counterparty(store, registration(**overrides))
        assert str(exc.value) == message
        assert store.get("pharmacyDetailsList") == {}

    def test_missing_field(self, store):
        data = registration()
        data.pop("email")
        with pytest.raises(CounterpartyValidationError):
            register_counterparty(store, data)

    def test_body_must_be_object(self, store):
        with pytest.raises(CounterpartyValidationError):
            register_counterparty(store, ["Himal Drugs"])

    def test_duplicate_name_rejected(self, seeded_store):
        with pytest.raises(DuplicateCounterparty):
            register_counterparty(seeded_store, registration(pharmacyName="City Pharmacy"))
        assert len(seeded_store.get("pharmacyDetailsList")) == 2

    def test_registered_pharmacy_resolves_for_billing(self, seeded_store):
        register_counterparty(seeded_store, registration())
        directory = CounterpartyDirectory(seeded_store).load()
        assert directory.count() == 3
        assert directory.resolve("Himal Drugs").registration_number == "100234"


class TestListAndEdit:

    def test_list_in_key_order(self, seeded_store):
        assert [e.id for e in list_counterparties(seeded_store)] == ["ph-city", "ph-valley"]

    def test_search_matches_any_field(self, seeded_store):
        assert [e.id for e in list_counterparties(seeded_store, "lalitpur")] == ["ph-valley"]
        assert [e.id for e in list_counterparties(seeded_store, "REG-001")] == ["ph-city"]
        assert list_counterparties(seeded_store, "nowhere") == []

    def test_partial_update_keeps_other_fields(self, seeded_store):
        entry = update_counterparty(seeded_store, "ph-city", {"phone": "9811111111"})
        assert entry.phone == "9811111111"
        assert entry.owner_name == "Ram Sharma"
        assert seeded_store.get("pharmacyDetailsList/ph-city/registrationNumber") == "REG-001"

    def test_update_validates_given_fields(self, seeded_store):
        with pytest.raises(CounterpartyValidationError):
            update_counterparty(seeded_store, "ph-city", {"phone": "call me"})
        with pytest.raises(CounterpartyValidationError):
            update_counterparty(seeded_store, "ph-city", {"unknown": "x"})

    def test_rename_to_existing_name_rejected(self, seeded_store):
        with pytest.raises(DuplicateCounterparty):
            update_counterparty(seeded_store, "ph-city", {"pharmacyName": "Valley Meds"})
        # Keeping its own name is not a conflict
        update_counterparty(seeded_store, "ph-city", {"pharmacyName": "City Pharmacy"})

    def test_update_missing(self, seeded_store):
        with pytest.raises(CounterpartyNotFound):
            update_counterparty(seeded_store, "nope", {"phone": "9800000001"})

    def test_remove(self, seeded_store):
        remove_counterparty(seeded_store, "ph-valley")
        assert get_counterparty(seeded_store, "ph-valley") is None
        with pytest.raises(CounterpartyNotFound):
            remove_counterparty(seeded_store, "ph-valley")
