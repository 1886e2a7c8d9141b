"""Permission-filter derivation from user attributes."""

import pytest

from medassist.policy.filters import derive_permission_filters
from medassist.policy.types import PermissionFilters, UserAttributes


@pytest.mark.parametrize("clearance", [0, 1, 2, 2.9, -1])
def test_low_clearance_is_normal_only(clearance):
    filters = derive_permission_filters(UserAttributes(clearance=clearance))
    assert filters.sensitivity == "Normal"
    assert filters.to_dict()["sensitivity"] == "Normal"


@pytest.mark.parametrize("clearance", [3, 4, 4.5])
def test_mid_clearance_is_normal_and_sensitive_in_order(clearance):
    filters = derive_permission_filters(UserAttributes(clearance=clearance))
    assert filters.to_dict()["sensitivity"] == ["Normal", "Sensitive"]


@pytest.mark.parametrize("clearance", [5, 6, 100])
def test_high_clearance_omits_sensitivity(clearance):
    filters = derive_permission_filters(UserAttributes(clearance=clearance))
    assert filters.sensitivity is None
    assert "sensitivity" not in filters.to_dict()


def test_missing_attributes_give_empty_filters():
    assert derive_permission_filters(UserAttributes()).to_dict() == {}


def test_department_and_specialization_pass_through():
    filters = derive_permission_filters(
        UserAttributes(department="Cardiology", clearance=2, specialization="Electrophysiology")
    )
    assert filters.to_dict() == {
        "department": "Cardiology",
        "sensitivity": "Normal",
        "specialization": "Electrophysiology",
    }


def test_role_does_not_become_a_filter():
    assert derive_permission_filters(UserAttributes(role="doctor")) == PermissionFilters()


def test_attributes_from_mapping_keeps_unknown_keys_and_drops_non_numeric_clearance():
    attrs = UserAttributes.from_mapping(
        {"department": "ER", "clearance": "high", "role": "doctor", "isBlocked": False}
    )
    assert attrs.department == "ER"
    assert attrs.clearance is None
    assert attrs.role == "doctor"
    assert attrs.extra == {"isBlocked": False}
    assert attrs.to_dict() == {"department": "ER", "role": "doctor", "isBlocked": False}


def test_attributes_from_mapping_rejects_boolean_clearance():
    assert UserAttributes.from_mapping({"clearance": True}).clearance is None
