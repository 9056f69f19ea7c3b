"""
Tests for locality eligibility. Pure: no database needed.
"""

import pytest

from skportal.models import User, Event
from skportal.services.eligibility import evaluate


def make_user(role="youth", barangay="Poblacion", municipality=None, province=None):
    return User(id=1, role=role, barangay=barangay, municipality=municipality,
                province=province, is_active=True)


def make_event(barangay="Poblacion", municipality=None, province=None):
    return Event(id=1, title="Youth Assembly", barangay=barangay,
                 municipality=municipality, province=province)


def test_matching_barangay_without_municipalities_is_eligible():
    result = evaluate(make_user(barangay="Poblacion"), make_event(barangay="Poblacion"))
    assert result.eligible is True
    assert result.reason == ""


def test_different_barangay_names_both():
    result = evaluate(make_user(barangay="Poblacion"), make_event(barangay="San Jose"))
    assert result.eligible is False
    assert "San Jose" in result.reason
    assert "Poblacion" in result.reason


def test_barangay_comparison_trims_and_ignores_case():
    result = evaluate(make_user(barangay="  poblacion "), make_event(barangay="POBLACION"))
    assert result.eligible is True


@pytest.mark.parametrize("barangay", [None, "", "   "])
def test_missing_barangay_is_ineligible(barangay):
    result = evaluate(make_user(barangay=barangay), make_event())
    assert result.eligible is False
    assert "missing barangay" in result.reason


@pytest.mark.parametrize("role", ["admin", "sk_official"])
def test_staff_are_eligible_regardless_of_location(role):
    user = make_user(role=role, barangay=None, municipality="Elsewhere")
    event = make_event(barangay="San Jose", municipality="Guagua")
    assert evaluate(user, event).eligible is True


def test_municipality_mismatch_when_both_present():
    user = make_user(municipality="Bacolor")
    event = make_event(municipality="Guagua")
    result = evaluate(user, event)
    assert result.eligible is False
    assert "Guagua" in result.reason
    assert "Bacolor" in result.reason


def test_municipality_ignored_when_one_side_missing():
    assert evaluate(make_user(municipality=None), make_event(municipality="Guagua")).eligible is True
    assert evaluate(make_user(municipality="Bacolor"), make_event(municipality=None)).eligible is True
    assert evaluate(make_user(municipality="  "), make_event(municipality="Guagua")).eligible is True


def test_municipality_comparison_is_normalized():
    user = make_user(municipality="bacolor ")
    event = make_event(municipality="Bacolor")
    assert evaluate(user, event).eligible is True


def test_barangay_checked_before_municipality():
    user = make_user(barangay="Poblacion", municipality="Bacolor")
    event = make_event(barangay="San Jose", municipality="Guagua")
    result = evaluate(user, event)
    assert "barangay" in result.reason


def test_province_is_never_checked():
    # Open question: province is not part of eligibility. Pinned until product confirms.
    user = make_user(province="Pampanga", municipality="Bacolor")
    event = make_event(province="Tarlac", municipality="Bacolor")
    assert evaluate(user, event).eligible is True


def test_evaluate_is_deterministic():
    user, event = make_user(barangay="Poblacion"), make_event(barangay="San Jose")
    assert evaluate(user, event) == evaluate(user, event)
