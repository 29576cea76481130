import pytest

from menulink.outcomes import PDF_WORDING, TRANSPORT_FAILURE_MESSAGE, OutcomeKind, classify


def test_success_is_ready_with_body_as_payload():
    body = {"success": True, "restaurant": {"slug": "taco-place"}}
    outcome = classify(200, body)
    assert outcome.kind is OutcomeKind.READY
    assert outcome.ok
    assert outcome.payload is body


@pytest.mark.parametrize("membership", [False, True, None, "missing"])
def test_slug_false_is_not_found_whatever_membership_says(membership):
    body = {"success": False, "slug": False, "message": "No such menu"}
    if membership != "missing":
        body["membership"] = membership
    outcome = classify(404, body)
    assert outcome.kind is OutcomeKind.NOT_FOUND
    assert outcome.message == "No such menu"


@pytest.mark.parametrize("slug", ["missing", True])
def test_membership_false_is_inactive(slug):
    body = {"success": False, "membership": False}
    if slug != "missing":
        body["slug"] = slug
    outcome = classify(403, body)
    assert outcome.kind is OutcomeKind.INACTIVE
    assert outcome.message == "Membership is not active"


def test_markers_must_be_literal_false():
    outcome = classify(404, {"success": False, "slug": 0, "membership": ""})
    assert outcome.kind is OutcomeKind.OTHER
    assert outcome.message == "Failed to load restaurant"


def test_success_with_error_status_is_not_ready():
    assert classify(500, {"success": True}).kind is OutcomeKind.OTHER


def test_missing_success_flag_is_other():
    assert classify(200, {"restaurant": {}}).kind is OutcomeKind.OTHER


def test_transport_failure_is_other_with_retry_hint():
    outcome = classify(None, None)
    assert outcome.kind is OutcomeKind.OTHER
    assert outcome.message == TRANSPORT_FAILURE_MESSAGE


@pytest.mark.parametrize("body", [None, [], "oops", 3])
def test_malformed_body_is_other(body):
    assert classify(200, body).kind is OutcomeKind.OTHER


def test_pdf_wording():
    assert classify(404, {"success": False, "slug": False}, PDF_WORDING).message == "PDF not found"
    assert classify(500, {"success": False}, PDF_WORDING).message == "Failed to load PDF"
