import uuid

import pytest

from menulink.errors import ValidationError
from menulink.schemas import OnboardingIn
from menulink.validation import (
    MAX_PDF_BYTES,
    new_document_slug,
    sanitize_slug,
    validate_onboarding,
    validate_pdf_upload,
    validate_settings_name,
)


@pytest.mark.parametrize(
    "raw, slug",
    [
        ("Taco Place", "taco-place"),
        ("  TACO_place!  ", "taco-place-"),
        ("cafe-42", "cafe-42"),
    ],
)
def test_sanitize_slug(raw, slug):
    assert sanitize_slug(raw) == slug


def test_onboarding_cleans_input():
    form = validate_onboarding(OnboardingIn(title="  Taco Place ", slug="Taco Place", whatsapp="  "))
    assert form.title == "Taco Place"
    assert form.slug == "taco-place"
    assert form.whatsapp is None


def test_onboarding_reports_every_missing_field():
    with pytest.raises(ValidationError) as exc:
        validate_onboarding(OnboardingIn(title=" ", slug="!!"))
    assert exc.value.errors == {
        "title": "Restaurant title is required",
        "slug": "URL slug is required",
    }


@pytest.mark.parametrize("slug", ["dashboard", "PDF", "signin"])
def test_onboarding_rejects_reserved_slugs(slug):
    with pytest.raises(ValidationError) as exc:
        validate_onboarding(OnboardingIn(title="Taco Place", slug=slug))
    assert "reserved" in exc.value.errors["slug"]


@pytest.mark.parametrize(
    "filename, content_type, size, message",
    [
        (None, "application/pdf", 10, "Please select a PDF file to upload"),
        ("menu.png", "image/png", 10, "Only PDF files are allowed"),
        ("menu.pdf", "application/pdf", 0, "The selected file is empty"),
        ("menu.pdf", "application/pdf", MAX_PDF_BYTES + 1, "PDF must be 10MB or smaller"),
    ],
)
def test_pdf_upload_rejections(filename, content_type, size, message):
    with pytest.raises(ValidationError) as exc:
        validate_pdf_upload(filename, content_type, size)
    assert exc.value.errors == {"file": message}


def test_pdf_upload_at_limit_is_accepted():
    validate_pdf_upload("menu.pdf", "application/pdf", MAX_PDF_BYTES)


def test_document_slugs_are_unique_uuids():
    first, second = new_document_slug(), new_document_slug()
    assert first != second
    assert str(uuid.UUID(first)) == first


def test_settings_name_required():
    assert validate_settings_name("  Taco Place ") == "Taco Place"
    with pytest.raises(ValidationError) as exc:
        validate_settings_name("   ")
    assert exc.value.errors == {"name": "Business name is required"}
