import re
import uuid
from typing import Dict, Optional

from .errors import ValidationError
from .schemas import OnboardingIn

PDF_CONTENT_TYPE = "application/pdf"
MAX_PDF_BYTES = 10 * 1024 * 1024

_SLUG_INVALID = re.compile(r"[^a-z0-9-]")

# first path segments already taken by storefront routes
RESERVED_SLUGS = frozenset(
    {"admin", "auth", "dashboard", "docs", "health", "onboarding", "openapi.json", "pdf", "redoc", "signin", "signup"}
)


def sanitize_slug(raw: str) -> str:
    """Lowercase ``raw`` and replace every character outside ``[a-z0-9-]`` with ``-``."""
    return _SLUG_INVALID.sub("-", raw.strip().lower())


def new_document_slug() -> str:
    return str(uuid.uuid4())


def validate_onboarding(form: OnboardingIn) -> OnboardingIn:
    errors: Dict[str, str] = {}
    title = form.title.strip()
    slug = sanitize_slug(form.slug)
    if not title:
        errors["title"] = "Restaurant title is required"
    if not slug.strip("-"):
        errors["slug"] = "URL slug is required"
    elif slug in RESERVED_SLUGS:
        errors["slug"] = "This link is reserved. Please choose a different one."
    if errors:
        raise ValidationError(errors)
    whatsapp = (form.whatsapp or "").strip() or None
    return OnboardingIn(title=title, slug=slug, whatsapp=whatsapp)


def validate_pdf_upload(filename: Optional[str], content_type: Optional[str], size: int) -> None:
    if not filename:
        raise ValidationError.single("file", "Please select a PDF file to upload")
    if content_type != PDF_CONTENT_TYPE:
        raise ValidationError.single("file", "Only PDF files are allowed")
    if size <= 0:
        raise ValidationError.single("file", "The selected file is empty")
    if size > MAX_PDF_BYTES:
        raise ValidationError.single("file", "PDF must be 10MB or smaller")


def validate_settings_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError.single("name", "Business name is required")
    return name
