import logging
from typing import Any, AsyncIterator, Callable, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as SchemaError

from . import outcomes
from .errors import BackendError
from .outcomes import Outcome, Wording
from .schemas import (
    Credentials,
    Identity,
    MembershipStatus,
    OnboardingIn,
    PdfDocument,
    PdfRecord,
    Restaurant,
    SettingsUpdate,
)

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int, int], None]


async def _chunks(body: bytes, progress: Optional[ProgressCallback]) -> AsyncIterator[bytes]:
    total = len(body)
    sent = 0
    for start in range(0, total, UPLOAD_CHUNK_SIZE):
        chunk = body[start:start + UPLOAD_CHUNK_SIZE]
        yield chunk
        sent += len(chunk)
        if progress is not None:
            progress(sent, total)


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        for key in ("message", "error", "errors"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


class BackendClient:
    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # -------------------------
    # Public lookups
    # -------------------------
    async def _lookup(self, path: str, wording: Wording) -> Outcome:
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            logger.warning("lookup %s failed: %s", path, exc)
            return outcomes.other()
        try:
            body = response.json()
        except ValueError:
            logger.warning("lookup %s returned a non-JSON body (status %s)", path, response.status_code)
            body = None
        return outcomes.classify(response.status_code, body, wording)

    async def fetch_restaurant(self, slug: str) -> Outcome:
        outcome = await self._lookup(f"/api/restaurant/{quote(slug, safe='')}", outcomes.RESTAURANT_WORDING)
        if not outcome.ok:
            return outcome
        try:
            return outcomes.ready(Restaurant.model_validate(outcome.payload.get("restaurant")))
        except SchemaError as exc:
            logger.error("malformed restaurant payload for %s: %s", slug, exc)
            return outcomes.other(outcomes.RESTAURANT_WORDING.failed)

    async def fetch_pdf(self, slug: str) -> Outcome:
        outcome = await self._lookup(f"/api/pdf/{quote(slug, safe='')}", outcomes.PDF_WORDING)
        if not outcome.ok:
            return outcome
        try:
            return outcomes.ready(PdfDocument.model_validate(outcome.payload.get("pdf")))
        except SchemaError as exc:
            logger.error("malformed pdf payload for %s: %s", slug, exc)
            return outcomes.other(outcomes.PDF_WORDING.failed)

    async def check_slug(self, slug: str) -> bool:
        body = await self._request("GET", f"/api/check-slug/{quote(slug, safe='')}", failure="Failed to check slug")
        return bool(body.get("exists"))

    # -------------------------
    # Authenticated calls
    # -------------------------
    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        failure: str = "Request failed",
        **kwargs,
    ) -> Any:
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise BackendError(outcomes.TRANSPORT_FAILURE_MESSAGE) from exc
        if response.is_error:
            message = _error_message(response, failure)
            logger.info("%s %s -> %s: %s", method, path, response.status_code, message)
            raise BackendError(message, status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(failure, status_code=response.status_code) from exc

    async def _token_call(self, path: str, credentials: Credentials, failure: str) -> str:
        body = await self._request(
            "POST",
            path,
            json={"email": credentials.email, "password": credentials.password},
            failure=failure,
        )
        token = (body.get("data") or {}).get("token") if isinstance(body, dict) else None
        if not token:
            raise BackendError(failure)
        return token

    async def sign_in(self, credentials: Credentials) -> str:
        return await self._token_call("/api/signin", credentials, "Sign in failed")

    async def sign_up(self, credentials: Credentials) -> str:
        return await self._token_call("/api/signup", credentials, "Signup failed")

    async def current_user(self, token: str) -> Identity:
        body = await self._request("GET", "/api/user", token=token, failure="Failed to load user")
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        try:
            return Identity.model_validate(body)
        except SchemaError as exc:
            raise BackendError("Failed to load user") from exc

    async def check_membership(self, token: str) -> MembershipStatus:
        body = await self._request("GET", "/api/check-membership", token=token, failure="Failed to fetch membership")
        try:
            return MembershipStatus.model_validate(body)
        except SchemaError as exc:
            raise BackendError("Failed to fetch membership") from exc

    async def get_slug(self, token: str) -> Optional[str]:
        body = await self._request("GET", "/api/get-slug", token=token, failure="Slug not found")
        if isinstance(body, dict) and body.get("success") and body.get("slug"):
            return body["slug"]
        return None

    async def create_restaurant(self, token: str, form: OnboardingIn) -> Any:
        return await self._request(
            "POST",
            "/api/create-restaurant",
            token=token,
            json={"title": form.title, "slug": form.slug, "whatsapp": form.whatsapp or ""},
            failure="Failed to create restaurant",
        )

    async def restaurant_by_user(self, token: str) -> dict:
        body = await self._request("GET", "/api/restaurant-by-user", token=token, failure="Failed to fetch restaurant")
        if not (isinstance(body, dict) and body.get("success") and body.get("data")):
            raise BackendError(_message_of(body, "Restaurant not found"), status_code=404)
        data = dict(body["data"])
        data["settings"] = data.get("settings") or {}
        return data

    async def update_restaurant(self, token: str, update: SettingsUpdate) -> dict:
        payload = {
            "name": update.name,
            "address": update.address,
            "whatsapp": update.whatsapp,
            "phone": update.phone,
            "instagram": update.instagram,
            "settings": {
                "isGrid": update.settings.is_grid,
                "isOrder": update.settings.is_order,
                "facebook": update.settings.facebook,
            },
        }
        body = await self._request("PUT", "/api/update-restaurant", token=token, json=payload, failure="Failed to update")
        data = body.get("data") if isinstance(body, dict) else None
        return (data or {}).get("settings") or {}

    async def list_pdfs(self, token: str) -> List[PdfRecord]:
        body = await self._request("GET", "/api/pdfs", token=token, failure="Failed to fetch PDFs")
        if isinstance(body, dict):
            body = body.get("data") or []
        if not isinstance(body, list):
            raise BackendError("Failed to fetch PDFs")
        try:
            return [PdfRecord.model_validate(row) for row in body]
        except SchemaError as exc:
            raise BackendError("Failed to fetch PDFs") from exc

    async def get_pdf_record(self, token: str, pdf_id: str) -> PdfRecord:
        body = await self._request("GET", f"/api/pdfs/{quote(pdf_id, safe='')}", token=token, failure="Failed to fetch PDF")
        try:
            return PdfRecord.model_validate(body)
        except SchemaError as exc:
            raise BackendError("Failed to fetch PDF") from exc

    async def save_pdf(
        self, token: str, name: Optional[str], slug: str, file_path: str, pdf_id: Optional[str] = None
    ) -> Any:
        payload = {"name": name or "", "slug": slug, "file_path": file_path}
        if pdf_id is None:
            return await self._request("POST", "/api/pdfs", token=token, json=payload, failure="Submit failed")
        return await self._request(
            "PUT", f"/api/pdfs/{quote(pdf_id, safe='')}", token=token, json=payload, failure="Submit failed"
        )

    async def delete_pdf_file(self, token: str, file_path: str) -> None:
        await self._request(
            "DELETE", "/api/delete-pdf-file", token=token, json={"file_path": file_path}, failure="Delete failed"
        )

    async def upload_file(
        self,
        token: str,
        filename: str,
        content: bytes,
        content_type: str,
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Upload ``content`` to file storage and return its storage path.

        The multipart body is encoded up front and streamed in chunks so
        ``progress(sent_bytes, total_bytes)`` fires as the body goes out.
        """
        encoded = self._client.build_request(
            "POST", "/api/upload", files={"file": (filename, content, content_type)}
        )
        body = encoded.read()
        headers = {
            "Content-Type": encoded.headers["Content-Type"],
            "Content-Length": str(len(body)),
        }
        result = await self._request(
            "POST",
            "/api/upload",
            token=token,
            headers=headers,
            content=_chunks(body, progress),
            failure="Upload failed",
        )
        file_path = result.get("file_path") if isinstance(result, dict) else None
        if not file_path:
            raise BackendError("Upload failed")
        return file_path


def _message_of(body: Any, fallback: str) -> str:
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        return body["message"]
    return fallback
