import logging
import uuid
from typing import Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from . import schemas
from .auth import (
    AUTH_COOKIE,
    AuthSession,
    AuthSessions,
    Owner,
    get_auth,
    get_auth_session,
    get_backend,
    require_admin,
    require_owner,
    require_token,
)
from .backend import BackendClient
from .cart import Cart, format_price
from .config import Settings, get_settings, init_log
from .db import Base, engine, get_db
from .errors import BackendError, OnboardingRequired, SignInRequired, ValidationError
from .gate import AccessPolicy, public_page
from .links import (
    contact_links,
    document_link,
    membership_cta_link,
    menu_link,
    order_message,
    qr_code_request_link,
    whatsapp_link,
)
from .membership import evaluate, today_in
from .resolver import ResolutionState, Snapshot
from .validation import (
    MAX_PDF_BYTES,
    new_document_slug,
    validate_onboarding,
    validate_pdf_upload,
    validate_settings_name,
)
from .visits import CartStore, Visit, VisitRegistry

logger = logging.getLogger(__name__)

SESSION_COOKIE = "menulink_session"
RENEWAL_PLAN = "Lifetime Access"

router = APIRouter()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_visits(request: Request) -> VisitRegistry:
    return request.app.state.visits


def _valid_session_id(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(hex=value)
    except ValueError:
        return False
    return True


def get_visit(request: Request, response: Response, visits: VisitRegistry = Depends(get_visits)) -> Visit:
    session_id = request.cookies.get(SESSION_COOKIE)
    if not _valid_session_id(session_id):
        session_id = uuid.uuid4().hex
        response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return visits.get(session_id)


# -------------------------
# Views
# -------------------------
def menu_item_to_out(item: schemas.MenuItem, cart: Cart, symbol: str) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "image": item.image,
        "price": str(item.price),
        "display_price": format_price(item.price, symbol),
        "available": item.is_available,
        "quantity": cart.get_quantity(item.id),
    }


def restaurant_view(restaurant: schemas.Restaurant, cart: Cart, settings: Settings) -> dict:
    symbol = settings.currency_symbol
    ordering = restaurant.ordering_enabled
    return {
        "restaurant": {
            "id": restaurant.id,
            "slug": restaurant.slug,
            "name": restaurant.name,
            "description": restaurant.description,
            "address": restaurant.address,
            "contact": contact_links(restaurant.phone, restaurant.whatsapp, restaurant.instagram),
            "facebook": restaurant.settings.facebook if restaurant.settings else None,
        },
        "layout": "grid" if restaurant.grid_layout else "list",
        "ordering": ordering,
        "categories": [
            {
                "id": category.id,
                "name": category.name,
                "items": [menu_item_to_out(item, cart, symbol) for item in category.menu_items],
            }
            for category in restaurant.categories
        ],
        "cart": {"count": cart.total_count(), "url": f"/{cart.slug}/cart"} if ordering else None,
    }


def cart_to_out(cart: Cart, settings: Settings) -> schemas.CartOut:
    symbol = settings.currency_symbol
    return schemas.CartOut(
        slug=cart.slug,
        lines=[
            schemas.CartLineOut(
                item_id=line.item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                line_total=line.line_total,
                display_price=format_price(line.line_total, symbol),
            )
            for line in cart.lines()
        ],
        total_count=cart.total_count(),
        total_price=cart.total_price(),
        display_total=format_price(cart.total_price(), symbol),
    )


def render_page(response: Response, snapshot: Optional[Snapshot], render: Callable[[object], dict]) -> dict:
    if snapshot is None:
        response.status_code = 409
        return {"state": "superseded", "message": "A newer page was requested"}
    decision = public_page(snapshot)
    response.status_code = decision.status_code
    if not decision.servable:
        return {"state": decision.state, "message": decision.message}
    body = render(snapshot.payload)
    body["state"] = decision.state
    return body


async def ready_restaurant(visit: Visit, slug: str) -> schemas.Restaurant:
    snapshot = visit.menu.snapshot
    if snapshot.slug != slug or snapshot.state is not ResolutionState.READY:
        snapshot = await visit.menu.resolve(slug)
    if snapshot is None:
        raise HTTPException(status_code=409, detail="A newer page was requested")
    decision = public_page(snapshot)
    if not decision.servable:
        raise HTTPException(status_code=decision.status_code, detail=decision.message)
    return snapshot.payload


# -------------------------
# Service and sign-in
# -------------------------
@router.get("/health")
def health():
    return {"status": "ok"}


def _open_session(response: Response, session: AuthSession) -> dict:
    response.set_cookie(AUTH_COOKIE, session.session_id, httponly=True, samesite="lax")
    return {"access_token": session.token, "token_type": "bearer"}


@router.post("/auth/signin", response_model=schemas.Token)
async def sign_in(
    credentials: schemas.Credentials,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthSessions = Depends(get_auth),
    backend: BackendClient = Depends(get_backend),
):
    session = await auth.sign_in(backend, db, credentials)
    return _open_session(response, session)


@router.post("/auth/signup", response_model=schemas.Token, status_code=201)
async def sign_up(
    credentials: schemas.Credentials,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthSessions = Depends(get_auth),
    backend: BackendClient = Depends(get_backend),
):
    session = await auth.sign_up(backend, db, credentials)
    return _open_session(response, session)


@router.post("/auth/signout")
def sign_out(
    response: Response,
    _: str = Depends(require_token),
    session: Optional[AuthSession] = Depends(get_auth_session),
    db: Session = Depends(get_db),
    auth: AuthSessions = Depends(get_auth),
):
    if session is not None:
        auth.sign_out(db, session.session_id)
    response.delete_cookie(AUTH_COOKIE)
    return {"ok": True}


@router.get("/signin")
def signin_page():
    return {"detail": "Please sign in to continue", "signin": "/auth/signin", "signup": "/auth/signup"}


@router.get("/onboarding")
def onboarding_page(_: str = Depends(require_token), settings: Settings = Depends(get_app_settings)):
    return {
        "fields": {
            "title": "required",
            "slug": "required; lowercase letters, numbers and hyphens",
            "whatsapp": "optional; orders are sent to this number",
        },
        "public_url": settings.public_url,
    }


@router.post("/onboarding", status_code=201)
async def onboard(
    form_in: schemas.OnboardingIn,
    token: str = Depends(require_token),
    backend: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
):
    form = validate_onboarding(form_in)
    if await backend.check_slug(form.slug):
        raise ValidationError.single("slug", "Slug is already taken. Please choose a different one.")
    await backend.create_restaurant(token, form)
    logger.info("restaurant created at /%s", form.slug)
    return {"slug": form.slug, "menu_link": menu_link(form.slug, settings)}


# -------------------------
# Owner dashboard
# -------------------------
@router.get("/dashboard")
def dashboard(owner: Owner = Depends(require_owner), settings: Settings = Depends(get_app_settings)):
    return {
        "slug": owner.slug,
        "menu_link": menu_link(owner.slug, settings),
        "qr_code_request": qr_code_request_link(settings),
    }


@router.get("/dashboard/membership")
async def membership(
    owner: Owner = Depends(require_owner),
    backend: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
):
    status = await backend.check_membership(owner.token)
    view = evaluate(status, today_in(settings.timezone))
    return {
        "active": status.active,
        "expiry_date": status.expiry_date.isoformat() if status.expiry_date else None,
        "days_remaining": view.days_remaining,
        "is_expired": view.is_expired,
        "is_long_term": view.is_long_term,
        "plan_label": view.plan_label,
        "banner": view.banner() if view.show_banner else None,
        "renewal_link": membership_cta_link(RENEWAL_PLAN, settings) if view.is_expired else None,
    }


@router.get("/dashboard/restaurant")
async def get_restaurant_settings(owner: Owner = Depends(require_owner), backend: BackendClient = Depends(get_backend)):
    return await backend.restaurant_by_user(owner.token)


@router.put("/dashboard/restaurant")
async def update_restaurant_settings(
    update: schemas.SettingsUpdate,
    owner: Owner = Depends(require_owner),
    backend: BackendClient = Depends(get_backend),
):
    update.name = validate_settings_name(update.name)
    settings_out = await backend.update_restaurant(owner.token, update)
    return {"ok": True, "settings": settings_out}


async def read_pdf_upload(file: Optional[UploadFile]) -> Optional[bytes]:
    if file is None or not file.filename:
        return None
    content = await file.read(MAX_PDF_BYTES + 1)
    validate_pdf_upload(file.filename, file.content_type, len(content))
    return content


async def upload_pdf(backend: BackendClient, token: str, file: UploadFile, content: bytes) -> str:
    def progress(sent: int, total: int) -> None:
        logger.debug("uploading %s: %d/%d bytes", file.filename, sent, total)

    return await backend.upload_file(token, file.filename, content, file.content_type, progress=progress)


@router.get("/dashboard/pdfs")
async def list_pdfs(
    owner: Owner = Depends(require_owner),
    backend: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
):
    records = await backend.list_pdfs(owner.token)
    return [
        {
            "id": record.id,
            "name": record.name,
            "slug": record.slug,
            "created_at": record.created_at,
            "link": document_link(record.slug, settings),
        }
        for record in records
    ]


@router.post("/dashboard/pdfs", status_code=201)
async def create_pdf(
    name: str = Form(""),
    file: Optional[UploadFile] = File(None),
    owner: Owner = Depends(require_owner),
    backend: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
):
    content = await read_pdf_upload(file)
    if content is None:
        raise ValidationError.single("file", "Please select a PDF file to upload")
    file_path = await upload_pdf(backend, owner.token, file, content)
    slug = new_document_slug()
    await backend.save_pdf(owner.token, name.strip() or None, slug, file_path)
    logger.info("pdf uploaded to %s", file_path)
    return {"slug": slug, "file_path": file_path, "link": document_link(slug, settings)}


@router.put("/dashboard/pdfs/{pdf_id}")
async def update_pdf(
    pdf_id: str,
    name: str = Form(""),
    file: Optional[UploadFile] = File(None),
    owner: Owner = Depends(require_owner),
    backend: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
):
    record = await backend.get_pdf_record(owner.token, pdf_id)
    content = await read_pdf_upload(file)
    file_path = record.file_path
    if content is not None:
        if file_path:
            # the previous storage path stops being valid once replaced
            await backend.delete_pdf_file(owner.token, file_path)
        file_path = await upload_pdf(backend, owner.token, file, content)
    elif not file_path:
        raise ValidationError.single("file", "Please select a PDF file to upload")
    await backend.save_pdf(owner.token, name.strip() or None, record.slug, file_path, pdf_id=record.id)
    return {"slug": record.slug, "file_path": file_path, "link": document_link(record.slug, settings)}


@router.delete("/dashboard/pdfs/{pdf_id}/file")
async def delete_pdf_file(
    pdf_id: str,
    owner: Owner = Depends(require_owner),
    backend: BackendClient = Depends(get_backend),
):
    record = await backend.get_pdf_record(owner.token, pdf_id)
    if not record.file_path:
        raise HTTPException(status_code=404, detail="PDF has no file")
    await backend.delete_pdf_file(owner.token, record.file_path)
    return {"ok": True}


# -------------------------
# Operator console
# -------------------------
@router.get("/admin")
def admin_console(identity: schemas.Identity = Depends(require_admin)):
    return {"email": identity.email, "sections": ["overview", "users", "memberships"]}


# -------------------------
# Public pages
# -------------------------
@router.get("/pdf/{slug}")
async def pdf_page(slug: str, response: Response, visit: Visit = Depends(get_visit)):
    snapshot = await visit.document.resolve(slug)

    def render(bundle) -> dict:
        document = bundle.document
        return {
            "pdf": {
                "title": document.name or "PDF Viewer",
                "file_path": document.file_path,
                "viewer_url": bundle.viewer_url,
            }
        }

    return render_page(response, snapshot, render)


@router.get("/{slug}")
async def restaurant_page(
    slug: str,
    response: Response,
    visit: Visit = Depends(get_visit),
    visits: VisitRegistry = Depends(get_visits),
    settings: Settings = Depends(get_app_settings),
):
    snapshot = await visit.menu.resolve(slug)
    return render_page(
        response,
        snapshot,
        lambda restaurant: restaurant_view(restaurant, visits.cart_for(visit, slug), settings),
    )


@router.get("/{slug}/cart", response_model=schemas.CartOut)
async def get_cart(
    slug: str,
    visit: Visit = Depends(get_visit),
    visits: VisitRegistry = Depends(get_visits),
    settings: Settings = Depends(get_app_settings),
):
    await ready_restaurant(visit, slug)
    return cart_to_out(visits.cart_for(visit, slug), settings)


@router.post("/{slug}/cart/items", response_model=schemas.CartOut)
async def add_to_cart(
    slug: str,
    item_in: schemas.CartItemIn,
    visit: Visit = Depends(get_visit),
    visits: VisitRegistry = Depends(get_visits),
    settings: Settings = Depends(get_app_settings),
):
    restaurant = await ready_restaurant(visit, slug)
    if not restaurant.ordering_enabled:
        raise HTTPException(status_code=403, detail="Online ordering is disabled for this restaurant")
    item = restaurant.find_item(item_in.item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Menu item not found")
    if not item.is_available:
        raise HTTPException(status_code=409, detail="Menu item is not available")
    cart = visits.cart_for(visit, slug)
    cart.add_item(item, item_in.quantity)
    return cart_to_out(cart, settings)


@router.put("/{slug}/cart/items/{item_id}", response_model=schemas.CartOut)
async def update_cart_item(
    slug: str,
    item_id: str,
    quantity_in: schemas.QuantityIn,
    visit: Visit = Depends(get_visit),
    visits: VisitRegistry = Depends(get_visits),
    settings: Settings = Depends(get_app_settings),
):
    await ready_restaurant(visit, slug)
    cart = visits.cart_for(visit, slug)
    cart.update_quantity(item_id, quantity_in.quantity)
    return cart_to_out(cart, settings)


@router.delete("/{slug}/cart", response_model=schemas.CartOut)
async def clear_cart(
    slug: str,
    visit: Visit = Depends(get_visit),
    visits: VisitRegistry = Depends(get_visits),
    settings: Settings = Depends(get_app_settings),
):
    await ready_restaurant(visit, slug)
    cart = visits.cart_for(visit, slug)
    cart.clear()
    return cart_to_out(cart, settings)


@router.post("/{slug}/cart/checkout")
async def checkout(
    slug: str,
    visit: Visit = Depends(get_visit),
    visits: VisitRegistry = Depends(get_visits),
    settings: Settings = Depends(get_app_settings),
):
    restaurant = await ready_restaurant(visit, slug)
    if not restaurant.ordering_enabled:
        raise HTTPException(status_code=403, detail="Online ordering is disabled for this restaurant")
    cart = visits.cart_for(visit, slug)
    if not len(cart):
        raise ValidationError.single("cart", "Your cart is empty")
    if not restaurant.whatsapp:
        raise HTTPException(status_code=409, detail="This restaurant does not take orders on WhatsApp")
    message = order_message(restaurant.name, cart.lines(), settings.currency_symbol)
    handoff_url = whatsapp_link(restaurant.whatsapp, message)
    cart.clear()
    return {"handoff_url": handoff_url, "message": message}


# -------------------------
# Application
# -------------------------
def _error_body(message: str, details: dict, status_code: int) -> dict:
    return {"error": True, "message": message, "details": details, "status_code": status_code}


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content=_error_body("Validation error", exc.errors, 422))


async def backend_error_handler(request: Request, exc: BackendError):
    status_code = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
    logger.error("backend call for %s failed: %s", request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=_error_body(exc.message, {}, status_code))


async def sign_in_required_handler(request: Request, exc: SignInRequired):
    return RedirectResponse("/signin", status_code=303)


async def onboarding_required_handler(request: Request, exc: OnboardingRequired):
    return RedirectResponse("/onboarding", status_code=303)


def create_app(backend: Optional[BackendClient] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    init_log(level=settings.log_level)

    app = FastAPI(title="MenuLink")
    app.include_router(router)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(BackendError, backend_error_handler)
    app.add_exception_handler(SignInRequired, sign_in_required_handler)
    app.add_exception_handler(OnboardingRequired, onboarding_required_handler)

    @app.on_event("startup")
    def on_startup():
        Base.metadata.create_all(bind=engine)
        app.state.settings = settings
        app.state.backend = backend or BackendClient(settings.backend_url, timeout=settings.request_timeout)
        app.state.auth = AuthSessions()
        app.state.policy = AccessPolicy(settings.admin_email)
        app.state.visits = VisitRegistry(
            app.state.backend,
            settings,
            cart_store=CartStore() if settings.persist_carts else None,
        )

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.backend.aclose()

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
