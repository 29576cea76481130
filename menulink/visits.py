import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Optional

from . import crud
from .cart import Cart
from .config import Settings
from .db import SessionLocal
from .resolver import TenantResolver, document_resolver, menu_resolver

logger = logging.getLogger(__name__)

MAX_VISITS = 10000


class CartStore:
    """Write-through copy of carts in the local database."""

    def load(self, session_id: str, slug: str):
        db = SessionLocal()
        try:
            return crud.load_cart_lines(db, session_id, slug)
        finally:
            db.close()

    def save(self, session_id: str, slug: str, cart: Cart) -> None:
        db = SessionLocal()
        try:
            crud.save_cart_lines(db, session_id, slug, cart.lines())
        finally:
            db.close()


@dataclass
class Visit:
    session_id: str
    menu: TenantResolver
    document: TenantResolver
    carts: Dict[str, Cart] = field(default_factory=dict)


class VisitRegistry:
    """Browsing contexts keyed by visitor session id, least recently used evicted."""

    def __init__(self, backend, settings: Settings, cart_store: Optional[CartStore] = None, max_visits: int = MAX_VISITS):
        self.backend = backend
        self.settings = settings
        self.cart_store = cart_store
        self.max_visits = max_visits
        self._visits: "OrderedDict[str, Visit]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._visits)

    def get(self, session_id: str) -> Visit:
        visit = self._visits.get(session_id)
        if visit is not None:
            self._visits.move_to_end(session_id)
            return visit
        visit = Visit(
            session_id=session_id,
            menu=menu_resolver(self.backend),
            document=document_resolver(self.backend, self.settings),
        )
        self._visits[session_id] = visit
        while len(self._visits) > self.max_visits:
            _, evicted = self._visits.popitem(last=False)
            evicted.menu.cancel()
            evicted.document.cancel()
        return visit

    def cart_for(self, visit: Visit, slug: str) -> Cart:
        cart = visit.carts.get(slug)
        if cart is not None:
            return cart
        if self.cart_store is None:
            cart = Cart(slug)
        else:
            store = self.cart_store
            cart = Cart(slug, on_change=lambda c: store.save(visit.session_id, slug, c))
            cart.restore(store.load(visit.session_id, slug))
            if len(cart):
                logger.info("restored %d cart line(s) for %s", len(cart), slug)
        visit.carts[slug] = cart
        return cart
