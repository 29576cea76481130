from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from . import models
from .cart import CartLine


def get_stored_token(db: Session, session_id: str) -> Optional[models.AuthToken]:
    return db.query(models.AuthToken).filter(models.AuthToken.session_id == session_id).first()


def store_token(db: Session, session_id: str, token: str, email: Optional[str] = None) -> models.AuthToken:
    row = models.AuthToken(session_id=session_id, token=token, email=email)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def clear_token(db: Session, session_id: str) -> None:
    db.query(models.AuthToken).filter(models.AuthToken.session_id == session_id).delete()
    db.commit()


def load_cart_lines(db: Session, session_id: str, slug: str) -> List[CartLine]:
    rows = (
        db.query(models.CartLine)
        .filter(models.CartLine.session_id == session_id, models.CartLine.slug == slug)
        .order_by(models.CartLine.id)
        .all()
    )
    return [
        CartLine(item_id=row.item_id, name=row.name, price=Decimal(row.price), quantity=row.quantity)
        for row in rows
    ]


def save_cart_lines(db: Session, session_id: str, slug: str, lines: List[CartLine]) -> None:
    db.query(models.CartLine).filter(
        models.CartLine.session_id == session_id, models.CartLine.slug == slug
    ).delete()
    for line in lines:
        db.add(
            models.CartLine(
                session_id=session_id,
                slug=slug,
                item_id=line.item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
            )
        )
    db.commit()
