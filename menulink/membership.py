from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .schemas import MembershipStatus

LONG_TERM_DAYS = 30
LONG_TERM_LABEL = "long-term"
DEFAULT_PLAN_LABEL = "trial"


@dataclass(frozen=True)
class MembershipView:
    days_remaining: int
    is_expired: bool
    is_long_term: bool
    plan_label: str

    @property
    def show_banner(self) -> bool:
        return not self.is_long_term

    def banner(self) -> str:
        if self.is_expired:
            return "Plan Expired"
        suffix = "" if self.days_remaining == 1 else "s"
        return f"{self.days_remaining} day{suffix} left in your plan"


def today_in(timezone: str, now: Optional[datetime] = None) -> date:
    now = now or datetime.now(ZoneInfo(timezone))
    if now.tzinfo is not None:
        now = now.astimezone(ZoneInfo(timezone))
    return now.date()


def evaluate(membership: MembershipStatus, today: date) -> MembershipView:
    if membership.active and membership.expiry_date is not None:
        days_remaining = (membership.expiry_date - today).days + 1
    else:
        days_remaining = 0

    is_expired = not membership.active or days_remaining <= 0
    is_long_term = days_remaining > LONG_TERM_DAYS
    if is_long_term:
        plan_label = LONG_TERM_LABEL
    else:
        plan_label = membership.plan_type or DEFAULT_PLAN_LABEL

    return MembershipView(
        days_remaining=days_remaining,
        is_expired=is_expired,
        is_long_term=is_long_term,
        plan_label=plan_label,
    )
