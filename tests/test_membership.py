from datetime import date, datetime, timedelta, timezone

from menulink.membership import evaluate, today_in
from menulink.schemas import MembershipStatus

TODAY = date(2025, 6, 15)


def status(**kwargs):
    return MembershipStatus(**kwargs)


def test_expiring_today_is_last_valid_day():
    view = evaluate(status(active=True, expiry_date=TODAY), TODAY)
    assert view.days_remaining == 1
    assert not view.is_expired
    assert view.banner() == "1 day left in your plan"


def test_expired_yesterday():
    view = evaluate(status(active=True, expiry_date=TODAY - timedelta(days=1)), TODAY)
    assert view.days_remaining == 0
    assert view.is_expired
    assert view.banner() == "Plan Expired"


def test_inactive_ignores_expiry_date():
    view = evaluate(status(active=False, expiry_date=TODAY + timedelta(days=90)), TODAY)
    assert view.days_remaining == 0
    assert view.is_expired
    assert view.plan_label == "trial"


def test_active_without_expiry_is_unentitled():
    view = evaluate(status(active=True), TODAY)
    assert view.days_remaining == 0
    assert view.is_expired


def test_long_term_membership_hides_banner():
    view = evaluate(status(active=True, expiry_date=TODAY + timedelta(days=30), plan_type="monthly"), TODAY)
    assert view.days_remaining == 31
    assert view.is_long_term
    assert view.plan_label == "long-term"
    assert not view.show_banner


def test_thirty_days_left_keeps_plan_label():
    view = evaluate(status(active=True, expiry_date=TODAY + timedelta(days=29), plan_type="monthly"), TODAY)
    assert view.days_remaining == 30
    assert not view.is_long_term
    assert view.plan_label == "monthly"
    assert view.banner() == "30 days left in your plan"


def test_evaluate_does_not_mutate_and_is_repeatable():
    membership = status(active=True, expiry_date=TODAY, plan_type="trial")
    before = membership.model_dump()
    assert evaluate(membership, TODAY) == evaluate(membership, TODAY)
    assert membership.model_dump() == before


def test_backend_payload_uses_membership_key_and_timestamps():
    membership = MembershipStatus.model_validate(
        {"membership": True, "expiry_date": "2025-06-15T10:00:00.000000Z", "planType": "Free Trial"}
    )
    assert membership.active
    assert membership.expiry_date == TODAY
    assert membership.plan_type == "Free Trial"


def test_utc_timestamp_lands_on_local_calendar_day():
    # 18:30 UTC is already midnight in Asia/Kolkata
    membership = MembershipStatus.model_validate({"membership": True, "expiry_date": "2025-06-14T18:30:00.000000Z"})
    assert membership.expiry_date == TODAY
    assert evaluate(membership, TODAY).days_remaining == 1


def test_naive_timestamps_and_blank_dates():
    assert MembershipStatus.model_validate({"expiry_date": "2025-06-15 23:59:59"}).expiry_date == TODAY
    assert MembershipStatus.model_validate({"expiry_date": "2025-06-15"}).expiry_date == TODAY
    assert MembershipStatus.model_validate({"expiry_date": ""}).expiry_date is None


def test_today_is_taken_in_configured_timezone():
    late_utc = datetime(2025, 6, 14, 20, 0, tzinfo=timezone.utc)
    assert today_in("Asia/Kolkata", late_utc) == date(2025, 6, 15)
    assert today_in("UTC", late_utc) == date(2025, 6, 14)
