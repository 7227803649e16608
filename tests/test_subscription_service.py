import pytest

from conftest import FakeFirestore, FakeFirestoreModule, FakeTime

from eduvox.services import subscription_service
from eduvox.services.subscription_service import (
    PAID_PLAN_DURATION_SECONDS,
    SubscriptionStoreError,
    get_or_create_subscription,
    usage_period_key,
)

NOW = 1_790_000_000.0


def test_missing_subscription_is_created_as_free():
    db = FakeFirestore()

    record = get_or_create_subscription("u1", db=db, time_module=FakeTime(NOW))

    assert record["planId"] == "free"
    assert record["usage"]["pathwaysGenerated"] == 0
    assert db.doc("subscriptions", "u1")["usagePeriod"] == usage_period_key(NOW)


def test_expired_paid_plan_is_downgraded():
    db = FakeFirestore({"subscriptions": {"u1": {
        "planId": "premium",
        "planType": "premium",
        "status": "active",
        "expiresAt": NOW - 1,
        "usagePeriod": usage_period_key(NOW),
        "usage": {"pdfExports": 3},
    }}})

    record = get_or_create_subscription("u1", db=db, time_module=FakeTime(NOW))

    assert record["planId"] == "free"
    assert record["usage"]["pdfExports"] == 0
    assert db.doc("subscriptions", "u1")["planType"] == "free"


def test_new_month_resets_usage_counters():
    db = FakeFirestore({"subscriptions": {"u1": {
        "planId": "free",
        "usagePeriod": "2000-01",
        "usage": {"pathwaysGenerated": 1},
    }}})

    record = get_or_create_subscription("u1", db=db, time_module=FakeTime(NOW))

    assert record["usage"]["pathwaysGenerated"] == 0
    assert db.doc("subscriptions", "u1")["usagePeriod"] == usage_period_key(NOW)


def test_missing_usage_period_is_stamped_without_resetting_counters():
    db = FakeFirestore({"subscriptions": {"u1": {
        "planId": "free",
        "usage": {"pathwaysGenerated": 1},
    }}})

    record = get_or_create_subscription("u1", db=db, time_module=FakeTime(NOW))

    assert record["usage"]["pathwaysGenerated"] == 1
    assert db.doc("subscriptions", "u1")["usagePeriod"] == usage_period_key(NOW)
    assert db.doc("subscriptions", "u1")["usage"]["pathwaysGenerated"] == 1


def test_future_usage_period_is_left_alone():
    db = FakeFirestore({"subscriptions": {"u1": {
        "planId": "free",
        "usagePeriod": "2999-01",
        "usage": {"pathwaysGenerated": 1},
    }}})

    record = get_or_create_subscription("u1", db=db, time_module=FakeTime(NOW))

    assert record["usage"]["pathwaysGenerated"] == 1
    assert record["usagePeriod"] == "2999-01"


def test_partial_usage_is_completed_with_zeros():
    db = FakeFirestore({"subscriptions": {"u1": {
        "planId": "pro",
        "usagePeriod": usage_period_key(NOW),
        "usage": {"pdfExports": 2},
    }}})

    record = get_or_create_subscription("u1", db=db, time_module=FakeTime(NOW))

    assert record["planType"] == "pro"
    assert record["usage"]["pdfExports"] == 2
    assert record["usage"]["universityComparisons"] == 0


def test_store_failures_raise_subscription_store_error():
    class _BrokenDB:
        def collection(self, _name):
            raise RuntimeError("unavailable")

    with pytest.raises(SubscriptionStoreError):
        get_or_create_subscription("u1", db=_BrokenDB(), time_module=FakeTime(NOW))
    with pytest.raises(SubscriptionStoreError):
        get_or_create_subscription("u1", db=None, time_module=FakeTime(NOW))


def test_increment_usage_adds_one_atomically():
    db = FakeFirestore({"subscriptions": {"u1": {"usage": {"pdfExports": 2}}}})

    subscription_service.increment_usage("u1", "pdfExports", db=db, firestore_module=FakeFirestoreModule, time_module=FakeTime(NOW))
    subscription_service.increment_usage("u1", "pdfExports", db=db, firestore_module=FakeFirestoreModule, time_module=FakeTime(NOW))

    assert db.doc("subscriptions", "u1")["usage"]["pdfExports"] == 4


def test_upgrade_sets_expiry_and_records_transaction():
    db = FakeFirestore()

    record = subscription_service.upgrade_subscription(
        "u1", "premium", {"transactionId": "txn_1", "paymentMethod": "upi"}, db=db, time_module=FakeTime(NOW),
    )

    assert record["planId"] == "premium"
    assert record["expiresAt"] == NOW + PAID_PLAN_DURATION_SECONDS
    transaction = db.doc("subscription_transactions", "txn_1")
    assert transaction["amount"] == 999
    assert transaction["currency"] == "INR"
    assert subscription_service.list_transactions("u1", db=db)[0]["id"] == "txn_1"


def test_paid_upgrade_without_transaction_id_writes_nothing():
    db = FakeFirestore()

    with pytest.raises(ValueError):
        subscription_service.upgrade_subscription("u1", "pro", {}, db=db, time_module=FakeTime(NOW))

    assert db.doc("subscriptions", "u1") is None


def test_invalid_plan_is_rejected():
    with pytest.raises(ValueError):
        subscription_service.upgrade_subscription("u1", "gold", {"transactionId": "t"}, db=FakeFirestore(), time_module=FakeTime(NOW))


def test_analytics_counts_active_plans_and_revenue():
    db = FakeFirestore({"subscriptions": {
        "a": {"planId": "free", "status": "active"},
        "b": {"planId": "premium", "status": "active"},
        "c": {"planId": "pro", "status": "active"},
        "d": {"planId": "pro", "status": "cancelled"},
    }})

    analytics = subscription_service.subscription_analytics(db=db)

    assert analytics["totalSubscriptions"] == 4
    assert analytics["activeSubscriptions"] == 3
    assert analytics["planDistribution"] == {"free": 1, "premium": 1, "pro": 1}
    assert analytics["monthlyRevenue"] == 999 + 1999
