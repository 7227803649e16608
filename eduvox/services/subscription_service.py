"""Subscription records: plan catalogue, lifecycle and usage counters."""

from datetime import datetime, timezone

from eduvox.repositories import subscriptions_repo
from eduvox.services.entitlement_service import (
    PLAN_FREE,
    PLAN_LIMITS,
    PLAN_PREMIUM,
    PLAN_PRO,
    complete_usage,
    zero_usage,
)

PAID_PLAN_DURATION_SECONDS = 30 * 24 * 60 * 60

PLAN_TIERS = {
    PLAN_FREE: {
        'id': PLAN_FREE,
        'name': 'Free',
        'price': 0,
        'currency': 'INR',
        'duration': 'lifetime',
        'features': {
            'universityBrowsing': True,
            'universityComparison': 3,
            'pathwayGeneration': 1,
            'pdfExports': False,
            'prioritySupport': False,
            'advancedFilters': False,
            'scholarshipAlerts': False,
            'applicationTracking': False,
            'analyticsReports': False,
        },
    },
    PLAN_PREMIUM: {
        'id': PLAN_PREMIUM,
        'name': 'Premium',
        'price': 999,
        'currency': 'INR',
        'duration': 'monthly',
        'features': {
            'universityBrowsing': True,
            'universityComparison': 10,
            'pathwayGeneration': 'unlimited',
            'pdfExports': True,
            'prioritySupport': False,
            'advancedFilters': True,
            'scholarshipAlerts': True,
            'applicationTracking': True,
            'analyticsReports': False,
        },
    },
    PLAN_PRO: {
        'id': PLAN_PRO,
        'name': 'Professional',
        'price': 1999,
        'currency': 'INR',
        'duration': 'monthly',
        'features': {
            'universityBrowsing': True,
            'universityComparison': 'unlimited',
            'pathwayGeneration': 'unlimited',
            'pdfExports': True,
            'prioritySupport': True,
            'advancedFilters': True,
            'scholarshipAlerts': True,
            'applicationTracking': True,
            'analyticsReports': True,
        },
    },
}


class SubscriptionStoreError(RuntimeError):
    pass


def usage_period_key(now_ts):
    moment = datetime.fromtimestamp(float(now_ts), tz=timezone.utc)
    return f"{moment.year:04d}-{moment.month:02d}"


def plan_catalogue():
    return {
        plan_id: dict(plan, limits=dict(PLAN_LIMITS[plan_id]))
        for plan_id, plan in PLAN_TIERS.items()
    }


def new_subscription_record(uid, plan_id, now_ts, expires_at=None):
    return {
        'userId': uid,
        'planId': plan_id,
        'planType': plan_id,
        'status': 'active',
        'startDate': now_ts,
        'expiresAt': expires_at,
        'createdAt': now_ts,
        'updatedAt': now_ts,
        'usagePeriod': usage_period_key(now_ts),
        'usage': zero_usage(),
    }


def create_free_subscription(uid, *, db, time_module):
    now_ts = time_module.time()
    record = new_subscription_record(uid, PLAN_FREE, now_ts)
    subscriptions_repo.set_doc(db, uid, record)
    return record


def _is_expired(data, now_ts):
    expires_at = data.get('expiresAt')
    if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
        return False
    return str(data.get('planId', PLAN_FREE)) != PLAN_FREE and now_ts > float(expires_at)


def downgrade_to_free(uid, *, db, time_module):
    now_ts = time_module.time()
    updates = {
        'planId': PLAN_FREE,
        'planType': PLAN_FREE,
        'status': 'active',
        'expiresAt': None,
        'updatedAt': now_ts,
        'usagePeriod': usage_period_key(now_ts),
        'usage': zero_usage(),
    }
    subscriptions_repo.set_doc(db, uid, updates, merge=True)
    return updates


def _roll_usage_period(uid, data, now_ts, *, db):
    """Reset counters once the stored period is older than the current month.

    Documents without a period predate period tracking; they are stamped with
    the current period and keep their counters.
    """
    period = usage_period_key(now_ts)
    stored = data.get('usagePeriod')
    if not isinstance(stored, str) or not stored:
        subscriptions_repo.set_doc(db, uid, {'usagePeriod': period, 'updatedAt': now_ts}, merge=True)
        data['usagePeriod'] = period
    elif stored < period:
        subscriptions_repo.set_doc(db, uid, {'usagePeriod': period, 'usage': zero_usage(), 'updatedAt': now_ts}, merge=True)
        data['usagePeriod'] = period
        data['usage'] = zero_usage()


def get_or_create_subscription(uid, *, db, time_module, logger=None):
    """Load the user's subscription, applying expiry and monthly rollover.

    Raises SubscriptionStoreError when the store cannot be read.
    """
    if db is None:
        raise SubscriptionStoreError('Subscription store is not configured')
    try:
        snapshot = subscriptions_repo.get_doc(db, uid)
        if not snapshot.exists:
            record = create_free_subscription(uid, db=db, time_module=time_module)
            if logger is not None:
                logger.info(f"Created free subscription for user {uid}")
            return record

        data = snapshot.to_dict() or {}
        now_ts = time_module.time()
        if _is_expired(data, now_ts):
            data.update(downgrade_to_free(uid, db=db, time_module=time_module))
            if logger is not None:
                logger.info(f"Subscription for user {uid} expired; downgraded to free")
        else:
            _roll_usage_period(uid, data, now_ts, db=db)

        data['planId'] = data.get('planId') or PLAN_FREE
        data['planType'] = data.get('planType') or data['planId']
        data['usage'] = complete_usage(data.get('usage'))
        return data
    except Exception as exc:
        raise SubscriptionStoreError(f"Could not load subscription for user {uid}: {exc}") from exc


def increment_usage(uid, usage_field, *, db, firestore_module, time_module):
    if db is None:
        raise SubscriptionStoreError('Subscription store is not configured')
    subscriptions_repo.increment_usage(db, uid, usage_field, firestore_module, time_module.time())


def record_transaction(uid, plan_id, payment_data, *, db, time_module):
    plan = PLAN_TIERS[plan_id]
    transaction_id = str(payment_data.get('transactionId', '') or '').strip()
    if not transaction_id:
        raise ValueError('transactionId is required')
    record = {
        'userId': uid,
        'planId': plan_id,
        'amount': plan['price'],
        'currency': plan['currency'],
        'status': 'completed',
        'transactionId': transaction_id,
        'paymentMethod': str(payment_data.get('paymentMethod', '') or '')[:40],
        'providerOrderId': str(payment_data.get('providerOrderId', '') or '')[:120],
        'providerPaymentId': str(payment_data.get('providerPaymentId', '') or '')[:120],
        'createdAt': time_module.time(),
    }
    subscriptions_repo.set_transaction(db, transaction_id, record)
    return record


def upgrade_subscription(uid, plan_id, payment_data, *, db, time_module):
    if plan_id not in PLAN_TIERS:
        raise ValueError('Invalid subscription plan')
    if plan_id == PLAN_FREE:
        return downgrade_to_free(uid, db=db, time_module=time_module)
    if not str(payment_data.get('transactionId', '') or '').strip():
        raise ValueError('transactionId is required')
    now_ts = time_module.time()
    record = new_subscription_record(uid, plan_id, now_ts, expires_at=now_ts + PAID_PLAN_DURATION_SECONDS)
    record['payment'] = {
        'transactionId': str(payment_data.get('transactionId', '') or ''),
        'amount': PLAN_TIERS[plan_id]['price'],
        'currency': PLAN_TIERS[plan_id]['currency'],
    }
    subscriptions_repo.set_doc(db, uid, record)
    record_transaction(uid, plan_id, payment_data, db=db, time_module=time_module)
    return record


def cancel_subscription(uid, *, db, time_module):
    now_ts = time_module.time()
    subscriptions_repo.set_doc(db, uid, {
        'status': 'cancelled',
        'cancelledAt': now_ts,
        'updatedAt': now_ts,
    }, merge=True)
    return {'status': 'cancelled', 'cancelledAt': now_ts}


def list_transactions(uid, *, db, limit=50):
    transactions = []
    for doc in subscriptions_repo.list_transactions_by_uid(db, uid, limit):
        data = doc.to_dict() or {}
        data['id'] = doc.id
        transactions.append(data)
    transactions.sort(key=lambda item: item.get('createdAt', 0) or 0, reverse=True)
    return transactions


def subscription_analytics(*, db, limit=None):
    analytics = {
        'totalSubscriptions': 0,
        'activeSubscriptions': 0,
        'planDistribution': {plan_id: 0 for plan_id in PLAN_TIERS},
        'monthlyRevenue': 0,
    }
    for doc in subscriptions_repo.stream_all(db, limit):
        data = doc.to_dict() or {}
        analytics['totalSubscriptions'] += 1
        if data.get('status') != 'active':
            continue
        analytics['activeSubscriptions'] += 1
        plan_id = data.get('planId') if data.get('planId') in PLAN_TIERS else PLAN_FREE
        analytics['planDistribution'][plan_id] += 1
        analytics['monthlyRevenue'] += PLAN_TIERS[plan_id]['price']
    return analytics
