"""Firestore accessors for subscriptions and subscription transactions."""

from .query_utils import apply_where, stream_limited

SUBSCRIPTIONS_COLLECTION = 'subscriptions'
TRANSACTIONS_COLLECTION = 'subscription_transactions'


def doc_ref(db, uid):
    return db.collection(SUBSCRIPTIONS_COLLECTION).document(uid)


def get_doc(db, uid):
    return doc_ref(db, uid).get()


def set_doc(db, uid, data, merge=False):
    return doc_ref(db, uid).set(data, merge=merge)


def increment_usage(db, uid, usage_field, firestore_module, updated_at):
    return doc_ref(db, uid).set({
        'usage': {usage_field: firestore_module.Increment(1)},
        'updatedAt': updated_at,
    }, merge=True)


def stream_all(db, limit=None):
    return stream_limited(db.collection(SUBSCRIPTIONS_COLLECTION), limit)


def set_transaction(db, transaction_id, data):
    return db.collection(TRANSACTIONS_COLLECTION).document(transaction_id).set(data)


def list_transactions_by_uid(db, uid, limit):
    return stream_limited(apply_where(db.collection(TRANSACTIONS_COLLECTION), 'userId', '==', uid), limit)
