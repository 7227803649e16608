"""Firestore accessors for the current pathway and pathway history."""

from .query_utils import apply_where, stream_limited

USER_PATHWAYS_COLLECTION = 'user_pathways'
PATHWAY_HISTORY_COLLECTION = 'pathway_history'


def user_pathway_doc_ref(db, uid):
    return db.collection(USER_PATHWAYS_COLLECTION).document(uid)


def get_user_pathway_doc(db, uid):
    return user_pathway_doc_ref(db, uid).get()


def replace_user_pathway(db, uid, pathway):
    # Whole-record replace; never merged with the previous pathway.
    return user_pathway_doc_ref(db, uid).set(pathway, merge=False)


def history_doc_ref(db, entry_id):
    return db.collection(PATHWAY_HISTORY_COLLECTION).document(entry_id)


def create_history_doc_ref(db):
    return db.collection(PATHWAY_HISTORY_COLLECTION).document()


def get_history_doc(db, entry_id):
    return history_doc_ref(db, entry_id).get()


def list_history_by_uid(db, uid, limit):
    return stream_limited(apply_where(db.collection(PATHWAY_HISTORY_COLLECTION), 'userId', '==', uid), limit)
