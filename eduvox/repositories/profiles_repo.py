"""Firestore accessors for academic profiles."""

PROFILES_COLLECTION = 'profiles'


def doc_ref(db, uid):
    return db.collection(PROFILES_COLLECTION).document(uid)


def get_doc(db, uid):
    return doc_ref(db, uid).get()


def set_doc(db, uid, data, merge=True):
    return doc_ref(db, uid).set(data, merge=merge)
