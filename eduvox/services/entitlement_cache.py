"""Thread-safe per-user entitlement context cache."""

from eduvox.services.entitlement_service import EntitlementContext


def get_context(uid, *, contexts_store, lock):
    with lock:
        context = contexts_store.get(uid)
        if context is None:
            context = EntitlementContext(user_id=uid)
            contexts_store[uid] = context
        return context


def evict_context(uid, *, contexts_store, lock):
    with lock:
        return contexts_store.pop(uid, None)


def needs_refresh(context, *, ttl_seconds, now_ts):
    if context is None or not context.loaded:
        return True
    return (now_ts - context.loaded_at) >= ttl_seconds


def refresh_context(uid, loader, *, contexts_store, lock, ttl_seconds, time_module, logger=None, force=False):
    """Reload the user's subscription snapshot when it is missing or expired.

    A failed reload keeps whatever the context already holds: a loaded
    context keeps its last good snapshot, an unloaded one stays in the
    loading phase so the fallback policy applies.
    """
    context = get_context(uid, contexts_store=contexts_store, lock=lock)
    now_ts = time_module.time()
    if not force and not needs_refresh(context, ttl_seconds=ttl_seconds, now_ts=now_ts):
        return context
    try:
        subscription = loader(uid)
    except Exception as exc:
        if logger is not None:
            logger.warning(f"Could not refresh subscription for user {uid}: {exc}")
        return context
    with lock:
        context.apply_snapshot(subscription, now_ts=now_ts)
    return context
