#!/usr/bin/env python3
import argparse
import json
import os
from typing import Tuple

import firebase_admin
from firebase_admin import credentials, firestore

from eduvox.repositories import subscriptions_repo
from eduvox.services.entitlement_service import USAGE_FIELDS


def init_firestore():
    if os.path.exists("firebase-credentials.json"):
        cred = credentials.Certificate("firebase-credentials.json")
    else:
        raw = (os.getenv("FIREBASE_CREDENTIALS", "") or "").strip()
        if not raw:
            raise RuntimeError("Missing firebase-credentials.json and FIREBASE_CREDENTIALS env var.")
        cred = credentials.Certificate(json.loads(raw))
    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred)
    return firestore.client()


def build_repair_updates(data):
    """Return the merge payload that completes one subscription document."""
    updates = {}
    usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
    missing_usage = {field: 0 for field in USAGE_FIELDS if not isinstance(usage.get(field), int)}
    if missing_usage:
        updates["usage"] = missing_usage
    plan_id = str(data.get("planId", "") or "").strip() or "free"
    if not data.get("planId"):
        updates["planId"] = plan_id
    if not data.get("planType"):
        updates["planType"] = plan_id
    return updates


def repair_subscriptions(db, apply_changes: bool) -> Tuple[int, int]:
    scanned = 0
    repaired = 0
    for doc in subscriptions_repo.stream_all(db):
        scanned += 1
        updates = build_repair_updates(doc.to_dict() or {})
        if not updates:
            continue
        repaired += 1
        if apply_changes:
            doc.reference.set(updates, merge=True)
    return scanned, repaired


def main():
    parser = argparse.ArgumentParser(description="Fill missing usage counters and planType on subscription documents.")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes. Without this flag, the script runs in dry-run mode.",
    )
    args = parser.parse_args()

    db = init_firestore()
    scanned, matched = repair_subscriptions(db, apply_changes=args.apply)
    mode = "APPLY" if args.apply else "DRY-RUN"
    print(f"[{mode}] scanned={scanned} subscriptions, docs_needing_repair={matched}")
    if not args.apply:
        print("No changes were written. Re-run with --apply to persist.")


if __name__ == "__main__":
    main()
