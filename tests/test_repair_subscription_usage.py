import importlib.util
from pathlib import Path

from conftest import FakeFirestore

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "repair_subscription_usage.py"


def _load_script():
    module_spec = importlib.util.spec_from_file_location("repair_subscription_usage", SCRIPT_PATH)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def test_repair_updates_fill_missing_counters_and_plan_type():
    script = _load_script()

    updates = script.build_repair_updates({"planId": "premium", "usage": {"pdfExports": 2}})

    assert updates["planType"] == "premium"
    assert updates["usage"]["pathwaysGenerated"] == 0
    assert "pdfExports" not in updates["usage"]
    assert script.build_repair_updates({
        "planId": "free",
        "planType": "free",
        "usage": {field: 0 for field in ("pathwaysGenerated", "uniGuideProUsage", "myStudyPathUsage", "universityComparisons", "pdfExports")},
    }) == {}


def test_dry_run_counts_without_writing():
    script = _load_script()
    db = FakeFirestore({"subscriptions": {"u1": {"planId": "pro"}, "u2": {"planId": "free", "planType": "free", "usage": {}}}})

    scanned, repaired = script.repair_subscriptions(db, apply_changes=False)

    assert (scanned, repaired) == (2, 2)
    assert "usage" not in db.doc("subscriptions", "u1")

    script.repair_subscriptions(db, apply_changes=True)
    assert db.doc("subscriptions", "u1")["planType"] == "pro"
    assert db.doc("subscriptions", "u2")["usage"]["myStudyPathUsage"] == 0
