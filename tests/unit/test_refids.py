"""Unit tests for thread reference id generation."""

from __future__ import annotations

from quoteflow.models import Thread
from quoteflow.workflow.refids import next_ref_id, thread_refs


def test_seed_used_when_no_ids_exist():
    assert next_ref_id([]) == "HRS-QN-25001"


def test_next_id_is_max_plus_one():
    assert next_ref_id(["HRS-QN-25001", "HRS-QN-25003"]) == "HRS-QN-25004"


def test_gaps_below_max_are_not_reused():
    assert next_ref_id(["HRS-QN-25010", "HRS-QN-25002"]) == "HRS-QN-25011"


def test_trailing_suffix_is_ignored():
    assert next_ref_id(["HRS-QN-25003-H45"]) == "HRS-QN-25004"


def test_match_is_case_insensitive():
    assert next_ref_id(["hrs-qn-25020"]) == "HRS-QN-25021"


def test_unrelated_and_missing_refs_are_skipped():
    refs = [None, "", "PO-99999", "HRS-QN-7", "HRS-QN-25005"]
    assert next_ref_id(refs) == "HRS-QN-25006"


def test_custom_prefix_and_seed():
    assert next_ref_id([], prefix="ACME", seed=100) == "ACME-101"
    assert next_ref_id(["ACME-150", "HRS-QN-99999"], prefix="ACME", seed=100) == "ACME-151"


def test_thread_refs_falls_back_to_thread_id():
    threads = [
        Thread(thread_id="t-1", user_ref_id="HRS-QN-25002"),
        Thread(thread_id="HRS-QN-25009"),
    ]
    assert thread_refs(threads) == ["HRS-QN-25002", "HRS-QN-25009"]
