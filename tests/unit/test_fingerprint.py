"""Unit tests for request fingerprinting."""

from report_insights.application.services.fingerprint import generate_fingerprint


def test_fingerprint_is_deterministic():
    a = generate_fingerprint("Sales up 5%", "qwen", 0.3, 2000, "2024-06-01")
    b = generate_fingerprint("Sales up 5%", "qwen", 0.3, 2000, "2024-06-01")

    assert a == b
    assert len(a) == 64


def test_fingerprint_changes_with_every_input():
    base = generate_fingerprint("prompt", "qwen", 0.3, 2000, 1)

    assert generate_fingerprint("prompt!", "qwen", 0.3, 2000, 1) != base
    assert generate_fingerprint("prompt", "llama", 0.3, 2000, 1) != base
    assert generate_fingerprint("prompt", "qwen", 0.7, 2000, 1) != base
    assert generate_fingerprint("prompt", "qwen", 0.3, 1500, 1) != base
    assert generate_fingerprint("prompt", "qwen", 0.3, 2000, 2) != base


def test_fingerprint_without_data_version_differs_from_versioned():
    """A refreshed data set must never reuse an unversioned answer."""
    assert generate_fingerprint("p", "m", 0.3, 10) != generate_fingerprint("p", "m", 0.3, 10, "v1")


def test_fingerprint_handles_unicode_prompts():
    fp = generate_fingerprint("销售额同比增长 12%", "qwen", 0.3, 2000)
    assert fp == generate_fingerprint("销售额同比增长 12%", "qwen", 0.3, 2000)
