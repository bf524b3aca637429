"""Request fingerprinting — deterministic cache keys for analysis requests."""

import hashlib
import json


def generate_fingerprint(
    prompt: str,
    model_id: str,
    temperature: float | None,
    max_tokens: int | None,
    data_version: str | int | float | None = None,
) -> str:
    """Derive an opaque cache key from everything that shapes the answer.

    The data-version marker (usually the report data timestamp) is part of
    the key so a data refresh never serves a stale analysis.
    """
    parts = [prompt, model_id, temperature, max_tokens, data_version]
    canonical = json.dumps(parts, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
