"""HTTP entrypoint that triggers pipeline runs (Cloud Run friendly)."""

from __future__ import annotations

import asyncio
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict

from flask import Flask, jsonify, request

from biomed_leads.core.config import get_settings
from biomed_leads.jobs.run_pipeline import PipelineOptions, run_pipeline

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
# One run at a time: stages share the store and the search log.
_executor = ThreadPoolExecutor(max_workers=1)

_OPTION_FIELDS = ("skip_locations", "skip_directory", "skip_search", "skip_enrich", "reset_search_log")

# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, no database round-trip."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "search_configured": bool(settings.serper_api_key),
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/pipeline")
def enqueue_pipeline() -> Any:
    """
    Enqueue a pipeline run.
    Optional JSON booleans: skip_locations, skip_directory, skip_search,
    skip_enrich, reset_search_log.
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "payload must be a JSON object"}), 400

    unknown = sorted(set(payload) - set(_OPTION_FIELDS))
    if unknown:
        return jsonify({"error": f"unknown fields: {', '.join(unknown)}"}), 400

    invalid = [name for name in _OPTION_FIELDS if name in payload and not isinstance(payload[name], bool)]
    if invalid:
        return jsonify({"error": f"fields must be boolean: {', '.join(invalid)}"}), 400

    options = PipelineOptions(**{name: payload.get(name, False) for name in _OPTION_FIELDS})
    logger.info("Queueing pipeline run: %s", options)
    _executor.submit(_run_job_safe, options)

    return jsonify({"data": {"status": "queued"}}), 202


# ---------- Internals ----------


def _run_job_safe(options: PipelineOptions) -> None:
    try:
        asyncio.run(run_pipeline(options))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Pipeline run failed: %s", exc)


def main() -> None:
    port = int(os.getenv("PORT") or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
