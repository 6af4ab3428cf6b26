from __future__ import annotations

from flask import current_app, jsonify, request

from navsync.api import api_bp
from navsync.errors import FormatError, UpstreamError
from navsync.services.security import webhook_signature_required
from navsync.services.sync import build_pipeline


def _pushed_branch(payload) -> str | None:
    if not isinstance(payload, dict):
        return None
    ref = payload.get("ref")
    if not isinstance(ref, str) or not ref:
        return None
    return ref.removeprefix("refs/heads/")


@api_bp.get("/health")
def health():
    return jsonify({"status": "ok"})


@api_bp.post("/webhook")
@webhook_signature_required
def webhook():
    watched = current_app.config.get("WEBHOOK_BRANCH")
    branch = _pushed_branch(request.get_json(silent=True))
    if watched and branch and branch != watched:
        return jsonify({"status": "ignored", "reason": f"push to {branch}"})

    try:
        result = build_pipeline(current_app.config).run()
    except FormatError as exc:
        current_app.logger.error("Stored bookmark data is malformed: %s", exc)
        return jsonify({"error": str(exc)}), 422
    except UpstreamError as exc:
        current_app.logger.error("Sync aborted by upstream failure: %s", exc)
        return jsonify({"error": str(exc)}), 502

    payload = result.as_dict()
    payload["status"] = "synced" if result.committed else "unchanged"
    return jsonify(payload)
