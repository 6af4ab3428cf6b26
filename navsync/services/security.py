import base64
import hashlib
import hmac
from functools import wraps

from flask import current_app, jsonify, request

SIGNATURE_HEADERS = ("X-Gitee-Token", "X-Gitee-Signature")


def compute_signature(payload: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(payload: bytes, signature: str | None, secret: str | None) -> bool:
    if not secret or not signature:
        return False
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(
        expected.encode("ascii"),
        signature.strip().encode("utf-8", "surrogateescape"),
    )


def _request_signature() -> str | None:
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


def webhook_signature_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        signature = _request_signature()
        if not signature:
            current_app.logger.warning("Webhook call without a signature header")
            return jsonify({"error": "signature required"}), 403
        secret = current_app.config.get("WEBHOOK_SECRET")
        if not verify_signature(request.get_data(), signature, secret):
            current_app.logger.warning("Webhook call with an invalid signature")
            return jsonify({"error": "invalid signature"}), 403
        return func(*args, **kwargs)

    return wrapped
