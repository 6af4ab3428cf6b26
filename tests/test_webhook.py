import json

from navsync.errors import FormatError, UpstreamError
from navsync.services.security import compute_signature, verify_signature
from navsync.services.sync import SyncResult

SECRET = "test-secret"


def _post(client, payload, signature=None, header="X-Gitee-Token"):
    body = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if signature is None:
        signature = compute_signature(body, SECRET)
    if signature:
        headers[header] = signature
    return client.post("/api/v1/webhook", data=body, headers=headers)


class _FakePipeline:
    def __init__(self, outcome):
        self.outcome = outcome
        self.runs = 0

    def run(self):
        self.runs += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _install(monkeypatch, outcome):
    pipeline = _FakePipeline(outcome)
    monkeypatch.setattr("navsync.api.routes.build_pipeline", lambda config: pipeline)
    return pipeline


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_app_config_has_no_session_secret(app):
    assert app.config["SECRET_KEY"] is None


def test_webhook_requires_signature(client, monkeypatch):
    pipeline = _install(monkeypatch, SyncResult())

    response = _post(client, {"ref": "refs/heads/main"}, signature="")
    assert response.status_code == 403

    response = _post(client, {"ref": "refs/heads/main"}, signature="bm9wZQ==")
    assert response.status_code == 403

    response = _post(client, {"ref": "refs/heads/main"}, signature="café")
    assert response.status_code == 403
    assert pipeline.runs == 0


def test_webhook_rejects_get(client):
    assert client.get("/api/v1/webhook").status_code == 405


def test_webhook_runs_sync_with_either_signature_header(client, monkeypatch):
    pipeline = _install(
        monkeypatch,
        SyncResult(version="v2", attempts=1, committed=True, added=["site-1"]),
    )

    response = _post(client, {"ref": "refs/heads/main"})
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "synced"
    assert payload["added"] == ["site-1"]
    assert payload["version"] == "v2"

    response = _post(client, {}, header="X-Gitee-Signature")
    assert response.status_code == 200
    assert pipeline.runs == 2


def test_webhook_reports_unchanged_store(client, monkeypatch):
    _install(monkeypatch, SyncResult(attempts=1, committed=False))

    response = _post(client, {})

    assert response.get_json()["status"] == "unchanged"


def test_webhook_maps_errors(client, monkeypatch):
    _install(monkeypatch, FormatError("bad store"))
    response = _post(client, {})
    assert response.status_code == 422
    assert response.get_json() == {"error": "bad store"}

    _install(monkeypatch, UpstreamError("github down", status_code=500))
    response = _post(client, {})
    assert response.status_code == 502
    assert response.get_json() == {"error": "github down"}


def test_webhook_ignores_pushes_to_other_branches(client, app, monkeypatch):
    pipeline = _install(monkeypatch, SyncResult())
    app.config["WEBHOOK_BRANCH"] = "main"

    response = _post(client, {"ref": "refs/heads/feature"})

    assert response.status_code == 200
    assert response.get_json()["status"] == "ignored"
    assert pipeline.runs == 0


def test_webhook_end_to_end_against_local_store(client, app, store_dir, monkeypatch):
    (store_dir / "bookmarks.html").write_text(
        '<DL><p><DT><A HREF="https://openai.com">OpenAI</A></DL><p>',
        encoding="utf-8",
    )
    monkeypatch.setattr(
        "navsync.services.icons.resolve_icon", lambda site_url, fetcher: None
    )

    response = _post(client, {"ref": "refs/heads/main"})

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["committed"] is True
    assert payload["created_categories"] == ["ai-tools"]
    assert payload["icons_unresolved"] == ["openai.com.ico"]
    text = (store_dir / "src/data/mock_data.js").read_text(encoding="utf-8")
    assert '"url": "https://openai.com"' in text


def test_verify_signature():
    body = b'{"hello": "world"}'
    signature = compute_signature(body, "s3cret")

    assert verify_signature(body, signature, "s3cret")
    assert not verify_signature(body, signature, "other")
    assert not verify_signature(body, signature, "")
    assert not verify_signature(body, None, "s3cret")
    assert not verify_signature(body, "café", "s3cret")
    assert not verify_signature(body, signature + "\u00e9", "s3cret")
