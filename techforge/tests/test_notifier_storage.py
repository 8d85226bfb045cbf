"""
Test the Resend and Supabase HTTP adapters against httpx.MockTransport.
"""
import json
from datetime import datetime, timezone

import httpx
import pytest

from techforge.core.errors import UpstreamError
from techforge.features.assets.storage import SupabaseStorage, template_object_name
from techforge.features.entitlements.gate import template_titles
from techforge.features.notifications.notifier import ResendNotifier, download_links, render_license_email
from techforge.models.license import License, LicenseStatus
from techforge.models.plan import Plan


LICENSE = License(
    key="TF-AAAA-BBBB-CCCC-DDDD-EEEE-FFFF-GGGG",
    email="a@x.com",
    plan=Plan.PRO,
    status=LicenseStatus.ACTIVE,
    source_event_id="cs_1",
    created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
)


@pytest.fixture
def transport(monkeypatch):
    """Route every httpx.Client through a MockTransport; returns the captured requests."""
    real_client = httpx.Client
    state = {"requests": [], "handler": lambda request: httpx.Response(200, json={"id": "msg_1"})}

    def handler(request):
        state["requests"].append(request)
        return state["handler"](request)

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "Client", client_factory)
    return state


def _notifier(api_key="re_test"):
    return ResendNotifier(
        api_key,
        "TechForge <licenses@example.com>",
        brand="TechForge",
        download_base="https://api.example.com/",
        templates=template_titles(),
    )


def test_download_links():
    links = download_links("https://api.example.com/", "TF-1", {"saas": "SaaS Landing"})
    assert links == {"SaaS Landing": "https://api.example.com/download?template=saas&license=TF-1"}


def test_email_escapes_values():
    html = render_license_email("<Brand>", LICENSE, {"A&B": "https://x/?a=1&b=2"})
    assert "&lt;Brand&gt;" in html
    assert "A&amp;B" in html
    assert LICENSE.key in html


def test_send_license_posts_to_resend(transport):
    _notifier().send_license(LICENSE)

    [request] = transport["requests"]
    assert request.method == "POST"
    assert str(request.url) == "https://api.resend.com/emails"
    assert request.headers["Authorization"] == "Bearer re_test"
    body = json.loads(request.content)
    assert body["to"] == ["a@x.com"]
    assert body["subject"] == "Your TechForge License + Downloads"
    assert "template=ai" in body["html"]
    assert LICENSE.key in body["html"]


def test_send_license_rejected(transport):
    transport["handler"] = lambda request: httpx.Response(422, json={"message": "bad from"})
    with pytest.raises(UpstreamError) as excinfo:
        _notifier().send_license(LICENSE)
    assert excinfo.value.service == "resend"


def test_send_license_network_failure(transport):
    def boom(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    transport["handler"] = boom
    with pytest.raises(UpstreamError):
        _notifier().send_license(LICENSE)


def test_send_license_unconfigured(transport):
    with pytest.raises(UpstreamError):
        _notifier(api_key=None).send_license(LICENSE)
    assert transport["requests"] == []


def test_storage_fetch(transport):
    transport["handler"] = lambda request: httpx.Response(200, content=b"PK-zip-bytes")
    store = SupabaseStorage("https://proj.supabase.co/", "service-key", "templates")

    assert store.fetch(template_object_name("saas")) == b"PK-zip-bytes"

    [request] = transport["requests"]
    assert str(request.url) == "https://proj.supabase.co/storage/v1/object/templates/saas.zip"
    assert request.headers["Authorization"] == "Bearer service-key"
    assert request.headers["apikey"] == "service-key"


def test_storage_missing_object(transport):
    transport["handler"] = lambda request: httpx.Response(404, json={"error": "not_found"})
    store = SupabaseStorage("https://proj.supabase.co", "service-key", "templates")
    with pytest.raises(UpstreamError) as excinfo:
        store.fetch("ai.zip")
    assert excinfo.value.service == "storage"


def test_storage_unconfigured(transport):
    with pytest.raises(UpstreamError):
        SupabaseStorage(None, None, "templates").fetch("saas.zip")
    assert transport["requests"] == []
