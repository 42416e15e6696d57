import asyncio

import requests

from transport_backend.infrastructure.whatsapp import CloudApiWhatsApp, NullWhatsApp, format_phone


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers})
        if self.error:
            raise self.error
        return self.response


def test_format_phone():
    assert format_phone("0803 123 4567") == "2348031234567"
    assert format_phone("+234 803-123-4567") == "2348031234567"
    assert format_phone("") == ""


def test_template_message_posted_to_cloud_api():
    session = FakeSession(FakeResponse({"messages": [{"id": "wamid.ABC"}]}))
    sender = CloudApiWhatsApp("token", "12345", session=session)

    result = asyncio.run(sender.send_whatsapp("08031234567", "driver_assigned", ["Musa", "R1"]))

    assert result.success
    assert result.message_id == "wamid.ABC"
    call = session.calls[0]
    assert call["url"] == "https://graph.facebook.com/v18.0/12345/messages"
    assert call["headers"]["Authorization"] == "Bearer token"
    assert call["json"]["to"] == "2348031234567"
    assert call["json"]["template"]["name"] == "driver_assigned"
    params = call["json"]["template"]["components"][0]["parameters"]
    assert [p["text"] for p in params] == ["Musa", "R1"]


def test_transport_errors_come_back_as_results():
    session = FakeSession(error=requests.ConnectionError("no route to host"))
    result = asyncio.run(CloudApiWhatsApp("t", "1", session=session).send_whatsapp("0803", "route_completed", []))
    assert not result.success
    assert "no route to host" in result.error


def test_http_errors_come_back_as_results():
    session = FakeSession(FakeResponse({}, status=401))
    result = asyncio.run(CloudApiWhatsApp("t", "1", session=session).send_whatsapp("0803", "route_completed", []))
    assert not result.success


def test_missing_phone_is_not_sent():
    session = FakeSession(FakeResponse({}))
    result = asyncio.run(CloudApiWhatsApp("t", "1", session=session).send_whatsapp("", "driver_assigned", []))
    assert not result.success
    assert session.calls == []


def test_null_sender_reports_not_configured():
    assert not asyncio.run(NullWhatsApp().send_whatsapp("0803", "driver_assigned", [])).success
