from datetime import datetime, timedelta, timezone

import pytest
import requests

from models import ALL_DISTRICTS, AidRequest, Incident, NotifyChannel
from services.errors import NoDistrictMatch, NotificationSendFailure
from services.notifier import (
    EmailJSRelay,
    MailtoRelay,
    NotificationRouter,
    format_timestamp,
    mailto_uri,
    officer_email,
)
from services.records import filter_by_district
from services.store import parse_documents

from conftest import RecordingRelay

COLOMBO_TIME = timezone(timedelta(minutes=330))


@pytest.fixture
def router(classifier, relay):
    return NotificationRouter(
        classifier,
        {NotifyChannel.RELAY: relay, NotifyChannel.MAILTO: MailtoRelay()},
        email_domain="mailinator.com",
        tz=COLOMBO_TIME,
    )


def flood():
    return Incident.model_validate(
        {
            "id": "inc-1",
            "type": "Flood",
            "severity": 5,
            "latitude": 6.6828,
            "longitude": 80.3992,
            "timestamp": 1790000000000,
            "description": "Water rising fast",
            "cloudImageUrls": ["https://example.org/1.jpg", "https://example.org/2.jpg"],
        }
    )


def test_officer_email_strips_whitespace():
    assert officer_email("Nuwara Eliya", "mailinator.com") == "nuwaraeliya@mailinator.com"
    assert officer_email("Colombo", "gov.example") == "colombo@gov.example"


def test_incident_alert(router, relay):
    result = router.route_and_notify(flood(), NotifyChannel.RELAY)

    assert result.district == "Ratnapura"
    assert result.to_address == "ratnapura@mailinator.com"
    assert result.subject == "[CRITICAL] Flood Incident in Ratnapura District"
    assert len(relay.calls) == 1
    to_address, subject, body = relay.calls[0]
    assert to_address == "ratnapura@mailinator.com"
    assert subject == result.subject
    assert "Severity: CRITICAL (5/5)" in body
    assert "Coordinates: 6.682800, 80.399200" in body
    assert "https://www.google.com/maps?q=6.6828,80.3992" in body
    assert "INCIDENT ID: inc-1" in body
    assert "2 photo(s)" in body
    assert "Water rising fast" in body


def test_aid_request_alert(router, relay):
    aid = AidRequest.model_validate(
        {
            "id": "aid-9",
            "aid_types": '["Food", "Water"]',
            "priority_level": 4,
            "latitude": 6.90,
            "longitude": 79.85,
            "created_at": 1790000000000,
            "requester_name": "S. Perera",
            "contact_number": "+94770000001",
            "number_of_people": 12,
        }
    )
    result = router.route_and_notify(aid, NotifyChannel.RELAY)

    assert result.subject == "[URGENT PRIORITY] Aid Request in Colombo District"
    body = relay.calls[0][2]
    assert "• Food\n• Water" in body
    assert "Contact Person: S. Perera" in body
    assert "Number of People: 12" in body
    assert "REQUEST ID: aid-9" in body


def test_unmapped_point_sends_nothing(router, relay):
    aid = AidRequest.model_validate({"id": "lost", "priority_level": 5, "latitude": 10.0, "longitude": 85.0})
    with pytest.raises(NoDistrictMatch):
        router.route_and_notify(aid, NotifyChannel.RELAY)
    assert relay.calls == []


def test_relay_failure_is_raised_once_without_retry(classifier):
    failing = RecordingRelay(fail=True)
    router = NotificationRouter(classifier, {NotifyChannel.RELAY: failing}, "mailinator.com", COLOMBO_TIME)
    with pytest.raises(NotificationSendFailure):
        router.route_and_notify(flood(), NotifyChannel.RELAY)
    assert len(failing.calls) == 1


def test_unconfigured_channel(classifier):
    router = NotificationRouter(classifier, {NotifyChannel.MAILTO: MailtoRelay()}, "mailinator.com", COLOMBO_TIME)
    with pytest.raises(NotificationSendFailure):
        router.route_and_notify(flood(), NotifyChannel.RELAY)


def test_mailto_channel_returns_uri(router, relay):
    result = router.route_and_notify(flood(), NotifyChannel.MAILTO)
    assert result.mailto_uri.startswith("mailto:ratnapura@mailinator.com?subject=%5BCRITICAL%5D%20Flood")
    assert "&body=Dear%20District%20Officer%2C" in result.mailto_uri
    assert relay.calls == []


def test_mailto_uri_encodes_everything():
    assert mailto_uri("a@b.c", "x & y", "line1\nline2") == "mailto:a@b.c?subject=x%20%26%20y&body=line1%0Aline2"


def test_format_timestamp():
    when = datetime(2026, 10, 19, 9, 5, tzinfo=COLOMBO_TIME)
    assert format_timestamp(int(when.timestamp() * 1000), COLOMBO_TIME) == "Oct 19, 2026, 9:05 AM"
    assert format_timestamp(None, COLOMBO_TIME) == "Unknown"


def test_router_and_filter_agree_on_districts(router, classifier, seed_documents):
    records = parse_documents("incidents", seed_documents["incidents"]) + parse_documents(
        "aid_requests", seed_documents["aid_requests"]
    )
    for record in records:
        try:
            district = router.compose(record)[0]
        except NoDistrictMatch:
            district = "Unknown"
        assert record in filter_by_district(records, district, classifier)
        for other in classifier.gazetteer.names():
            if other != district:
                assert record not in filter_by_district(records, other, classifier)
    assert filter_by_district(records, ALL_DISTRICTS, classifier) == records


class _Response:
    def __init__(self, status_code):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class _Session:
    def __init__(self, status_code=200, exc=None):
        self.status_code = status_code
        self.exc = exc
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.exc is not None:
            raise self.exc
        return _Response(self.status_code)


def test_emailjs_payload():
    session = _Session()
    relay = EmailJSRelay("service_x", "template_y", "public_z", private_key="secret", timeout=3, session=session)
    assert relay.send("colombo@mailinator.com", "Subject", "Body") is None

    url, payload, timeout = session.posts[0]
    assert url == "https://api.emailjs.com/api/v1.0/email/send"
    assert timeout == 3
    assert payload["service_id"] == "service_x"
    assert payload["template_id"] == "template_y"
    assert payload["user_id"] == "public_z"
    assert payload["accessToken"] == "secret"
    assert payload["template_params"] == {
        "to_email": "colombo@mailinator.com",
        "subject": "Subject",
        "message": "Body",
    }


@pytest.mark.parametrize("session", [_Session(status_code=400), _Session(exc=requests.ConnectionError("down"))])
def test_emailjs_failures_become_send_failures(session):
    relay = EmailJSRelay("s", "t", "p", session=session)
    with pytest.raises(NotificationSendFailure):
        relay.send("colombo@mailinator.com", "Subject", "Body")
    assert len(session.posts) == 1


def test_officer_email_for_every_district(gazetteer):
    for name in gazetteer.names():
        address = officer_email(name, "mailinator.com")
        assert " " not in address
        assert address.endswith("@mailinator.com")
