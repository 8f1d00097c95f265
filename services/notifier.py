import logging
import re
from datetime import datetime, timezone
from typing import Optional, Tuple
from urllib.parse import quote

import requests

from models import AidRequest, GeoRecord, Incident, NotifyChannel, SendResult
from services.classifier import DistrictClassifier
from services.errors import NotificationSendFailure
from services.taxonomy import priority_alert_label, severity_alert_label
from utils.geo import format_coordinates, maps_url

logger = logging.getLogger(__name__)


RULE = "─" * 17
FOOTER = (
    "─" * 45 + "\n"
    "This is an automated alert from LankaSafe HQ\n"
    "Emergency Response System"
)


def officer_email(district: str, domain: str) -> str:
    """Placeholder address for a district officer: lower-cased name with whitespace removed."""
    local_part = re.sub(r"\s+", "", district.lower())
    return f"{local_part}@{domain}"


def format_timestamp(ms: Optional[int], tz: timezone) -> str:
    if not ms:
        return "Unknown"
    when = datetime.fromtimestamp(ms / 1000, tz)
    return f"{when.strftime('%b')} {when.day}, {when.year}, {when.strftime('%I:%M %p').lstrip('0')}"


def format_incident_email(incident: Incident, district: str, tz: timezone) -> Tuple[str, str]:
    label = severity_alert_label(incident.severity)
    severity = incident.severity if incident.severity is not None else "?"
    subject = f"[{label}] {incident.type} Incident in {district} District"

    lines = [
        "Dear District Officer,",
        "",
        "An incident has been reported in your district that requires immediate attention.",
        "",
        "INCIDENT DETAILS:",
        RULE,
        f"Type: {incident.type}",
        f"Severity: {label} ({severity}/5)",
        f"District: {district}",
        f"Reported At: {format_timestamp(incident.created_ms, tz)}",
    ]
    if incident.location:
        lines.append(f"Location: {incident.location}")
    if incident.description:
        lines += ["", "Description:", incident.description]
    lines += [
        "",
        "LOCATION:",
        "─" * 9,
        f"Coordinates: {format_coordinates(incident.latitude, incident.longitude)}",
        f"Google Maps: {maps_url(incident.latitude, incident.longitude)}",
        "",
        f"INCIDENT ID: {incident.id}",
        "",
        "Please take necessary action and update the incident status in the LankaSafe HQ Dashboard.",
    ]
    if incident.cloud_image_urls:
        lines += ["", f"Images Available: {len(incident.cloud_image_urls)} photo(s) attached to this incident"]
    lines += ["", FOOTER]
    return subject, "\n".join(lines)


def format_aid_request_email(aid_request: AidRequest, district: str, tz: timezone) -> Tuple[str, str]:
    label = priority_alert_label(aid_request.priority_level)
    priority = aid_request.priority_level if aid_request.priority_level is not None else "?"
    subject = f"[{label} PRIORITY] Aid Request in {district} District"

    lines = [
        "Dear District Officer,",
        "",
        "An aid request has been submitted in your district that requires assistance.",
        "",
        "AID REQUEST DETAILS:",
        "─" * 19,
        f"Priority: {label} ({priority}/5)",
        f"District: {district}",
        f"Requested At: {format_timestamp(aid_request.created_ms, tz)}",
        "",
        "Required Aid:",
    ]
    lines += [f"• {aid_type}" for aid_type in aid_request.aid_types] or ["• (not specified)"]
    if aid_request.description:
        lines += ["", "Additional Information:", aid_request.description]
    if aid_request.requester_name or aid_request.contact_number:
        lines += ["", "CONTACT INFORMATION:", "─" * 19]
        if aid_request.requester_name:
            lines.append(f"Contact Person: {aid_request.requester_name}")
        if aid_request.contact_number:
            lines.append(f"Phone: {aid_request.contact_number}")
        if aid_request.number_of_people:
            lines.append(f"Number of People: {aid_request.number_of_people}")
    lines += [
        "",
        "LOCATION:",
        "─" * 9,
        f"Coordinates: {format_coordinates(aid_request.latitude, aid_request.longitude)}",
        f"Google Maps: {maps_url(aid_request.latitude, aid_request.longitude)}",
        "",
        f"REQUEST ID: {aid_request.id}",
        "",
        "Please coordinate with the requesting party and provide necessary assistance.",
        "",
        FOOTER,
    ]
    return subject, "\n".join(lines)


def mailto_uri(to_address: str, subject: str, body: str) -> str:
    return f"mailto:{to_address}?subject={quote(subject, safe='')}&body={quote(body, safe='')}"


class MailtoRelay:
    """Zero-network fallback: hands the message to the operator's own mail client."""

    channel = NotifyChannel.MAILTO

    def send(self, to_address: str, subject: str, body: str) -> Optional[str]:
        return mailto_uri(to_address, subject, body)


class EmailJSRelay:
    """Sends through the EmailJS REST API using a template with to_email/subject/message params."""

    channel = NotifyChannel.RELAY

    def __init__(
        self,
        service_id: str,
        template_id: str,
        public_key: str,
        private_key: Optional[str] = None,
        api_url: str = "https://api.emailjs.com/api/v1.0/email/send",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.private_key = private_key
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, to_address: str, subject: str, body: str) -> Optional[str]:
        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": {"to_email": to_address, "subject": subject, "message": body},
        }
        if self.private_key:
            payload["accessToken"] = self.private_key
        try:
            response = self.session.post(self.api_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NotificationSendFailure(f"EmailJS send to {to_address} failed: {exc}") from exc
        return None


class NotificationRouter:
    def __init__(self, classifier: DistrictClassifier, relays: dict, email_domain: str, tz: timezone):
        self.classifier = classifier
        self.relays = relays
        self.email_domain = email_domain
        self.tz = tz

    def compose(self, record: GeoRecord) -> Tuple[str, str, str, str]:
        """Return (district, to_address, subject, body). Raises NoDistrictMatch for unmapped points."""
        district = self.classifier.require_district(record.latitude, record.longitude)
        to_address = officer_email(district, self.email_domain)
        if isinstance(record, Incident):
            subject, body = format_incident_email(record, district, self.tz)
        elif isinstance(record, AidRequest):
            subject, body = format_aid_request_email(record, district, self.tz)
        else:
            raise TypeError(f"No alert template for {type(record).__name__}")
        return district, to_address, subject, body

    def route_and_notify(self, record: GeoRecord, channel: NotifyChannel) -> SendResult:
        channel = NotifyChannel(channel)
        relay = self.relays.get(channel)
        if relay is None:
            raise NotificationSendFailure(f"Notification channel {channel.value!r} is not configured")

        district, to_address, subject, body = self.compose(record)
        try:
            uri = relay.send(to_address, subject, body)
        except NotificationSendFailure:
            logger.error("Failed to send alert for %s to %s", record.id, to_address, exc_info=True)
            raise
        logger.info("Alert for %s sent to %s via %s", record.id, to_address, channel.value)
        return SendResult(
            channel=channel,
            district=district,
            to_address=to_address,
            subject=subject,
            mailto_uri=uri,
        )
