"""
Outreach transport — Resend email API + the email / DM copy for a lead.

send() never raises for delivery problems: a failed POST, a non-2xx answer,
or an open breaker all come back as False and are logged.
"""
import html
import logging

import requests

from leadgen.config import OutreachSettings
from leadgen.errors import LeadgenError
from leadgen.pipeline.base import OutreachTransport

logger = logging.getLogger('services.email')

WAITLIST_URL = 'https://xeinst.com/waitlist'


class ResendError(LeadgenError):
    """Resend answered with a non-2xx status."""


def generate_email_content(lead) -> str:
    """HTML body for the first-contact email."""
    repo_name = html.escape(lead.repo_name or '')
    description = html.escape(lead.repo_description or 'Your workflow looks amazing!')
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Join Xeinst - Earn from your n8n workflows</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #667eea; padding: 30px; border-radius: 10px; color: white; text-align: center;">
    <h1 style="margin: 0; font-size: 28px;">Xeinst</h1>
    <p style="margin: 10px 0 0 0;">Monetize your n8n workflows</p>
  </div>
  <div style="background: #f8f9fa; padding: 30px; border-radius: 10px; margin-top: 20px;">
    <h2 style="margin-top: 0;">Hey there!</h2>
    <p>I came across your n8n workflow <strong>"{repo_name}"</strong> on GitHub and really liked it.</p>
    <blockquote style="background: #e8f4fd; padding: 20px; border-left: 4px solid #3498db; font-style: italic;">
      "{description}"
    </blockquote>
    <p>We're building <strong>Xeinst</strong>, a platform where developers can earn money by
    listing and selling their n8n workflows and automation agents.</p>
    <ul>
      <li><strong>Monetize your workflows</strong> and earn passive income</li>
      <li><strong>Reach a global audience</strong> of automation builders</li>
      <li><strong>Simple listing</strong> with minimal setup</li>
    </ul>
    <p style="text-align: center; margin: 30px 0;">
      <a href="{WAITLIST_URL}" style="background: #764ba2; color: white; padding: 15px 30px; text-decoration: none; border-radius: 25px; font-weight: bold;">Join the Waitlist</a>
    </p>
    <p>We're in beta and looking for early adopters. Would you be interested in joining the waitlist?</p>
    <p>Best regards,<br>The Xeinst Team</p>
    <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
    <p style="font-size: 12px; color: #666; text-align: center;">
      You received this email because we found your n8n workflow on GitHub.
      Reply with "unsubscribe" and we won't contact you again.
    </p>
  </div>
</body>
</html>
"""


def generate_dm_script(lead) -> str:
    """One-line direct message for leads without a public email."""
    return (
        f'Hey {lead.github_username}, I saw your n8n workflow "{lead.repo_name}" '
        f'and wanted to connect! We\'re building Xeinst, a marketplace for n8n workflows: {WAITLIST_URL}'
    )


class ResendTransport(OutreachTransport):

    def __init__(self, settings: OutreachSettings = None, session: requests.Session = None,
                 breaker=None, timeout: float = 15):
        self.settings = settings or OutreachSettings()
        self.session = session or requests.Session()
        self.breaker = breaker
        self.timeout = timeout

    def _post(self, payload):
        resp = self.session.post(
            f"{self.settings.resend_api_url.rstrip('/')}/emails",
            json=payload,
            headers={'Authorization': f'Bearer {self.settings.resend_api_key}'},
            timeout=self.timeout,
        )
        if resp.status_code >= 400:
            raise ResendError(f"HTTP {resp.status_code}: {resp.text[:200]}")
        return resp.json() if resp.content else {}

    def send(self, lead) -> bool:
        if not lead.email:
            logger.info("No email available for %s", lead.github_username)
            return False
        if not self.settings.resend_api_key:
            logger.error("RESEND_API_KEY not set — cannot email %s", lead.email)
            return False

        payload = {
            'from': self.settings.from_email,
            'to': [lead.email],
            'subject': self.settings.subject,
            'html': self.generate_email_content(lead),
        }
        try:
            if self.breaker is None:
                data = self._post(payload)
            else:
                data = self.breaker.call(self._post, payload)
        except (requests.RequestException, LeadgenError, ValueError) as e:
            logger.error("Error sending email to %s: %s", lead.email, e)
            return False

        logger.info("Email sent to %s (id=%s)", lead.email, data.get('id'))
        return True

    def generate_email_content(self, lead) -> str:
        return generate_email_content(lead)

    def generate_dm_script(self, lead) -> str:
        return generate_dm_script(lead)


def build_transport(settings: OutreachSettings = None) -> ResendTransport:
    from leadgen.services.circuit_breaker import get_breaker
    return ResendTransport(settings or OutreachSettings.from_env(), breaker=get_breaker('resend'))
