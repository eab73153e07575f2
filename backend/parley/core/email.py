"""Email sending via Resend API.

Simple HTTP POST to Resend for one-time verification codes.
"""

import logging

import httpx

from parley.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


async def send_otp_email(*, to_email: str, otp: str) -> None:
    """Send an email verification code via Resend.

    Runs as a background task after signup, so failures are logged and
    never raised.

    Args:
        to_email: Recipient email address.
        otp: Plain (unhashed) one-time code.
    """
    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        logger.warning("RESEND_API_KEY not configured; verification email not sent")
        return

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": "Verify your email - Parley",
                    "text": (
                        f"Your verification code is: {otp}\n\n"
                        f"This code expires in {settings.otp_ttl_minutes} minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except Exception:
        logger.warning("Failed to send verification email", exc_info=True)
