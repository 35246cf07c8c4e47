"""
Banco de Chile credit card notification emails (via the Gmail API).

A notification body looks like:

    Te informamos que se ha realizado una compra por $12.345 con cargo a
    Cuenta ****1234 en SUPERMERCADO LIDER el 05/03/2024 14:22.

Amounts use dots as thousand separators and have no decimals (CLP).
"""

import base64
import logging
import re
from datetime import date, timedelta
from decimal import Decimal

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..errors import FetchError
from ..schemas.transaction import Transaction
from .base import BaseSource

logger = logging.getLogger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
# Gmail date operators: after: is inclusive, before: is exclusive
QUERY_TEMPLATE = "from:bancochile.cl subject:(Tarjeta de Crédito) after:{after} before:{before}"

_AMOUNT_RE = re.compile(r"\$(\d{1,3}(?:\.\d{3})*)")
_DATE_RE = re.compile(r"(\d{2})/(\d{2})/(\d{4})")
_MERCHANT_RE = re.compile(r"en\s+([^\n]+?)\s+el\s+\d{2}/\d{2}/\d{4}", re.IGNORECASE)


class GmailError(FetchError):
    """Gmail API request failed."""

    pass


def parse_bancochile_email(text: str | None) -> Transaction | None:
    """Parse a notification body; None if amount or date are missing or invalid."""
    if not text:
        return None

    amount_match = _AMOUNT_RE.search(text)
    date_match = _DATE_RE.search(text)
    if not amount_match or not date_match:
        return None

    # Expenses are negative
    amount = -Decimal(amount_match.group(1).replace(".", ""))
    day, month, year = date_match.groups()
    try:
        purchase_date = date(int(year), int(month), int(day))
    except ValueError:
        logger.debug("Ignoring notification with invalid date: %s", date_match.group(0))
        return None

    merchant_match = _MERCHANT_RE.search(text)
    payee = merchant_match.group(1).strip() if merchant_match else "Unknown"

    return Transaction(date=purchase_date.isoformat(), amount=amount, payee=payee)


def extract_message_body(message: dict) -> str:
    """Decode the body of a Gmail API message, preferring text/plain."""
    payload = message.get("payload", {})

    def _find(part: dict) -> str:
        parts = part.get("parts")
        if parts:
            plain = next((p for p in parts if p.get("mimeType") == "text/plain"), None)
            return _find(plain or parts[0])
        return part.get("body", {}).get("data", "")

    data = _find(payload)
    if not data:
        return ""
    # Gmail bodies are base64url without guaranteed padding
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


class GmailSource(BaseSource):
    """Card purchases parsed from Banco de Chile notification emails."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        user: str = "me",
        service=None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.user = user
        self._service = service

    @property
    def name(self) -> str:
        return "gmail"

    def _get_service(self):
        """Build an authenticated Gmail API service from the refresh token."""
        if self._service is None:
            if not (self.client_id and self.client_secret and self.refresh_token):
                raise GmailError("Missing Gmail OAuth credentials.", status_code=401)
            creds = Credentials(
                None,
                refresh_token=self.refresh_token,
                client_id=self.client_id,
                client_secret=self.client_secret,
                token_uri=TOKEN_URI,
                scopes=GMAIL_SCOPES,
            )
            self._service = build("gmail", "v1", credentials=creds, cache_discovery=False)
        return self._service

    def fetch_movements(self, start: date, end: date) -> list[Transaction]:
        service = self._get_service()
        query = QUERY_TEMPLATE.format(
            after=start.strftime("%Y/%m/%d"),
            before=(end + timedelta(days=1)).strftime("%Y/%m/%d"),
        )

        try:
            messages = []
            request = service.users().messages().list(userId=self.user, q=query)
            while request is not None:
                response = request.execute()
                messages.extend(response.get("messages", []))
                request = service.users().messages().list_next(request, response)
        except HttpError as e:
            logger.error("Gmail search failed: %s", e)
            raise GmailError(f"Gmail search failed: {e}", status_code=e.resp.status) from e

        movements: list[Transaction] = []
        for meta in messages:
            try:
                message = (
                    service.users()
                    .messages()
                    .get(userId=self.user, id=meta["id"], format="full")
                    .execute()
                )
                tx = parse_bancochile_email(extract_message_body(message))
            except (HttpError, ValueError) as e:
                logger.warning("Failed to parse Gmail message %s: %s", meta.get("id"), e)
                continue

            if tx is None:
                continue
            # Mail arrival and purchase date can differ by a day
            if not start.isoformat() <= tx.date <= end.isoformat():
                logger.debug("Skipping movement %s outside the sync window", tx.date)
                continue

            tx.reference = f"gmail-{meta['id']}"
            movements.append(tx)

        logger.info("Parsed %d card movements from %d emails", len(movements), len(messages))
        return movements
