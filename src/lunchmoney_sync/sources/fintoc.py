"""
Fintoc bank-aggregator source.

Fintoc returns amounts in the smallest currency unit; they are converted to
major units here. For currencies without decimals (e.g. CLP) this yields a
decimal value without changing the integer part.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import RETRYABLE_STATUS_CODES, FetchError
from ..schemas.transaction import Transaction
from .base import BaseSource

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.fintoc.com/v1"

# Field fallbacks, in priority order
DATE_FIELDS = ("transaction_date", "post_date", "date")
PAYEE_FIELDS = ("description", "description_internal", "name", "concept", "source")

MINOR_UNITS_PER_MAJOR = Decimal(100)


class FintocError(FetchError):
    """Fintoc request failed or returned an error."""

    pass


def parse_movement(movement: dict, start: date, end: date) -> Transaction | None:
    """Convert a raw Fintoc movement, or None if it is unusable or out of window."""
    date_str = next((movement[f] for f in DATE_FIELDS if movement.get(f)), None)
    if not date_str:
        return None

    try:
        movement_date = date.fromisoformat(str(date_str)[:10])
    except ValueError:
        logger.debug("Skipping movement with invalid date: %s", date_str)
        return None
    if not start <= movement_date <= end:
        return None

    try:
        amount_minor = Decimal(str(movement.get("amount")))
    except (InvalidOperation, ValueError):
        return None
    if not amount_minor.is_finite():
        return None

    payee = next((movement[f] for f in PAYEE_FIELDS if movement.get(f)), "Unknown")
    reference = movement.get("id")

    return Transaction(
        date=movement_date.isoformat(),
        amount=amount_minor / MINOR_UNITS_PER_MAJOR,
        payee=str(payee),
        reference=str(reference) if reference else None,
    )


class FintocSource(BaseSource):
    """Movements of one Fintoc account."""

    DEFAULT_TIMEOUT = 30
    PAGE_SIZE = 200

    def __init__(
        self,
        api_key: str,
        link_id: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        self.api_key = api_key
        self.link_id = link_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            }
        )
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=sorted(RETRYABLE_STATUS_CODES),
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @property
    def name(self) -> str:
        return "fintoc"

    def _get_page(self, page: int) -> list:
        url = f"{self.base_url}/accounts/{quote(self.link_id, safe='')}/movements"
        try:
            response = self.session.get(
                url,
                params={"per_page": self.PAGE_SIZE, "page": page},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Fintoc request error for %s: %s", url, e)
            raise FintocError(f"Fintoc API error: {e}") from e

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get("error") if isinstance(body, dict) else None
            message = message or response.reason
            logger.error("Fintoc API error %s: %s", response.status_code, message)
            raise FintocError(
                f"Fintoc API error {response.status_code}: {message}",
                status_code=response.status_code,
            )

        data = response.json()
        return data if isinstance(data, list) else []

    def fetch_movements(self, start: date, end: date) -> list[Transaction]:
        if not self.api_key or not self.link_id:
            raise FintocError("Missing Fintoc API key or link ID.", status_code=400)

        movements: list[Transaction] = []
        page = 1

        while True:
            data = self._get_page(page)
            if not data:
                break

            for raw in data:
                tx = parse_movement(raw, start, end)
                if tx is not None:
                    movements.append(tx)

            if len(data) < self.PAGE_SIZE:
                break
            page += 1

        logger.info("Fetched %d Fintoc movements since %s", len(movements), start.isoformat())
        return movements
