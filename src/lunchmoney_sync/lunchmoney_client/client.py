"""
Lunch Money API client implementation.
"""

import json
import logging
from dataclasses import dataclass
from decimal import InvalidOperation

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import RETRYABLE_STATUS_CODES, FetchError
from ..schemas.transaction import HistoricalTransaction, Transaction, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://dev.lunchmoney.app/v1"


class LunchMoneyError(FetchError):
    """Base exception for Lunch Money client errors."""

    pass


class LunchMoneyAPIError(LunchMoneyError):
    """API returned an error response."""

    def __init__(self, status_code: int, message: str, response_body: str | None = None):
        self.response_body = response_body
        super().__init__(f"Lunch Money API error {status_code}: {message}", status_code=status_code)


class LunchMoneyConnectionError(LunchMoneyError):
    """Failed to connect to Lunch Money."""

    pass


@dataclass
class LunchMoneyCategory:
    """Lunch Money category representation."""

    id: int
    name: str
    is_group: bool = False


def _error_message(response: requests.Response) -> str:
    """Pull a readable message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.reason or "Unknown error"

    if isinstance(body, dict):
        error = body.get("error") or body.get("message") or body.get("errors")
        if isinstance(error, list):
            return "; ".join(str(e) for e in error)
        if error:
            return str(error)
    return response.reason or "Unknown error"


class LunchMoneyClient:
    """
    Client for the Lunch Money API.

    Features:
    - Paginated transaction listing
    - Category listing
    - Batched transaction insertion
    - Automatic retry with backoff for network errors, 429 and 5xx
    """

    DEFAULT_TIMEOUT = 30
    PAGE_SIZE = 500
    LEARNING_PAGE_SIZE = 1000
    MAX_BATCH_SIZE = 50

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize Lunch Money client.

        Args:
            token: Lunch Money access token
            base_url: API base URL
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
            backoff_factor: Backoff factor for retries
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=sorted(RETRYABLE_STATUS_CODES),
            allowed_methods=["GET", "POST"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> requests.Response:
        """Make an API request with error handling."""
        url = f"{self.base_url}{endpoint}"

        logger.debug("API Request: %s %s", method, url)
        if json_data:
            logger.debug("Request body: %s", json.dumps(json_data, indent=2))

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError as e:
            logger.error("Connection error to %s: %s", url, e)
            raise LunchMoneyConnectionError(f"Failed to connect to Lunch Money: {e}") from e
        except requests.exceptions.Timeout as e:
            logger.error("Timeout for %s: %s", url, e)
            raise LunchMoneyConnectionError(f"Request to Lunch Money timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error("Request error for %s: %s", url, e)
            raise LunchMoneyError(f"Request failed: {e}") from e

        logger.debug("Response status: %s", response.status_code)

        if not response.ok:
            message = _error_message(response)
            logger.error("API Error %s: %s", response.status_code, message)
            raise LunchMoneyAPIError(
                status_code=response.status_code,
                message=message,
                response_body=response.text,
            )

        return response

    def _paginate(self, params: dict, page_size: int):
        """Yield raw transaction dicts across all pages."""
        page = 1
        while True:
            response = self._request(
                "GET",
                "/transactions",
                params={**params, "per_page": page_size, "page": page},
            )
            data = response.json()
            yield from data.get("transactions") or []

            if data.get("has_more") is not True:
                break
            page += 1
            if page % 10 == 0:
                logger.info("Fetched %d pages of transactions so far...", page - 1)

    def list_transactions(
        self,
        start_date: str,
        end_date: str,
        asset_id: int | str | None = None,
    ) -> list[Transaction]:
        """
        List transactions in a date range.

        Amounts follow the canonical sign convention (negative = expense).

        Args:
            start_date: Start date (YYYY-MM-DD), inclusive
            end_date: End date (YYYY-MM-DD), inclusive
            asset_id: Optional asset (account) filter

        Returns:
            List of Transaction objects
        """
        params: dict = {
            "start_date": start_date,
            "end_date": end_date,
            "debit_as_negative": "true",
        }
        if asset_id:
            params["asset_id"] = asset_id

        transactions = []
        for item in self._paginate(params, self.PAGE_SIZE):
            try:
                amount = to_decimal(item.get("amount"))
            except (ValueError, InvalidOperation):
                logger.debug("Skipping transaction %s with invalid amount", item.get("id"))
                continue

            transactions.append(
                Transaction(
                    date=item.get("date") or "",
                    amount=amount,
                    payee=item.get("payee") or "",
                    reference=item.get("external_id") or None,
                    category_id=item.get("category_id"),
                    category_name=item.get("category_name"),
                )
            )

        logger.info(
            "Fetched %d Lunch Money transactions between %s and %s",
            len(transactions),
            start_date,
            end_date,
        )
        return transactions

    def list_transactions_for_learning(self, start_date: str) -> list[HistoricalTransaction]:
        """
        List categorized history since a date.

        Only transactions with both a payee and a category are returned.
        """
        params = {"start_date": start_date, "debit_as_negative": "true"}

        history = []
        for item in self._paginate(params, self.LEARNING_PAGE_SIZE):
            if not item.get("payee") or not (item.get("category_name") or item.get("category_id")):
                continue
            history.append(
                HistoricalTransaction(
                    payee=item["payee"],
                    category_name=item.get("category_name"),
                    date=item.get("date"),
                    category_id=item.get("category_id"),
                )
            )
        return history

    def list_categories(self) -> list[LunchMoneyCategory]:
        """List all categories."""
        response = self._request("GET", "/categories")
        data = response.json()

        items = data.get("categories", []) if isinstance(data, dict) else data
        categories = []
        for item in items or []:
            if not isinstance(item, dict) or item.get("id") is None or not item.get("name"):
                continue
            categories.append(
                LunchMoneyCategory(
                    id=int(item["id"]),
                    name=item["name"],
                    is_group=bool(item.get("is_group", False)),
                )
            )
        return categories

    def insert_transactions(self, payloads: list[dict]) -> list[int]:
        """
        Insert a batch of transactions.

        Args:
            payloads: Insert payloads, at most MAX_BATCH_SIZE

        Returns:
            Ids of the inserted transactions

        Raises:
            ValueError: If the batch is larger than MAX_BATCH_SIZE
            LunchMoneyAPIError: If the API rejects the batch
        """
        if len(payloads) > self.MAX_BATCH_SIZE:
            raise ValueError(
                f"Batch of {len(payloads)} exceeds the limit of {self.MAX_BATCH_SIZE}"
            )

        response = self._request(
            "POST",
            "/transactions",
            json_data={
                "transactions": payloads,
                "apply_rules": False,
                "skip_duplicates": False,
                "debit_as_negative": True,
                "skip_balance_update": True,
            },
        )
        data = response.json()

        # Lunch Money reports validation failures with a 200 and an error body
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = "; ".join(str(e) for e in error) if isinstance(error, list) else str(error)
            raise LunchMoneyAPIError(status_code=400, message=message, response_body=response.text)

        return [int(i) for i in data.get("ids", [])]
