"""
FileMaker Data API client implementation.
"""

import logging
from datetime import date
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

# FileMaker answers a find without hits with this message code (not an error).
NO_RECORDS_MATCH_CODE = "401"


class FileMakerError(Exception):
    """Base exception for FileMaker client errors."""

    pass


class FileMakerAPIError(FileMakerError):
    """API returned an error response."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        response_body: Optional[str] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.response_body = response_body
        detail = f"{message} (code {code})" if code else message
        super().__init__(f"FileMaker API error {status_code}: {detail}")


class FileMakerConnectionError(FileMakerError):
    """Failed to connect to FileMaker."""

    pass


def to_filemaker_date(value: date) -> str:
    """FileMaker find requests expect MM/DD/YYYY."""
    return value.strftime("%m/%d/%Y")


def _first_message(body: Any) -> tuple[Optional[str], str]:
    """Return (code, message) of the first Data API message, if any."""
    if isinstance(body, dict):
        messages = body.get("messages") or []
        if messages and isinstance(messages[0], dict):
            return str(messages[0].get("code")), str(messages[0].get("message", ""))
    return None, ""


class FileMakerClient:
    """
    Client for the FileMaker Data API.

    Features:
    - Date range find on the billing layout
    - Transparent offset/limit pagination
    - Automatic retry with backoff
    """

    DEFAULT_TIMEOUT = 30
    DEFAULT_PAGE_SIZE = 1000
    API_VERSION = "vLatest"

    def __init__(
        self,
        base_url: str,
        token: str,
        database: str,
        layout: str = "dapiRecords",
        date_field: str = "DateStart",
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize FileMaker client.

        Args:
            base_url: FileMaker Server host (e.g., "https://fm.example.com")
            token: Data API bearer token
            database: Hosted database name
            layout: Layout holding the billing records
            date_field: Field used for date range finds
            page_size: Records per find request
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
        """
        self.base_url = base_url.rstrip("/")
        self.database = database
        self.layout = layout
        self.date_field = date_field
        self.page_size = page_size
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=["GET", "POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @property
    def layout_url(self) -> str:
        return (
            f"{self.base_url}/fmi/data/{self.API_VERSION}"
            f"/databases/{self.database}/layouts/{self.layout}"
        )

    def _request(
        self, method: str, url: str, json_data: Optional[dict] = None
    ) -> dict[str, Any]:
        """Make an API request and return the decoded body.

        A find without hits (message code 401) is returned like a success so
        the caller can treat it as an empty page.
        """
        try:
            response = self.session.request(
                method=method,
                url=url,
                json=json_data,
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError as e:
            raise FileMakerConnectionError(f"Failed to connect to FileMaker at {self.base_url}: {e}")
        except requests.exceptions.Timeout as e:
            raise FileMakerConnectionError(f"Request to FileMaker timed out: {e}")
        except requests.exceptions.RequestException as e:
            raise FileMakerError(f"Request failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None

        code, message = _first_message(body)
        if code == NO_RECORDS_MATCH_CODE:
            return {"response": {"data": [], "dataInfo": {"foundCount": 0}}, "messages": body["messages"]}

        if not response.ok:
            raise FileMakerAPIError(
                status_code=response.status_code,
                message=message or response.reason,
                code=code,
                response_body=response.text,
            )
        if not isinstance(body, dict):
            raise FileMakerError("FileMaker returned a non-JSON response")

        return body

    def test_connection(self) -> bool:
        """Test connection by reading layout metadata."""
        try:
            self._request("GET", self.layout_url)
            return True
        except FileMakerError:
            return False

    def find_records(self, query: list[dict[str, str]]) -> dict[str, Any]:
        """
        Run a find request and merge every page into one response.

        Args:
            query: Data API find query (list of field → criteria dicts)

        Returns:
            {"response": {"data": [...], "dataInfo": {...}}, "messages": [...]}
        """
        records: list[dict[str, Any]] = []
        messages: list[dict[str, Any]] = []
        found_count: Optional[int] = None
        offset = 1

        while True:
            body = self._request(
                "POST",
                f"{self.layout_url}/_find",
                json_data={
                    "query": query,
                    "offset": str(offset),
                    "limit": str(self.page_size),
                },
            )
            messages = body.get("messages", messages)
            response = body.get("response") or {}
            page = response.get("data") or []
            records.extend(page)

            data_info = response.get("dataInfo") or {}
            if found_count is None and "foundCount" in data_info:
                found_count = int(data_info["foundCount"])

            logger.debug(
                "FileMaker find page offset=%d returned %d records (found %s)",
                offset,
                len(page),
                found_count,
            )

            if len(page) < self.page_size:
                break
            if found_count is not None and len(records) >= found_count:
                break
            offset += len(page)

        return {
            "response": {
                "data": records,
                "dataInfo": {
                    "database": self.database,
                    "layout": self.layout,
                    "foundCount": found_count if found_count is not None else len(records),
                    "returnedCount": len(records),
                },
            },
            "messages": messages,
        }

    def fetch_records_for_date_range(
        self, start_date: date, end_date: date
    ) -> Optional[dict[str, Any]]:
        """
        Fetch all billing records whose date falls in [start_date, end_date].

        Failures are reported as None (logged), never raised, so callers can
        treat a missing response uniformly.
        """
        criteria = f"{to_filemaker_date(start_date)}...{to_filemaker_date(end_date)}"
        logger.info(
            "Fetching %s records for %s (%s)", self.layout, criteria, self.date_field
        )
        try:
            return self.find_records([{self.date_field: criteria}])
        except FileMakerError as e:
            logger.error("Failed to fetch FileMaker records for %s: %s", criteria, e)
            return None
