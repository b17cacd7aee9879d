#!/usr/bin/env python3
"""
ZEFIX Swiss Business Registry Client

This module provides a client for the public ZEFIX REST API.

Key Classes:
    ZefixApiClient: Company search, company lookups and reference data

Usage:
    from zefix_client import ZefixApiClient
    from zefix_config import ClientConfig, ZefixAuth, ThrottleConfig
    client = ZefixApiClient(ClientConfig(
        auth=ZefixAuth("user", "secret"),
        throttle=ThrottleConfig(min_interval_ms=1000),
    ))
    companies = client.search_companies("Migros*", canton="ZH")

Command-line usage:
    python zefix_client.py search "Migros*" --canton ZH --active-only
    python zefix_client.py company CHE-105.815.381
    python zefix_client.py uid "che 105 815 381 mwst"
"""

import json
import sys
import argparse
import datetime
import logging
import threading
from typing import Any, Dict, Iterator, List, Optional, Union
from urllib.parse import quote

import requests

from zefix_config import APIConfig, ClientConfig, ThrottleConfig, ZefixAuth
from zefix_exceptions import (
    ZefixAPIError,
    ZefixDataError,
    ZefixHTTPError,
    ZefixNetworkError,
    ZefixValidationError,
)
from zefix_gate import ThrottleState, decorate_request, ensure_server_environment
from zefix_type_guards import is_valid_canton, is_valid_language, ZEFIX_LANGUAGES
from zefix_uid import format_uid, is_valid_uid_format, normalize_uid

# Configure logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Add stderr handler if not already present
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        "%(levelname)s: %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _keep_request(request: requests.PreparedRequest) -> requests.PreparedRequest:
    return request


def ensure_ok(response: requests.Response) -> Any:
    """
    Return the decoded JSON body of a successful response.

    Args:
        response: Response returned by the transport

    Returns:
        Decoded JSON data

    Raises:
        ZefixHTTPError: If the status is not 2xx or the body holds no data
        ZefixDataError: If the body is not valid JSON
    """
    if not response.ok:
        raise ZefixHTTPError.from_response(response)

    if not response.content:
        raise ZefixHTTPError("No data in response", response.status_code, "NO_DATA")

    try:
        data = response.json()
    except ValueError as e:
        raise ZefixDataError(f"Error parsing API response: {e}") from e

    if data is None:
        raise ZefixHTTPError("No data in response", response.status_code, "NO_DATA")
    return data


class ZefixApiClient:
    """Client for the ZEFIX public REST API."""

    def __init__(self, config: Optional[ClientConfig] = None):
        """
        Initialize the ZEFIX client.

        Args:
            config: Base URL, credentials, throttle and optional transport session

        Raises:
            ZefixConfigurationError: If running inside a browser
        """
        ensure_server_environment()
        config = config or ClientConfig()

        self.base_url = (config.base_url or APIConfig.BASE_URL).rstrip("/")
        self._auth = config.auth
        self.throttle = config.throttle
        self.throttle_state = ThrottleState()
        self.session = config.transport or requests.Session()

    @property
    def auth(self) -> Optional[ZefixAuth]:
        return self._auth

    def set_auth(self, auth: Optional[ZefixAuth]) -> None:
        """Replace the credentials used for subsequent requests (None disables auth)."""
        self._auth = auth

    def set_throttle(self, throttle: Optional[ThrottleConfig]) -> None:
        """Replace the throttle policy; the last dispatch time is kept."""
        self.throttle = throttle

    def search_companies(
        self,
        name: str,
        canton: Optional[str] = None,
        legal_form_id: Optional[int] = None,
        active_only: bool = False,
        offset: Optional[int] = None,
        max_entries: Optional[int] = None,
        language_key: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Dict[str, Any]]:
        """
        Search for companies by name.

        Args:
            name: Company name, "*" acts as wildcard
            canton: Optional 2-letter canton code to filter results
            legal_form_id: Optional ZEFIX legal form id
            active_only: Only return companies that are not deleted
            offset: Index of the first result
            max_entries: Page size
            language_key: Response language (de, fr, it, en)
            cancel_event: Optional event that aborts a pending throttle wait

        Returns:
            List of short company records

        Raises:
            ZefixValidationError: If input parameters are invalid
        """
        self._validate_search_params(name, canton, language_key, offset, max_entries)

        body: Dict[str, Any] = {"name": name, "activeOnly": active_only}
        if canton:
            body["canton"] = canton.upper()
        if legal_form_id is not None:
            body["legalFormId"] = legal_form_id
        if offset is not None:
            body["offset"] = offset
        if max_entries is not None:
            body["maxEntries"] = max_entries
        if language_key:
            body["languageKey"] = language_key.lower()

        logger.info(f"Searching companies for '{name}'")
        companies = self._request("POST", "/company/search", json_body=body, cancel_event=cancel_event)
        if not isinstance(companies, list):
            raise ZefixDataError(
                f"Expected a list of companies, got {type(companies).__name__}"
            )
        logger.info(f"Search complete: {len(companies)} companies found")
        return companies

    def iter_companies(
        self,
        name: str,
        page_size: int = APIConfig.SEARCH_PAGE_SIZE,
        limit: Optional[int] = None,
        **filters: Any,
    ) -> Iterator[Dict[str, Any]]:
        """
        Iterate over all search results, fetching them page by page.

        Args:
            name: Company name, "*" acts as wildcard
            page_size: Results per request (capped at APIConfig.MAX_SEARCH_PAGE_SIZE)
            limit: Stop after this many companies
            **filters: Further search_companies() arguments

        Yields:
            Short company records

        Raises:
            ZefixValidationError: If filters carry offset or max_entries
        """
        paging_keys = sorted({"offset", "max_entries"} & set(filters))
        if paging_keys:
            raise ZefixValidationError(
                f"{', '.join(paging_keys)} cannot be passed to iter_companies; "
                f"use page_size and limit instead"
            )
        if limit is not None and limit <= 0:
            return

        page_size = max(1, min(page_size, APIConfig.MAX_SEARCH_PAGE_SIZE))
        offset = 0
        count = 0

        while True:
            page = self.search_companies(name, offset=offset, max_entries=page_size, **filters)
            for company in page:
                yield company
                count += 1
                if limit is not None and count >= limit:
                    return

            if self._should_stop_pagination(page, page_size):
                return
            offset += page_size

    def get_company_by_uid(self, uid: str, cancel_event: Optional[threading.Event] = None) -> List[Dict[str, Any]]:
        """
        Fetch company details by UID.

        The UID may be given in any common notation; it is sent as CHE-123.456.789.
        Input that is not a valid UID is sent unchanged.
        """
        if not is_valid_uid_format(uid):
            logger.warning(f"'{uid}' does not look like a UID, sending it as given")
        return self._request("GET", f"/company/uid/{quote(format_uid(uid), safe='')}", cancel_event=cancel_event)

    def get_company_by_chid(self, chid: str, cancel_event: Optional[threading.Event] = None) -> List[Dict[str, Any]]:
        """Fetch company details by CH-ID (e.g. CH02030000174)."""
        return self._request("GET", f"/company/chid/{quote(chid, safe='')}", cancel_event=cancel_event)

    def get_company_by_ehraid(self, ehraid: int, cancel_event: Optional[threading.Event] = None) -> List[Dict[str, Any]]:
        """Fetch company details by EHRA id."""
        ehraid = self._as_id(ehraid, "EHRA id")
        return self._request("GET", f"/company/ehraid/{ehraid}", cancel_event=cancel_event)

    def get_legal_forms(self, cancel_event: Optional[threading.Event] = None) -> List[Dict[str, Any]]:
        return self._request("GET", "/legalForms", cancel_event=cancel_event)

    def get_communities(self, cancel_event: Optional[threading.Event] = None) -> List[Dict[str, Any]]:
        return self._request("GET", "/community", cancel_event=cancel_event)

    def get_sogc_by_date(
        self,
        date: Union[str, datetime.date],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch SOGC (Swiss Official Gazette of Commerce) publications of one day.

        Args:
            date: Publication date as datetime.date or "YYYY-MM-DD"

        Raises:
            ZefixValidationError: If the date string is malformed
        """
        if isinstance(date, datetime.date):
            day = date.isoformat()
        else:
            try:
                day = datetime.datetime.strptime(date, "%Y-%m-%d").date().isoformat()
            except (TypeError, ValueError):
                raise ZefixValidationError(
                    f"Invalid date '{date}'. Must be formatted as YYYY-MM-DD."
                )
        return self._request("GET", f"/sogc/bydate/{day}", cancel_event=cancel_event)

    def get_sogc_publication(self, sogc_id: int, cancel_event: Optional[threading.Event] = None) -> Any:
        """Fetch a single SOGC publication by id."""
        sogc_id = self._as_id(sogc_id, "SOGC id")
        return self._request("GET", f"/sogc/{sogc_id}", cancel_event=cancel_event)

    @staticmethod
    def _as_id(value: Any, label: str) -> int:
        """Coerce a numeric identifier, rejecting anything else."""
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ZefixValidationError(f"Invalid {label} '{value}'. Must be an integer.")
        if number < 0:
            raise ZefixValidationError(f"Invalid {label} '{value}'. Must be non-negative.")
        return number

    def _validate_search_params(
        self,
        name: str,
        canton: Optional[str],
        language_key: Optional[str],
        offset: Optional[int],
        max_entries: Optional[int],
    ) -> None:
        """
        Validate search parameters.

        Raises:
            ZefixValidationError: If any parameter is invalid
        """
        if not name or not isinstance(name, str):
            raise ZefixValidationError("Name must be a non-empty string")

        if canton and not is_valid_canton(canton):
            raise ZefixValidationError(
                f"Invalid canton '{canton}'. Must be a 2-letter Swiss canton code."
            )

        if language_key and not is_valid_language(language_key):
            raise ZefixValidationError(
                f"Invalid language '{language_key}'. "
                f"Must be one of: {', '.join(ZEFIX_LANGUAGES)}"
            )

        if offset is not None and offset < 0:
            raise ZefixValidationError(f"Offset must be non-negative, got {offset}")

        if max_entries is not None and not 0 < max_entries <= APIConfig.MAX_SEARCH_PAGE_SIZE:
            raise ZefixValidationError(
                f"max_entries must be between 1 and {APIConfig.MAX_SEARCH_PAGE_SIZE}, got {max_entries}"
            )

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        Send one request through the request gate.

        Args:
            method: HTTP method
            path: Path below the API prefix, e.g. "/legalForms"
            params: Query parameters
            json_body: JSON request body
            cancel_event: Optional event that aborts a pending throttle wait

        Returns:
            Decoded JSON response

        Raises:
            ZefixHTTPError: On error responses
            ZefixNetworkError: If the request could not be sent
            ZefixRequestCancelled: If cancelled while throttled
        """
        url = f"{self.base_url}{APIConfig.API_PREFIX}{path}"
        headers = {
            "User-Agent": APIConfig.USER_AGENT,
            "Accept": "application/json",
        }
        # auth is a no-op hook so the session neither reads ~/.netrc nor applies
        # its own auth; decorate_request alone decides the Authorization header
        prepared = self.session.prepare_request(
            requests.Request(
                method, url, headers=headers, params=params, json=json_body, auth=_keep_request
            )
        )
        # One read of the credentials per request, never a mix of two configs
        prepared = decorate_request(prepared, self._auth, self.throttle, self.throttle_state, cancel_event)

        logger.debug(f"{method} {url}")
        try:
            response = self.session.send(prepared, timeout=APIConfig.TIMEOUT_SECONDS)
        except requests.exceptions.RequestException as e:
            logger.error(f"API request failed: {method} {url}: {e}")
            raise ZefixNetworkError(f"{method} {path} failed: {e}") from e

        return ensure_ok(response)

    @staticmethod
    def _should_stop_pagination(page: List[Dict[str, Any]], page_size: int) -> bool:
        """A short page is the last one."""
        return len(page) < page_size


def main():
    """Main function to handle command-line execution."""
    parser = argparse.ArgumentParser(
        description="Query the ZEFIX Swiss business registry.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Credentials are read from ZEFIX_USERNAME / ZEFIX_PASSWORD,
throttling from ZEFIX_MIN_INTERVAL_MS.

Examples:
  Search active companies named "Migros..." in Zurich:
    python zefix_client.py search "Migros*" --canton ZH --active-only

  Look up a company by UID (any notation):
    python zefix_client.py company "che 105 815 381"

  Look up a company by CH-ID:
    python zefix_client.py company CH02030000174 --by chid

  Normalize a UID without calling the API:
    python zefix_client.py uid "CHE-105.815.381 MWST"
        """
    )
    parser.add_argument(
        "--min-interval-ms",
        type=int,
        help="Minimum milliseconds between API requests (overrides ZEFIX_MIN_INTERVAL_MS)."
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="Search companies by name")
    search_parser.add_argument("name", help="Company name, '*' acts as wildcard")
    search_parser.add_argument("--canton", "-c", help="2-letter canton code, e.g. 'ZH', 'VD'")
    search_parser.add_argument("--legal-form-id", type=int, help="ZEFIX legal form id")
    search_parser.add_argument("--language", choices=ZEFIX_LANGUAGES, help="Response language")
    search_parser.add_argument("--active-only", action="store_true", help="Skip deleted companies")
    search_parser.add_argument(
        "--limit",
        type=int,
        help="Fetch all pages up to this many companies (default: first page only)"
    )

    company_parser = subparsers.add_parser("company", help="Look up one company")
    company_parser.add_argument("identifier", help="UID, CH-ID or EHRA id")
    company_parser.add_argument(
        "--by",
        choices=["uid", "chid", "ehraid"],
        default="uid",
        help="Kind of identifier (default: uid)"
    )

    subparsers.add_parser("legal-forms", help="List legal forms")
    subparsers.add_parser("communities", help="List BFS communities")

    sogc_parser = subparsers.add_parser("sogc", help="SOGC publications")
    sogc_group = sogc_parser.add_mutually_exclusive_group(required=True)
    sogc_group.add_argument("--date", help="Publication date (YYYY-MM-DD)")
    sogc_group.add_argument("--id", type=int, help="SOGC publication id")

    uid_parser = subparsers.add_parser("uid", help="Normalize and format a UID (offline)")
    uid_parser.add_argument("value", help="UID in any notation")

    args = parser.parse_args()

    # Configure logging level
    logger.setLevel(getattr(logging, args.log_level))

    try:
        if args.command == "uid":
            core = normalize_uid(args.value)
            output = {
                "input": args.value,
                "valid": core is not None,
                "normalized": core,
                "formatted": format_uid(args.value),
            }
            print(json.dumps(output, indent=2, ensure_ascii=False))
            return

        config = ClientConfig.from_env()
        if args.min_interval_ms is not None:
            config.throttle = ThrottleConfig(args.min_interval_ms)
        if config.auth is None or not config.auth.is_complete:
            logger.warning("No ZEFIX credentials configured; the API will likely reject requests")

        client = ZefixApiClient(config)

        if args.command == "search":
            filters = {
                "canton": args.canton,
                "legal_form_id": args.legal_form_id,
                "active_only": args.active_only,
                "language_key": args.language,
            }
            if args.limit:
                results = list(client.iter_companies(args.name, limit=args.limit, **filters))
            else:
                results = client.search_companies(args.name, **filters)
            output = {
                "query": args.name,
                "canton_filter": args.canton.upper() if args.canton else None,
                "results_count": len(results),
                "results": results,
            }
        elif args.command == "company":
            if args.by == "uid":
                output = client.get_company_by_uid(args.identifier)
            elif args.by == "chid":
                output = client.get_company_by_chid(args.identifier)
            else:
                output = client.get_company_by_ehraid(args.identifier)
        elif args.command == "legal-forms":
            output = client.get_legal_forms()
        elif args.command == "communities":
            output = client.get_communities()
        elif args.date:
            output = client.get_sogc_by_date(args.date)
        else:
            output = client.get_sogc_publication(args.id)

        print(json.dumps(output, indent=2, ensure_ascii=False))

    except ZefixValidationError as e:
        logger.error(f"Validation error: {e}")
        sys.exit(1)
    except ZefixHTTPError as e:
        logger.error(f"API error (status {e.status}): {e}")
        sys.exit(1)
    except ZefixAPIError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
