"""
Async client for the order-assignment REST API.

Wraps the endpoints the order-prep screen depends on: assignment validation,
the worker's current assignments, auto-assignment, status transitions,
completion, reopening, item refresh, product locations, history and
auto-assignment diagnostics.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import aiohttp
from dotenv import load_dotenv

from constants.order_statuses import DEFAULT_HISTORY_LIMIT, DEFAULT_REQUEST_TIMEOUT_SECONDS
from constants.schemas import (
    AssignmentSnapshot,
    AutoAssignResult,
    DiagnosticsResult,
    HistoryResult,
    LocationLookupResult,
    RemoteResult,
)

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


class OrderPrepAPIError(Exception):
    """Raised when a collaborator call does not return a usable JSON success response"""

    def __init__(self, message: str, status: Optional[int] = None, context: Optional[str] = None,
                 details: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.context = context
        self.details = details


async def parse_json_response(response, context: str) -> Dict[str, Any]:
    """
    Read a JSON body, refusing HTML error pages and other non-JSON bodies.

    Args:
        response: aiohttp response
        context: "METHOD /path" used in log lines and error messages

    Returns:
        Dict[str, Any]: Decoded JSON object
    """
    content_type = response.headers.get("Content-Type", "")
    if "application/json" not in content_type:
        body = await response.text()
        logger.error(
            f"[{context}] Non-JSON response (status {response.status}, content-type {content_type!r}): "
            f"{body[:500]}"
        )
        raise OrderPrepAPIError(
            f"Response from {context} is not JSON (status {response.status})",
            status=response.status,
            context=context,
        )

    try:
        data = await response.json()
    except (aiohttp.ContentTypeError, ValueError) as e:
        logger.error(f"[{context}] Failed to parse JSON: {str(e)}")
        raise OrderPrepAPIError(
            f"Invalid JSON from {context}: {str(e)}", status=response.status, context=context
        ) from e

    if not isinstance(data, dict):
        raise OrderPrepAPIError(
            f"Unexpected payload from {context}", status=response.status, context=context
        )
    return data


class OrderAssignmentsAPI:
    """Client for the order-assignment, product-location and history endpoints."""

    def __init__(self, base_url: Optional[str] = None, api_token: Optional[str] = None,
                 timeout: Optional[float] = None):
        """
        Initialize the client from arguments or environment variables.

        Args:
            base_url: Dashboard origin, defaults to ORDER_PREP_API_BASE_URL
            api_token: Bearer token, defaults to ORDER_PREP_API_TOKEN
            timeout: Total request timeout in seconds, defaults to ORDER_PREP_REQUEST_TIMEOUT
        """
        self.base_url = (base_url or os.getenv("ORDER_PREP_API_BASE_URL") or "").rstrip("/")
        if not self.base_url:
            raise ValueError("ORDER_PREP_API_BASE_URL not found in environment variables")

        self.api_token = api_token if api_token is not None else os.getenv("ORDER_PREP_API_TOKEN")
        self.timeout = float(
            timeout if timeout is not None
            else os.getenv("ORDER_PREP_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS)
        )

    def get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                       json_body: Optional[Dict[str, Any]] = None,
                       allow_failure: bool = False) -> Dict[str, Any]:
        """
        Send one request and decode its JSON body.

        Args:
            method: HTTP method
            path: Path below the base URL
            params: Query string parameters
            json_body: JSON request body
            allow_failure: Return error bodies ({success: false, error}) instead of raising

        Returns:
            Dict[str, Any]: Decoded JSON response
        """
        context = f"{method} {path}"
        url = f"{self.base_url}{path}"

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.request(
                    method, url, headers=self.get_headers(), params=params, json=json_body
                ) as response:
                    data = await parse_json_response(response, context)
                    status = response.status
        except OrderPrepAPIError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"❌ {context} failed: {str(e) or type(e).__name__}")
            raise OrderPrepAPIError(
                f"Connection error on {context}: {str(e) or type(e).__name__}", context=context
            ) from e

        if status >= 400:
            data.setdefault("success", False)
            if not allow_failure:
                raise OrderPrepAPIError(
                    data.get("error") or f"{context} failed with status {status}",
                    status=status,
                    context=context,
                    details=data.get("details"),
                )
        return data

    async def validate(self, worker_id: str) -> Dict[str, Any]:
        """Drop assignments that are no longer valid upstream"""
        return await self._request(
            "POST", "/api/order-assignments/validate", json_body={"userId": worker_id}
        )

    async def fetch_snapshot(self, worker_id: str) -> AssignmentSnapshot:
        data = await self._request(
            "GET", "/api/order-assignments/my-orders", params={"userId": worker_id}
        )
        if not data.get("success", False):
            raise OrderPrepAPIError(
                data.get("error") or "Failed to load assigned orders",
                context="GET /api/order-assignments/my-orders",
            )
        return AssignmentSnapshot(**data)

    async def auto_assign(self, worker_id: str) -> AutoAssignResult:
        data = await self._request(
            "POST", "/api/order-assignments/auto-assign", json_body={"userId": worker_id}
        )
        if not data.get("success", False):
            raise OrderPrepAPIError(
                data.get("error") or "Auto-assignment failed",
                context="POST /api/order-assignments/auto-assign",
                details=data.get("details"),
            )
        return AutoAssignResult(**data)

    async def update_status(self, assignment_id: str, status: str, update_salla: bool = False,
                            salla_status: Optional[str] = None) -> RemoteResult:
        body = {
            "assignmentId": assignment_id,
            "status": status,
            "updateSalla": update_salla,
        }
        if salla_status:
            body["sallaStatus"] = salla_status
        data = await self._request(
            "POST", "/api/order-assignments/update-status", json_body=body, allow_failure=True
        )
        return RemoteResult(**data)

    async def complete_assignment(self, assignment_id: str) -> RemoteResult:
        data = await self._request(
            "POST", "/api/order-assignments/complete",
            json_body={"assignmentId": assignment_id}, allow_failure=True,
        )
        return RemoteResult(**data)

    async def reopen_assignment(self, order_number: str) -> RemoteResult:
        data = await self._request(
            "POST", "/api/order-assignments/reopen",
            json_body={"orderNumber": order_number}, allow_failure=True,
        )
        return RemoteResult(**data)

    async def refresh_items(self, assignment_id: str) -> RemoteResult:
        data = await self._request(
            "POST", "/api/order-assignments/refresh-items",
            json_body={"assignmentId": assignment_id}, allow_failure=True,
        )
        return RemoteResult(**data)

    async def lookup_locations(self, skus: List[str]) -> LocationLookupResult:
        data = await self._request(
            "POST", "/api/order-prep/product-locations", json_body={"skus": list(skus)}
        )
        if not data.get("success", False):
            raise OrderPrepAPIError(
                data.get("error") or "Failed to load product locations",
                context="POST /api/order-prep/product-locations",
            )
        return LocationLookupResult(**data)

    async def fetch_history(self, worker_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> HistoryResult:
        data = await self._request(
            "GET", "/api/order-history/user", params={"userId": worker_id, "limit": limit}
        )
        if not data.get("success", False):
            raise OrderPrepAPIError(
                data.get("error") or "Failed to load order history",
                context="GET /api/order-history/user",
            )
        return HistoryResult(**data)

    async def fetch_debug(self, worker_id: str) -> DiagnosticsResult:
        """Auto-assignment diagnostics: wanted Salla status, available orders, active assignments"""
        data = await self._request(
            "GET", "/api/order-assignments/debug", params={"userId": worker_id}
        )
        if not data.get("success", False):
            raise OrderPrepAPIError(
                data.get("error") or "Failed to load diagnostics",
                context="GET /api/order-assignments/debug",
                details=data.get("details"),
            )
        return DiagnosticsResult(**data)
