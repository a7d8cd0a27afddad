"""Typed async wrapper over the REST API (httpx)."""

from __future__ import annotations

from typing import Any, Optional

import httpx

API_PREFIX = "/api"


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class RideApiClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, json: Optional[dict[str, Any]] = None
    ) -> Any:
        response = await self._client.request(method, API_PREFIX + path, json=json)
        if response.is_error:
            try:
                message = response.json().get("message") or "Request failed"
            except ValueError:
                message = "Request failed"
            raise ApiError(response.status_code, message)
        return response.json()

    # ── Accounts ──────────────────────────────────────────────────────

    async def connect(self, wallet_address: str, role: str) -> dict[str, Any]:
        return await self._request(
            "POST", "/auth/connect", {"walletAddress": wallet_address, "role": role}
        )

    async def get_profile(self, user_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/user/{user_id}/profile")

    # ── Rides ─────────────────────────────────────────────────────────

    async def request_ride(
        self,
        pickup: dict[str, Any],
        dropoff: dict[str, Any],
        estimated_fare: float,
        staked_amount: float,
        customer_id: str,
    ) -> dict[str, Any]:
        return await self._request("POST", "/rides/request", {
            "pickup": pickup,
            "dropoff": dropoff,
            "estimatedFare": estimated_fare,
            "stakedAmount": staked_amount,
            "customerId": customer_id,
        })

    async def get_available_rides(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/rides/available")

    async def get_ride(self, ride_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/rides/{ride_id}")

    async def get_active_ride(self, user_id: str) -> Optional[dict[str, Any]]:
        try:
            return await self._request("GET", f"/rides/active/{user_id}")
        except ApiError as exc:
            if exc.status_code == 404:
                return None
            raise

    async def get_ride_history(self, user_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/rides/history/{user_id}")

    async def accept_ride(self, ride_id: str, driver_id: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/rides/{ride_id}/accept", {"driverId": driver_id}
        )

    async def start_ride(self, ride_id: str, driver_id: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/rides/{ride_id}/start", {"driverId": driver_id}
        )

    async def complete_ride(
        self,
        ride_id: str,
        completed_by: str,
        rating: Optional[float] = None,
        feedback: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"completedBy": completed_by}
        if rating is not None:
            body["rating"] = rating
        if feedback is not None:
            body["feedback"] = feedback
        return await self._request("POST", f"/rides/{ride_id}/complete", body)

    async def cancel_ride(self, ride_id: str, user_id: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/rides/{ride_id}/cancel", {"userId": user_id}
        )

    async def confirm_delivery(
        self, ride_id: str, driver_id: str, customer_lat: float, customer_lng: float
    ) -> dict[str, Any]:
        return await self._request("POST", f"/rides/{ride_id}/confirm-delivery", {
            "driverId": driver_id,
            "customerLat": customer_lat,
            "customerLng": customer_lng,
        })

    # ── Admin ─────────────────────────────────────────────────────────

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/admin/health")
