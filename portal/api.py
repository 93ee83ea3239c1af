"""HTTP client for the portal backend.

Every call goes through :class:`ApiClient`, which attaches the bearer token,
decodes JSON and turns any non-2xx response or transport failure into
:class:`ApiError`. Resource groups (``client.payments``, ``client.pricing``...)
are thin wrappers that only know paths and payload shapes.
"""
import logging
import os
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3001"
REQUEST_TIMEOUT_SECONDS = 20


class ApiError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        detail = payload.get("detail")
        if isinstance(detail, str) and detail:
            return detail
        if isinstance(detail, list) and detail:
            # pydantic validation errors
            return "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail)
        message = payload.get("message")
        if message:
            return str(message)
    return f"HTTP error! status: {response.status_code}"


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or os.environ.get("VITE_API_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

        self.auth = AuthAPI(self)
        self.registrations = RegistrationsAPI(self)
        self.committees = CommitteesAPI(self)
        self.users = UsersAPI(self)
        self.pricing = PricingAPI(self)
        self.payments = PaymentsAPI(self)
        self.contact = ContactAPI(self)
        self.popups = PopupsAPI(self)
        self.gallery = GalleryAPI(self)
        self.mailer = MailerAPI(self)
        self.dashboard = DashboardAPI(self)
        self.content = ContentAPI(self)

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        raw: bool = False,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        try:
            response = self.session.request(
                method,
                url,
                json=json,
                params=params,
                data=data,
                files=files,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.error("API Error for %s: %s", path, exc)
            raise ApiError(str(exc)) from exc

        if not response.ok:
            message = _error_message(response)
            logger.error("API Error for %s: %s (%s)", path, message, response.status_code)
            raise ApiError(message, response.status_code)

        if raw:
            return response.content
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError("Invalid response from server", response.status_code) from exc

    def get(self, path: str, **kwargs) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> Any:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> Any:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs) -> Any:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)


class _Resource:
    def __init__(self, client: ApiClient):
        self.client = client


class AuthAPI(_Resource):
    def login(self, email: str, password: str) -> Dict:
        result = self.client.post("/api/auth/login", json={"email": email, "password": password})
        self.client.set_token(result["access_token"])
        return result

    def register(self, data: Dict) -> Dict:
        result = self.client.post("/api/auth/register", json=data)
        self.client.set_token(result["access_token"])
        return result

    def refresh(self, refresh_token: str) -> Dict:
        result = self.client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
        self.client.set_token(result["access_token"])
        return result

    def get_profile(self) -> Dict:
        return self.client.get("/api/auth/profile")

    def update_profile(self, data: Dict) -> Dict:
        return self.client.put("/api/auth/profile", json=data)

    def change_password(self, current_password: str, new_password: str) -> Dict:
        return self.client.put(
            "/api/auth/change-password",
            json={"current_password": current_password, "new_password": new_password},
        )


class RegistrationsAPI(_Resource):
    def create(self, data: Dict) -> Dict:
        return self.client.post("/api/registrations", json=data)

    def list(self, status: Optional[str] = None, committee: Optional[str] = None):
        return self.client.get("/api/registrations", params={"status": status, "committee": committee})

    def me(self) -> Optional[Dict]:
        return self.client.get("/api/registrations/me")

    def get(self, registration_id: int) -> Dict:
        return self.client.get(f"/api/registrations/{registration_id}")

    def update(self, registration_id: int, data: Dict) -> Dict:
        return self.client.put(f"/api/registrations/{registration_id}", json=data)

    def delete(self, registration_id: int) -> Dict:
        return self.client.delete(f"/api/registrations/{registration_id}")


class CommitteesAPI(_Resource):
    def list(self):
        return self.client.get("/api/committees")

    def featured(self):
        return self.client.get("/api/committees/featured")

    def for_institution(self, institution_type: str):
        return self.client.get(f"/api/committees/institution/{institution_type}")

    def stats(self):
        return self.client.get("/api/committees/stats")

    def get(self, committee_id: int) -> Dict:
        return self.client.get(f"/api/committees/{committee_id}")

    @staticmethod
    def _form(data: Dict) -> Dict[str, str]:
        form = {}
        for key, value in data.items():
            if value is None:
                continue
            form[key] = str(value).lower() if isinstance(value, bool) else str(value)
        return form

    @staticmethod
    def _files(logo) -> Optional[Dict]:
        # logo: (filename, fileobj, content_type)
        return {"logo": logo} if logo else None

    def create(self, data: Dict, logo=None) -> Dict:
        return self.client.post("/api/committees", data=self._form(data), files=self._files(logo))

    def update(self, committee_id: int, data: Dict, logo=None) -> Dict:
        return self.client.put(f"/api/committees/{committee_id}", data=self._form(data), files=self._files(logo))

    def delete(self, committee_id: int) -> Dict:
        return self.client.delete(f"/api/committees/{committee_id}")

    def portfolios(self, committee_id: int):
        return self.client.get(f"/api/committees/{committee_id}/portfolios")

    def create_portfolio(self, committee_id: int, data: Dict) -> Dict:
        return self.client.post(f"/api/committees/{committee_id}/portfolios", json=data)

    def update_portfolio(self, committee_id: int, portfolio_id: int, data: Dict) -> Dict:
        return self.client.put(f"/api/committees/{committee_id}/portfolios/{portfolio_id}", json=data)

    def delete_portfolio(self, committee_id: int, portfolio_id: int) -> Dict:
        return self.client.delete(f"/api/committees/{committee_id}/portfolios/{portfolio_id}")


class UsersAPI(_Resource):
    def list(self, role: Optional[str] = None, search: Optional[str] = None):
        return self.client.get("/api/users", params={"role": role, "search": search})

    def get(self, user_id: int) -> Dict:
        return self.client.get(f"/api/users/{user_id}")

    def create(self, data: Dict) -> Dict:
        return self.client.post("/api/users", json=data)

    def update(self, user_id: int, data: Dict) -> Dict:
        return self.client.put(f"/api/users/{user_id}", json=data)

    def set_password(self, user_id: int, password: str) -> Dict:
        return self.client.put(f"/api/users/{user_id}/password", json={"password": password})

    def delete(self, user_id: int) -> Dict:
        return self.client.delete(f"/api/users/{user_id}")


class PricingAPI(_Resource):
    def get(self) -> Dict:
        return self.client.get("/api/pricing")

    def update(self, internal_delegate: int, external_delegate: int) -> Dict:
        return self.client.put(
            "/api/pricing",
            json={"internal_delegate": internal_delegate, "external_delegate": external_delegate},
        )


class PaymentsAPI(_Resource):
    def create_order(self, data: Dict) -> Dict:
        return self.client.post("/api/payments/create-order", json=data)

    def verify(self, data: Dict) -> Dict:
        return self.client.post("/api/payments/verify", json=data)

    def list(self, page: int = 1, limit: int = 10, status: Optional[str] = None, user_id: Optional[int] = None) -> Dict:
        return self.client.get(
            "/api/payments",
            params={"page": page, "limit": limit, "status": status, "user_id": user_id},
        )

    def stats(self) -> Dict:
        return self.client.get("/api/payments/stats")

    def logs(self, page: int = 1, limit: int = 20, action: Optional[str] = None) -> Dict:
        return self.client.get("/api/payments/logs", params={"page": page, "limit": limit, "action": action})

    def export(self, status: Optional[str] = None) -> bytes:
        return self.client.get("/api/payments/export", params={"status": status}, raw=True)

    def get(self, payment_id: int) -> Dict:
        return self.client.get(f"/api/payments/{payment_id}")

    def refund(self, payment_id: int, amount: float, reason: str) -> Dict:
        return self.client.post(f"/api/payments/{payment_id}/refund", json={"amount": amount, "reason": reason})


class ContactAPI(_Resource):
    def submit(self, data: Dict) -> Dict:
        return self.client.post("/api/contact", json=data)

    def list(self, status: Optional[str] = None, search: Optional[str] = None):
        return self.client.get("/api/contact", params={"status": status, "search": search})

    def get(self, contact_id: int) -> Dict:
        return self.client.get(f"/api/contact/{contact_id}")

    def update(self, contact_id: int, data: Dict) -> Dict:
        return self.client.put(f"/api/contact/{contact_id}", json=data)

    def delete(self, contact_id: int) -> Dict:
        return self.client.delete(f"/api/contact/{contact_id}")


class PopupsAPI(_Resource):
    def get(self) -> Dict:
        return self.client.get("/api/popups")

    def active(self) -> Optional[Dict]:
        return self.client.get("/api/popups/active")

    def update(self, heading: str, text: str, is_active: Optional[bool] = None) -> Dict:
        payload = {"heading": heading, "text": text}
        if is_active is not None:
            payload["is_active"] = is_active
        return self.client.put("/api/popups", json=payload)

    def toggle(self, is_active: bool) -> Dict:
        return self.client.patch("/api/popups/toggle", json={"is_active": is_active})


class GalleryAPI(_Resource):
    def list(self, category: Optional[str] = None):
        return self.client.get("/api/gallery", params={"category": category})

    def categories(self):
        return self.client.get("/api/gallery/categories")

    def upload(self, image) -> str:
        # image: (filename, fileobj, content_type)
        return self.client.post("/api/gallery/upload", files={"file": image})["url"]

    def create(self, data: Dict) -> Dict:
        return self.client.post("/api/gallery", json=data)

    def update(self, item_id: int, data: Dict) -> Dict:
        return self.client.put(f"/api/gallery/{item_id}", json=data)

    def delete(self, item_id: int) -> Dict:
        return self.client.delete(f"/api/gallery/{item_id}")


class MailerAPI(_Resource):
    def send(self, data: Dict) -> Dict:
        return self.client.post("/api/mailer/send", json=data)

    def recipients(self, committee: Optional[str] = None):
        return self.client.get("/api/mailer/recipients", params={"committee": committee})

    def stats(self) -> Dict:
        return self.client.get("/api/mailer/stats")

    def test(self, data: Dict) -> Dict:
        return self.client.post("/api/mailer/test", json=data)


class DashboardAPI(_Resource):
    def stats(self):
        return self.client.get("/api/dashboard/stats")

    def activity(self, limit: int = 10):
        return self.client.get("/api/dashboard/activity", params={"limit": limit})


class ContentAPI(_Resource):
    def get(self, slug: str) -> Dict:
        return self.client.get(f"/api/content/{slug}")
