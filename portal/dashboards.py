"""Controllers behind the delegate and admin dashboards.

Each controller loads its list once, keeps it locally and filters it in
memory. Mutations either patch the local list (contacts, gallery, popup,
pricing, registrations) or refetch (committees, portfolios). Missing
required fields are reported with a toast before any request is made.
"""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from portal.api import ApiClient, ApiError
from portal.checkout import CheckoutLoader
from portal.filters import ALL, filter_items, full_name, matches_choice, matches_search
from portal.notifier import Notifier
from portal.payment_flow import PaymentFlow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields"
DEV_ADMIN = "DEV_ADMIN"


def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


class _Controller:
    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        self.api = api
        self.notifier = notifier or Notifier()
        self.loading = False

    def _call(self, action: Callable[[], Any], failure: str, success: Optional[str] = None):
        """Run one API call; on failure toast ``failure: reason`` and return ``None``."""
        try:
            result = action()
        except ApiError as exc:
            self.notifier.error(f"{failure}: {exc.message}")
            return None
        if success:
            self.notifier.success(success)
        return result if result is not None else {}

    def _load(self, action: Callable[[], Any], failure: str):
        self.loading = True
        try:
            return self._call(action, failure)
        finally:
            self.loading = False


def _replace(items: List[Dict], updated: Dict) -> List[Dict]:
    return [updated if item.get("id") == updated.get("id") else item for item in items]


class CommitteeManager(_Controller):
    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.committees: List[Dict] = []

    def load(self) -> List[Dict]:
        rows = self._load(self.api.committees.list, "Failed to load committees")
        if rows is not None:
            self.committees = list(rows)
        return self.committees

    def visible(self, search: str = "", institution_type: str = ALL) -> List[Dict]:
        return filter_items(self.committees, search, ("name",), institution_type=institution_type)

    def _validate(self, form: Dict) -> bool:
        if _blank(form.get("name")) or _blank(form.get("description")):
            self.notifier.error(REQUIRED_FIELDS_MESSAGE)
            return False
        return True

    def create(self, form: Dict, logo=None) -> bool:
        if not self._validate(form):
            return False
        result = self._call(
            lambda: self.api.committees.create(form, logo),
            "Failed to create committee",
            "Committee created successfully",
        )
        if result is None:
            return False
        self.load()
        return True

    def update(self, committee_id: int, form: Dict, logo=None) -> bool:
        if not self._validate(form):
            return False
        result = self._call(
            lambda: self.api.committees.update(committee_id, form, logo),
            "Failed to update committee",
            "Committee updated successfully",
        )
        if result is None:
            return False
        self.load()
        return True

    def delete(self, committee_id: int) -> bool:
        result = self._call(
            lambda: self.api.committees.delete(committee_id),
            "Failed to delete committee",
            "Committee deleted successfully",
        )
        if result is None:
            return False
        self.load()
        return True


class PortfolioManager(_Controller):
    """Portfolios of the selected committee; mutations are limited to DEV_ADMIN users."""

    def __init__(self, api: ApiClient, user: Dict, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.user = user or {}
        self.committees: List[Dict] = []
        self.selected_committee: Optional[Dict] = None

    @property
    def can_edit(self) -> bool:
        return self.user.get("role") == DEV_ADMIN

    @property
    def portfolios(self) -> List[Dict]:
        if not self.selected_committee:
            return []
        return list(self.selected_committee.get("portfolios") or [])

    def load(self) -> List[Dict]:
        rows = self._load(self.api.committees.list, "Failed to load committees")
        if rows is not None:
            self.committees = list(rows)
            if self.selected_committee:
                selected_id = self.selected_committee.get("id")
                self.selected_committee = next((c for c in self.committees if c.get("id") == selected_id), None)
        return self.committees

    def select(self, committee_id: int) -> Optional[Dict]:
        self.selected_committee = next((c for c in self.committees if c.get("id") == committee_id), None)
        return self.selected_committee

    def visible_committees(self, search: str = "", institution_type: str = ALL) -> List[Dict]:
        return filter_items(self.committees, search, ("name",), institution_type=institution_type)

    def visible(self, search: str = "") -> List[Dict]:
        return filter_items(self.portfolios, search, ("name",))

    def _guard(self, form: Optional[Dict] = None) -> bool:
        if not self.can_edit:
            self.notifier.error("Only Dev Admins can manage portfolios")
            return False
        if not self.selected_committee:
            self.notifier.error("Please select a committee first")
            return False
        if form is not None:
            if _blank(form.get("name")) or _blank(form.get("description")) or _blank(form.get("capacity")):
                self.notifier.error(REQUIRED_FIELDS_MESSAGE)
                return False
            try:
                capacity = int(form["capacity"])
            except (TypeError, ValueError):
                capacity = 0
            if capacity < 1:
                self.notifier.error("Capacity must be a positive whole number")
                return False
        return True

    @staticmethod
    def _payload(form: Dict) -> Dict:
        return {
            "name": str(form["name"]).strip(),
            "description": str(form["description"]).strip(),
            "capacity": int(form["capacity"]),
        }

    def add(self, form: Dict) -> bool:
        if not self._guard(form):
            return False
        committee_id = self.selected_committee["id"]
        result = self._call(
            lambda: self.api.committees.create_portfolio(committee_id, self._payload(form)),
            "Failed to add portfolio",
            "Portfolio added successfully",
        )
        if result is None:
            return False
        self.load()
        return True

    def edit(self, portfolio_id: int, form: Dict) -> bool:
        if not self._guard(form):
            return False
        committee_id = self.selected_committee["id"]
        result = self._call(
            lambda: self.api.committees.update_portfolio(committee_id, portfolio_id, self._payload(form)),
            "Failed to update portfolio",
            "Portfolio updated successfully",
        )
        if result is None:
            return False
        self.load()
        return True

    def delete(self, portfolio_id: int) -> bool:
        if not self._guard():
            return False
        committee_id = self.selected_committee["id"]
        result = self._call(
            lambda: self.api.committees.delete_portfolio(committee_id, portfolio_id),
            "Failed to delete portfolio",
            "Portfolio deleted successfully",
        )
        if result is None:
            return False
        self.load()
        return True


class ContactFormsManager(_Controller):
    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.contacts: List[Dict] = []

    def load(self) -> List[Dict]:
        rows = self._load(self.api.contact.list, "Failed to load contact forms")
        if rows is not None:
            self.contacts = list(rows)
        return self.contacts

    def visible(self, search: str = "", status: str = ALL) -> List[Dict]:
        return filter_items(self.contacts, search, ("name", "email", "subject"), status=status)

    def counts(self) -> Dict[str, int]:
        counts = {"total": len(self.contacts), "pending": 0, "resolved": 0, "archived": 0}
        for contact in self.contacts:
            if contact.get("status") in counts:
                counts[contact["status"]] += 1
        return counts

    def update_status(self, contact_id: int, status: str, notes: Optional[str] = None) -> bool:
        payload = {"status": status}
        if notes is not None:
            payload["notes"] = notes
        updated = self._call(
            lambda: self.api.contact.update(contact_id, payload),
            "Failed to update contact status",
            f"Contact {status} successfully",
        )
        if updated is None:
            return False
        self.contacts = _replace(self.contacts, updated)
        return True

    def delete(self, contact_id: int) -> bool:
        result = self._call(
            lambda: self.api.contact.delete(contact_id),
            "Failed to delete contact form",
            "Contact form deleted successfully",
        )
        if result is None:
            return False
        self.contacts = [c for c in self.contacts if c.get("id") != contact_id]
        return True


class GalleryManager(_Controller):
    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.items: List[Dict] = []

    def load(self) -> List[Dict]:
        rows = self._load(self.api.gallery.list, "Failed to load gallery data")
        if rows is not None:
            self.items = list(rows)
        return self.items

    def categories(self) -> List[str]:
        return sorted({item["category"] for item in self.items if item.get("category")})

    def visible(self, search: str = "", category: str = ALL) -> List[Dict]:
        return filter_items(self.items, search, ("title",), category=category)

    def _validate(self, form: Dict) -> bool:
        if _blank(form.get("title")) or _blank(form.get("image_url")) or _blank(form.get("category")):
            self.notifier.error(REQUIRED_FIELDS_MESSAGE)
            return False
        if form.get("type") == "video" and _blank(form.get("video_url")):
            self.notifier.error("Video URL is required for video type")
            return False
        return True

    def save(self, form: Dict, item_id: Optional[int] = None) -> bool:
        if not self._validate(form):
            return False
        if item_id is None:
            created = self._call(
                lambda: self.api.gallery.create(form),
                "Failed to create gallery item",
                "Gallery item created successfully",
            )
            if created is None:
                return False
            self.items = [created] + self.items
            return True
        updated = self._call(
            lambda: self.api.gallery.update(item_id, form),
            "Failed to update gallery item",
            "Gallery item updated successfully",
        )
        if updated is None:
            return False
        self.items = _replace(self.items, updated)
        return True

    def delete(self, item_id: int) -> bool:
        result = self._call(
            lambda: self.api.gallery.delete(item_id),
            "Failed to delete gallery item",
            "Gallery item deleted successfully",
        )
        if result is None:
            return False
        self.items = [item for item in self.items if item.get("id") != item_id]
        return True


class PricingManager(_Controller):
    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.pricing: Optional[Dict] = None
        self.draft: Dict[str, Any] = {}

    def load(self) -> Optional[Dict]:
        pricing = self._load(self.api.pricing.get, "Failed to load pricing")
        if pricing is not None:
            self.pricing = pricing
            self.reset()
        return self.pricing

    def reset(self) -> None:
        if self.pricing:
            self.draft = {
                "internal_delegate": self.pricing["internal_delegate"],
                "external_delegate": self.pricing["external_delegate"],
            }

    def save(self) -> bool:
        try:
            internal = int(self.draft.get("internal_delegate"))
            external = int(self.draft.get("external_delegate"))
        except (TypeError, ValueError):
            self.notifier.error("Please enter valid amounts")
            return False
        if internal < 0 or external < 0:
            self.notifier.error("Please enter valid amounts")
            return False
        pricing = self._call(
            lambda: self.api.pricing.update(internal, external),
            "Failed to update pricing",
            "Pricing updated successfully",
        )
        if pricing is None:
            return False
        self.pricing = pricing
        self.reset()
        return True


class PopupManager(_Controller):
    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.popup: Optional[Dict] = None

    def load(self) -> Optional[Dict]:
        popup = self._load(self.api.popups.get, "Failed to load popup")
        if popup is not None:
            self.popup = popup
        return self.popup

    def save(self, heading: str, text: str, is_active: Optional[bool] = None) -> bool:
        if _blank(heading) or _blank(text):
            self.notifier.error(REQUIRED_FIELDS_MESSAGE)
            return False
        popup = self._call(
            lambda: self.api.popups.update(heading.strip(), text.strip(), is_active),
            "Failed to save popup",
            "Popup saved successfully",
        )
        if popup is None:
            return False
        self.popup = popup
        return True

    def toggle(self) -> bool:
        target = not bool(self.popup and self.popup.get("is_active"))
        popup = self._call(
            lambda: self.api.popups.toggle(target),
            "Failed to update popup",
            f"Popup {'activated' if target else 'deactivated'} successfully",
        )
        if popup is None:
            return False
        self.popup = popup
        return True


class PopupBanner:
    """The public popup; hidden when there is nothing active or after dismissal."""

    def __init__(self, api: ApiClient):
        self.api = api
        self.popup: Optional[Dict] = None
        self.visible = False
        self.loading = True

    def load(self) -> bool:
        try:
            popup = self.api.popups.active()
        except ApiError as exc:
            logger.error("Error fetching popup: %s", exc.message)
            popup = None
        finally:
            self.loading = False
        if popup and popup.get("is_active"):
            self.popup = popup
            self.visible = True
        else:
            self.popup = None
            self.visible = False
        return self.visible

    def dismiss(self) -> None:
        self.visible = False


class TransactionRecords(_Controller):
    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.payments: List[Dict] = []
        self.pagination: Dict[str, int] = {"page": 1, "limit": 10, "total": 0, "pages": 1}
        self.stats: Optional[Dict] = None
        self.logs: List[Dict] = []

    def load(self, page: int = 1, limit: int = 10, status: Optional[str] = None) -> List[Dict]:
        if status in ("", ALL):
            status = None

        def fetch():
            return self.api.payments.list(page=page, limit=limit, status=status), self.api.payments.stats()

        result = self._load(fetch, "Failed to load transaction data")
        if result:
            listing, stats = result
            self.payments = list(listing.get("payments") or [])
            self.pagination = listing.get("pagination") or self.pagination
            self.stats = stats
        return self.payments

    def load_logs(self, page: int = 1, limit: int = 20) -> List[Dict]:
        listing = self._call(lambda: self.api.payments.logs(page=page, limit=limit), "Failed to load transaction logs")
        if listing:
            self.logs = list(listing.get("logs") or [])
        return self.logs

    def visible(self, search: str = "") -> List[Dict]:
        def haystack(payment: Dict):
            user = payment.get("user") or {}
            return (
                user.get("first_name"),
                user.get("last_name"),
                user.get("email"),
                payment.get("id"),
                payment.get("razorpay_order_id"),
                payment.get("razorpay_payment_id"),
            )

        return [payment for payment in self.payments if matches_search(search, *haystack(payment))]

    def export(self, destination: Path, status: Optional[str] = None) -> Optional[Path]:
        content = self._call(lambda: self.api.payments.export(status=status), "Failed to export payments")
        if not content:
            return None
        destination = Path(destination)
        destination.write_bytes(content)
        self.notifier.success(f"Exported payments to {destination.name}")
        return destination

    def refund(self, payment_id: int, amount: float, reason: str) -> bool:
        if not amount or amount <= 0 or _blank(reason):
            self.notifier.error(REQUIRED_FIELDS_MESSAGE)
            return False
        refunded = self._call(
            lambda: self.api.payments.refund(payment_id, amount, reason.strip()),
            "Failed to refund payment",
            "Payment refunded successfully",
        )
        if refunded is None:
            return False
        self.payments = [
            {**payment, **refunded} if payment.get("id") == payment_id else payment for payment in self.payments
        ]
        return True


class RegistrationsBoard(_Controller):
    """Registration triage for Delegate Affairs and Dev Admins."""

    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.registrations: List[Dict] = []

    def load(self) -> List[Dict]:
        rows = self._load(self.api.registrations.list, "Failed to load registrations")
        if rows is not None:
            self.registrations = list(rows)
        return self.registrations

    def visible(self, search: str = "", status: str = ALL, committee: str = ALL) -> List[Dict]:
        result = []
        for row in self.registrations:
            if not matches_search(search, full_name(row), row.get("email"), row.get("institution")):
                continue
            if not matches_choice(status, row.get("status")):
                continue
            if not matches_choice(committee, row.get("allocated_committee") or row.get("committee_preference_1")):
                continue
            result.append(row)
        return result

    def _update(self, registration_id: int, payload: Dict, success: str) -> bool:
        updated = self._call(
            lambda: self.api.registrations.update(registration_id, payload),
            "Failed to update registration",
            success,
        )
        if updated is None:
            return False
        self.registrations = _replace(self.registrations, updated)
        return True

    def set_status(self, registration_id: int, status: str) -> bool:
        return self._update(registration_id, {"status": status}, f"Registration {status.lower()} successfully")

    def allocate(self, registration_id: int, committee_id: int, portfolio_id: Optional[int] = None) -> bool:
        if not committee_id:
            self.notifier.error("Please select a committee first")
            return False
        payload = {"allocated_committee_id": committee_id, "allocated_portfolio_id": portfolio_id}
        return self._update(registration_id, payload, "Allocation updated successfully")

    def clear_allocation(self, registration_id: int) -> bool:
        return self._update(registration_id, {"clear_allocation": True}, "Allocation cleared successfully")


class DelegateProfile(_Controller):
    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.profile: Optional[Dict] = None
        self.registration: Optional[Dict] = None

    def load(self) -> Optional[Dict]:
        def fetch():
            return self.api.auth.get_profile(), self.api.registrations.me()

        result = self._load(fetch, "Failed to load your dashboard")
        if result:
            self.profile, self.registration = result
        return self.profile

    @property
    def is_paid(self) -> bool:
        return bool(self.registration and self.registration.get("payment_status") == "PAID")

    @property
    def needs_payment(self) -> bool:
        return bool(self.registration) and not self.is_paid

    def update_profile(self, data: Dict) -> bool:
        if "first_name" in data and _blank(data["first_name"]):
            self.notifier.error(REQUIRED_FIELDS_MESSAGE)
            return False
        profile = self._call(
            lambda: self.api.auth.update_profile(data),
            "Failed to update profile",
            "Profile updated successfully",
        )
        if profile is None:
            return False
        self.profile = profile
        return True

    def change_password(self, current_password: str, new_password: str, confirm_password: str) -> bool:
        if _blank(current_password) or _blank(new_password):
            self.notifier.error(REQUIRED_FIELDS_MESSAGE)
            return False
        if new_password != confirm_password:
            self.notifier.error("New passwords do not match")
            return False
        result = self._call(
            lambda: self.api.auth.change_password(current_password, new_password),
            "Failed to change password",
            "Password updated successfully",
        )
        return result is not None

    def _merge_resync(self, flow: PaymentFlow) -> None:
        if flow.registration is not None:
            self.registration = flow.registration

    def payment_flow(self, loader: CheckoutLoader, **kwargs) -> PaymentFlow:
        if not self.profile or not self.registration:
            raise ValueError("Profile and registration must be loaded before paying")
        profile = self.profile
        return PaymentFlow(
            self.api,
            loader,
            user_id=profile["id"],
            registration_id=self.registration["id"],
            user_code=profile.get("user_code") or "",
            is_kumaraguru=bool(profile.get("is_kumaraguru")),
            prefill={"name": full_name(profile), "email": profile.get("email", ""), "contact": profile.get("phone") or ""},
            notifier=self.notifier,
            on_resync=self._merge_resync,
            **kwargs,
        )


class MailerForm(_Controller):
    def __init__(self, api: ApiClient, committees: Optional[List[Dict]] = None, notifier: Optional[Notifier] = None):
        super().__init__(api, notifier)
        self.committees = committees or []
        self.recipient_type = "registrants"
        self.selected_recipients: List[str] = [ALL]
        self.single_email = ""
        self.email_provider = "gmail"
        self.subject = ""
        self.message = ""
        self.last_result: Optional[Dict] = None

    def toggle_recipient(self, recipient_id: str) -> List[str]:
        if recipient_id == ALL:
            self.selected_recipients = [ALL]
            return self.selected_recipients
        selected = [r for r in self.selected_recipients if r != ALL]
        if recipient_id in selected:
            selected.remove(recipient_id)
        else:
            selected.append(recipient_id)
        self.selected_recipients = selected
        return selected

    def recipient_display(self) -> str:
        if self.recipient_type == "single":
            return self.single_email or "No email entered"
        if ALL in self.selected_recipients:
            return "All Registrants"
        names = [
            next((c.get("name") for c in self.committees if c.get("id") == recipient_id), recipient_id)
            for recipient_id in self.selected_recipients
        ]
        return ", ".join(names) if names else "No recipients selected"

    def preview(self) -> Optional[Dict[str, str]]:
        if _blank(self.subject) or _blank(self.message):
            self.notifier.error("Please fill in subject and message to preview")
            return None
        return {"to": self.recipient_display(), "subject": self.subject, "message": self.message}

    def _validate(self) -> bool:
        if _blank(self.subject) or _blank(self.message):
            self.notifier.error(REQUIRED_FIELDS_MESSAGE)
            return False
        if self.recipient_type == "single" and _blank(self.single_email):
            self.notifier.error("Please enter an email address")
            return False
        if self.recipient_type == "registrants" and not self.selected_recipients:
            self.notifier.error("Please select at least one recipient group")
            return False
        return True

    def reset(self) -> None:
        self.selected_recipients = [ALL]
        self.single_email = ""
        self.subject = ""
        self.message = ""

    def send(self) -> bool:
        if not self._validate():
            return False
        payload = {
            "recipient_type": self.recipient_type,
            "recipients": self.selected_recipients if self.recipient_type == "registrants" else [],
            "single_email": self.single_email.strip() if self.recipient_type == "single" else None,
            "email_provider": self.email_provider,
            "subject": self.subject.strip(),
            "message": self.message.strip(),
        }
        result = self._call(
            lambda: self.api.mailer.send(payload),
            "Failed to send email",
            "Email sent successfully!",
        )
        if result is None:
            return False
        self.last_result = result
        self.reset()
        return True
