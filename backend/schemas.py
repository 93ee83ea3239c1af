from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from urllib.parse import urlparse

from models import (
    UserRole,
    InstitutionType,
    RegistrationStatus,
    PaymentStatus,
    ContactStatus,
    GalleryItemType,
)


def _normalize_optional_http_url(value: Optional[str], field_name: str, max_length: int = 500) -> Optional[str]:
    raw = str(value or "").strip()
    if not raw:
        return None
    if len(raw) > max_length:
        raise ValueError(f"{field_name} must be at most {max_length} characters")
    if raw.startswith("/"):
        return raw
    parsed = urlparse(raw)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{field_name} must be a valid http/https URL")
    return raw


def _strip_required(value: str, field_name: str) -> str:
    cleaned = str(value or "").strip()
    if not cleaned:
        raise ValueError(f"{field_name} is required")
    return cleaned


# Auth Schemas
class UserLogin(BaseModel):
    email: EmailStr
    password: str


class DelegateSignup(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: Optional[str] = Field(default=None, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=20)
    institution: Optional[str] = None
    grade: Optional[str] = None
    is_kumaraguru: bool = False

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is None:
            return v
        digits = v.replace("+", "").replace(" ", "")
        if not digits.isdigit():
            raise ValueError('Phone number must contain only digits')
        return v


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: Optional[str] = None
    phone: Optional[str] = None
    institution: Optional[str] = None
    grade: Optional[str] = None
    user_code: Optional[str] = None
    is_kumaraguru: bool = False
    role: UserRole
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    last_name: Optional[str] = Field(default=None, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=20)
    institution: Optional[str] = None
    grade: Optional[str] = None


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class AdminUserCreate(DelegateSignup):
    role: UserRole = UserRole.DELEGATE


class AdminUserUpdate(ProfileUpdate):
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_kumaraguru: Optional[bool] = None


class AdminPasswordReset(BaseModel):
    password: str = Field(..., min_length=6)


# Committee / Portfolio Schemas
class PortfolioBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: str = Field(..., min_length=1)
    capacity: int = Field(..., ge=1)

    @field_validator("name", "description")
    @classmethod
    def strip_text(cls, v, info):
        return _strip_required(v, info.field_name)


class PortfolioCreate(PortfolioBase):
    display_order: Optional[int] = None


class PortfolioUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    display_order: Optional[int] = None


class PortfolioResponse(BaseModel):
    id: int
    committee_id: int
    name: str
    description: Optional[str] = None
    capacity: int
    registered: int
    display_order: int = 0

    model_config = ConfigDict(from_attributes=True)


class CommitteeResponse(BaseModel):
    id: int
    name: str
    institution_type: InstitutionType
    description: Optional[str] = None
    capacity: int
    logo_url: Optional[str] = None
    is_featured: bool = False
    portfolios: List[PortfolioResponse] = []
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CommitteeStat(BaseModel):
    id: int
    name: str
    capacity: int
    portfolio_count: int
    seats: int
    registered: int
    preference_count: int


# Registration Schemas
class RegistrationCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: Optional[str] = Field(default=None, max_length=120)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=20)
    institution: str = Field(..., min_length=2, max_length=255)
    institution_type: InstitutionType
    grade: Optional[str] = None
    is_kumaraguru: bool = False
    committee_preference_1: str = Field(..., min_length=1)
    committee_preference_2: Optional[str] = None
    committee_preference_3: Optional[str] = None
    portfolio_preference_1: Optional[str] = None
    portfolio_preference_2: Optional[str] = None
    portfolio_preference_3: Optional[str] = None
    previous_experience: Optional[str] = None

    @field_validator("institution_type")
    @classmethod
    def validate_institution_type(cls, v):
        if v == InstitutionType.BOTH:
            raise ValueError("institution_type must be school or college")
        return v

    @model_validator(mode="after")
    def validate_preferences_distinct(self):
        ranked = [
            p.strip().lower()
            for p in (self.committee_preference_1, self.committee_preference_2, self.committee_preference_3)
            if p and p.strip()
        ]
        if len(ranked) != len(set(ranked)):
            raise ValueError("Committee preferences must be distinct")
        return self


class RegistrationUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    last_name: Optional[str] = None
    phone: Optional[str] = None
    institution: Optional[str] = None
    grade: Optional[str] = None
    committee_preference_1: Optional[str] = None
    committee_preference_2: Optional[str] = None
    committee_preference_3: Optional[str] = None
    portfolio_preference_1: Optional[str] = None
    portfolio_preference_2: Optional[str] = None
    portfolio_preference_3: Optional[str] = None
    previous_experience: Optional[str] = None
    # admin-only fields
    status: Optional[RegistrationStatus] = None
    allocated_committee_id: Optional[int] = None
    allocated_portfolio_id: Optional[int] = None
    clear_allocation: bool = False


class RegistrationResponse(BaseModel):
    id: int
    user_id: int
    first_name: str
    last_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    institution: str
    institution_type: InstitutionType
    grade: Optional[str] = None
    is_kumaraguru: bool = False
    committee_preference_1: Optional[str] = None
    committee_preference_2: Optional[str] = None
    committee_preference_3: Optional[str] = None
    portfolio_preference_1: Optional[str] = None
    portfolio_preference_2: Optional[str] = None
    portfolio_preference_3: Optional[str] = None
    previous_experience: Optional[str] = None
    status: RegistrationStatus
    allocated_committee_id: Optional[int] = None
    allocated_portfolio_id: Optional[int] = None
    allocated_committee: Optional[str] = None
    allocated_portfolio: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Pricing / Popup Schemas
class PricingUpdate(BaseModel):
    internal_delegate: int = Field(..., ge=0)
    external_delegate: int = Field(..., ge=0)


class PricingResponse(BaseModel):
    id: int
    internal_delegate: int
    external_delegate: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PopupUpdate(BaseModel):
    heading: str = Field(..., max_length=255)
    text: str
    is_active: Optional[bool] = None

    @field_validator("heading", "text")
    @classmethod
    def strip_text(cls, v, info):
        return _strip_required(v, info.field_name)


class PopupToggle(BaseModel):
    is_active: bool


class PopupResponse(BaseModel):
    id: int
    heading: str
    text: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Payment Schemas
class CreateOrderRequest(BaseModel):
    user_id: int
    registration_id: Optional[int] = None
    amount: float = Field(..., gt=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)


class RazorpayOrder(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    user_id: int
    registration_id: Optional[int] = None
    amount: float
    currency: str
    status: PaymentStatus
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    refund_amount: Optional[float] = None
    refund_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreateOrderResponse(BaseModel):
    payment: PaymentResponse
    razorpay_order: RazorpayOrder
    key: str


class VerifyPaymentRequest(BaseModel):
    payment_id: int
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class RefundRequest(BaseModel):
    amount: float = Field(..., gt=0)
    reason: str = Field(..., min_length=1)


class PaymentUserSummary(BaseModel):
    id: int
    first_name: str
    last_name: Optional[str] = None
    email: str
    institution: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentListItem(PaymentResponse):
    user: Optional[PaymentUserSummary] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaymentListResponse(BaseModel):
    payments: List[PaymentListItem]
    pagination: Pagination


class PaymentStats(BaseModel):
    total_payments: int
    successful_payments: int
    pending_payments: int
    failed_payments: int
    refunded_payments: int
    total_amount: float
    successful_amount: float
    success_rate: str


class TransactionLogResponse(BaseModel):
    id: int
    action: str
    details: Optional[Dict[str, Any]] = None
    method: Optional[str] = None
    path: Optional[str] = None
    created_at: Optional[datetime] = None
    user: Optional[PaymentUserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionLogListResponse(BaseModel):
    logs: List[TransactionLogResponse]
    pagination: Pagination


# Contact Schemas
class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=20)
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)


class ContactUpdate(BaseModel):
    status: Optional[ContactStatus] = None
    notes: Optional[str] = None


class ContactResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    subject: str
    message: str
    status: ContactStatus
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Gallery Schemas
class GalleryCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    type: GalleryItemType = GalleryItemType.IMAGE
    image_url: str = Field(..., min_length=1)
    video_url: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=120)

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v):
        return _normalize_optional_http_url(v, "image_url")

    @field_validator("video_url")
    @classmethod
    def validate_video_url(cls, v):
        return _normalize_optional_http_url(v, "video_url")

    @model_validator(mode="after")
    def validate_video(self):
        if self.type == GalleryItemType.VIDEO and not self.video_url:
            raise ValueError("Video URL is required for video type")
        return self


class GalleryUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[GalleryItemType] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=120)

    @field_validator("image_url", "video_url")
    @classmethod
    def validate_urls(cls, v, info):
        if v is None:
            return v
        return _normalize_optional_http_url(v, info.field_name)


class GalleryResponse(BaseModel):
    id: int
    title: str
    type: GalleryItemType
    image_url: str
    video_url: Optional[str] = None
    category: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Mailer Schemas
class MailerSendRequest(BaseModel):
    recipient_type: str = Field(..., pattern="^(registrants|single)$")
    recipients: List[str] = []
    single_email: Optional[EmailStr] = None
    email_provider: str = Field(default="gmail", pattern="^(gmail|outlook)$")
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_recipients(self):
        if self.recipient_type == "single" and not self.single_email:
            raise ValueError("single_email is required for single recipient mail")
        if self.recipient_type == "registrants" and not self.recipients:
            raise ValueError("Select at least one recipient group")
        return self


class MailerTestRequest(BaseModel):
    email: EmailStr
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    email_provider: str = Field(default="gmail", pattern="^(gmail|outlook)$")


class MailerSendResponse(BaseModel):
    total_recipients: int
    total_sent: int
    failed: List[str] = []


class MailerRecipient(BaseModel):
    name: str
    email: str
    committee: Optional[str] = None


class MailerStats(BaseModel):
    total_registrants: int
    by_committee: Dict[str, int]


# Dashboard Schemas
class DashboardStat(BaseModel):
    label: str
    value: str
    change: str
    icon: str
    color: str


class ActivityItem(BaseModel):
    type: str
    user: str
    action: str
    timestamp: Optional[datetime] = None
    details: str


class ContentSection(BaseModel):
    title: str
    body: List[str]


class ContentPage(BaseModel):
    slug: str
    title: str
    last_updated: str
    sections: List[ContentSection]
