from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Enum as SQLEnum, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class UserRole(str, enum.Enum):
    DELEGATE = "DELEGATE"
    DELEGATE_AFFAIRS = "DELEGATE_AFFAIRS"
    DEV_ADMIN = "DEV_ADMIN"


class InstitutionType(str, enum.Enum):
    SCHOOL = "school"
    COLLEGE = "college"
    BOTH = "both"


class RegistrationStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class ContactStatus(str, enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class GalleryItemType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=True)
    phone = Column(String(20), nullable=True)
    institution = Column(String(255), nullable=True)
    grade = Column(String(50), nullable=True)
    user_code = Column(String(20), unique=True, index=True, nullable=True)  # KMUN25-0001
    is_kumaraguru = Column(Boolean, default=False)
    role = Column(SQLEnum(UserRole), default=UserRole.DELEGATE, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    registrations = relationship("Registration", back_populates="user", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="user", cascade="all, delete-orphan")


class Committee(Base):
    __tablename__ = "committees"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), unique=True, nullable=False)
    institution_type = Column(SQLEnum(InstitutionType), default=InstitutionType.BOTH, nullable=False)
    description = Column(Text, nullable=True)
    capacity = Column(Integer, default=0)
    logo_url = Column(String(500), nullable=True)
    is_featured = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    portfolios = relationship(
        "Portfolio",
        back_populates="committee",
        cascade="all, delete-orphan",
        order_by="Portfolio.display_order, Portfolio.id",
    )


class Portfolio(Base):
    __tablename__ = "portfolios"

    id = Column(Integer, primary_key=True, index=True)
    committee_id = Column(Integer, ForeignKey("committees.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    capacity = Column(Integer, default=1)
    registered = Column(Integer, default=0)  # approved registrations allocated here
    display_order = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    committee = relationship("Committee", back_populates="portfolios")


class Registration(Base):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=True)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    institution = Column(String(255), nullable=False)
    institution_type = Column(SQLEnum(InstitutionType), nullable=False)
    grade = Column(String(50), nullable=True)
    is_kumaraguru = Column(Boolean, default=False)
    committee_preference_1 = Column(String(150), nullable=True)
    committee_preference_2 = Column(String(150), nullable=True)
    committee_preference_3 = Column(String(150), nullable=True)
    portfolio_preference_1 = Column(String(150), nullable=True)
    portfolio_preference_2 = Column(String(150), nullable=True)
    portfolio_preference_3 = Column(String(150), nullable=True)
    previous_experience = Column(Text, nullable=True)
    status = Column(SQLEnum(RegistrationStatus), default=RegistrationStatus.PENDING, nullable=False)
    allocated_committee_id = Column(Integer, ForeignKey("committees.id", ondelete="SET NULL"), nullable=True)
    allocated_portfolio_id = Column(Integer, ForeignKey("portfolios.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="registrations")
    allocated_committee = relationship("Committee")
    allocated_portfolio = relationship("Portfolio")
    payments = relationship("Payment", back_populates="registration")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    registration_id = Column(Integer, ForeignKey("registrations.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), default="INR", nullable=False)
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    razorpay_order_id = Column(String(100), unique=True, index=True, nullable=True)
    razorpay_payment_id = Column(String(100), nullable=True)
    razorpay_signature = Column(String(255), nullable=True)
    refund_amount = Column(Float, nullable=True)
    refund_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="payments")
    registration = relationship("Registration", back_populates="payments")


class TransactionLog(Base):
    __tablename__ = "transaction_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False)
    method = Column(String(10), nullable=True)
    path = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User")


class ContactForm(Base):
    __tablename__ = "contact_forms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(SQLEnum(ContactStatus), default=ContactStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Popup(Base):
    __tablename__ = "popups"

    id = Column(Integer, primary_key=True, index=True)
    heading = Column(String(255), nullable=False, default="")
    text = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Pricing(Base):
    __tablename__ = "pricing"

    id = Column(Integer, primary_key=True, index=True)
    internal_delegate = Column(Integer, nullable=False, default=2500)
    external_delegate = Column(Integer, nullable=False, default=3500)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class GalleryItem(Base):
    __tablename__ = "gallery_items"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    type = Column(SQLEnum(GalleryItemType), default=GalleryItemType.IMAGE, nullable=False)
    image_url = Column(String(500), nullable=False)
    video_url = Column(String(500), nullable=True)
    category = Column(String(120), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class SystemConfig(Base):
    __tablename__ = "system_config"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(String(500), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
