import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UserRole(str, enum.Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    MECHANIC = "MECHANIC"
    RECEPTIONIST = "RECEPTIONIST"


class OSStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    DIAGNOSING = "DIAGNOSING"
    QUOTING = "QUOTING"
    WAITING_APPROVAL = "WAITING_APPROVAL"
    APPROVED = "APPROVED"
    IN_PROGRESS = "IN_PROGRESS"
    QUALITY_CHECK = "QUALITY_CHECK"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ItemType(str, enum.Enum):
    PART = "PART"
    SERVICE = "SERVICE"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    trade_name = Column(String, nullable=True)
    cnpj = Column(String, nullable=True, unique=True)
    phone = Column(String, nullable=True)
    whatsapp = Column(String, nullable=True)
    email = Column(String, nullable=True)
    street = Column(String, nullable=True)
    number = Column(String, nullable=True)
    complement = Column(String, nullable=True)
    neighborhood = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    logo = Column(String, nullable=True)
    primary_color = Column(String, nullable=True)
    plan = Column(String, nullable=False, default="BASIC")
    max_users = Column(Integer, nullable=False, default=3)
    max_vehicles = Column(Integer, nullable=False, default=100)
    default_markup = Column(Float, nullable=False, default=30.0)
    default_labor_rate = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    email = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    role = Column(String, nullable=False, default=UserRole.MECHANIC.value)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    tenant = relationship("Tenant", back_populates="users")


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("tenant_id", "cpf_cnpj", name="uq_customer_tenant_cpf_cnpj"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    name = Column(String, nullable=False)
    cpf_cnpj = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    whatsapp = Column(String, nullable=True)
    street = Column(String, nullable=True)
    number = Column(String, nullable=True)
    complement = Column(String, nullable=True)
    neighborhood = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    vehicles = relationship("Vehicle", back_populates="customer")


class Vehicle(Base):
    __tablename__ = "vehicles"
    __table_args__ = (UniqueConstraint("tenant_id", "plate", name="uq_vehicle_tenant_plate"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False)
    plate = Column(String, nullable=False)
    chassi = Column(String, nullable=True)
    renavam = Column(String, nullable=True)
    brand = Column(String, nullable=False)
    model = Column(String, nullable=False)
    version = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    model_year = Column(Integer, nullable=True)
    color = Column(String, nullable=True)
    fuel_type = Column(String, nullable=False, default="FLEX")
    transmission = Column(String, nullable=False, default="MANUAL")
    engine = Column(String, nullable=True)
    mileage = Column(Integer, nullable=True)
    notes = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    customer = relationship("Customer", back_populates="vehicles")


class ServiceOrder(Base):
    __tablename__ = "service_orders"
    __table_args__ = (UniqueConstraint("tenant_id", "number", name="uq_service_order_tenant_number"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    number = Column(Integer, nullable=False)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False)
    vehicle_id = Column(String, ForeignKey("vehicles.id"), nullable=False)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=True)
    status = Column(String, nullable=False, default=OSStatus.DRAFT.value)
    mileage_in = Column(Integer, nullable=True)
    mileage_out = Column(Integer, nullable=True)
    fuel_level = Column(Integer, nullable=True)
    entry_notes = Column(String, nullable=True)
    exit_notes = Column(String, nullable=True)
    entry_photos = Column(JSON, nullable=True)
    exit_photos = Column(JSON, nullable=True)
    total_parts = Column(Float, nullable=False, default=0.0)
    total_labor = Column(Float, nullable=False, default=0.0)
    discount = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)
    approved_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    customer = relationship("Customer")
    vehicle = relationship("Vehicle")
    created_by = relationship("User")
    items = relationship(
        "OSItem",
        back_populates="service_order",
        cascade="all, delete-orphan",
        order_by="OSItem.created_at",
    )
    diagnostics = relationship(
        "Diagnostic",
        back_populates="service_order",
        cascade="all, delete-orphan",
        order_by="Diagnostic.created_at.desc()",
    )


class OSItem(Base):
    __tablename__ = "os_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    service_order_id = Column(String, ForeignKey("service_orders.id"), nullable=False)
    type = Column(String, nullable=False, default=ItemType.PART.value)
    description = Column(String, nullable=False)
    part_number = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    quantity = Column(Float, nullable=False, default=1.0)
    unit_cost = Column(Float, nullable=False, default=0.0)
    unit_price = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)
    labor_hours = Column(Float, nullable=True)
    labor_rate = Column(Float, nullable=True)
    diagnostic_id = Column(String, ForeignKey("diagnostics.id"), nullable=True)
    extracted_part_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    service_order = relationship("ServiceOrder", back_populates="items")


class Diagnostic(Base):
    __tablename__ = "diagnostics"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    service_order_id = Column(String, ForeignKey("service_orders.id"), nullable=False)
    mechanic_id = Column(String, ForeignKey("users.id"), nullable=False)
    source = Column(String, nullable=False, default="manual")
    audio_url = Column(String, nullable=True)
    audio_duration = Column(Integer, nullable=True)
    image_url = Column(String, nullable=True)
    transcription = Column(String, nullable=True)
    extracted_parts = Column(JSON, nullable=True)
    extracted_symptoms = Column(JSON, nullable=True)
    summary = Column(String, nullable=True)
    recommendations = Column(JSON, nullable=True)
    image_analysis = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    service_order = relationship("ServiceOrder", back_populates="diagnostics")
    mechanic = relationship("User")
