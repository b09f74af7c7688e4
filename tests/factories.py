import itertools

from app.core.security import create_user_token, get_password_hash
from app.core.tenancy import TenantContext
from app.db import models
from app.db.models import UserRole

_seq = itertools.count(1)

# hashing is slow; every test user shares one password
TEST_PASSWORD = "senha123"
_TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


def make_workshop(db, name="Oficina Teste", role=UserRole.OWNER, email=None, **tenant_fields):
    seq = next(_seq)
    tenant = models.Tenant(
        name=name,
        cnpj=f"{seq:02d}.000.000/0001-{seq % 100:02d}",
        **tenant_fields,
    )
    db.add(tenant)
    db.flush()
    user = models.User(
        tenant_id=tenant.id,
        email=email or f"dono{seq}@oficina.com",
        name=f"Usuario {seq}",
        role=role.value,
        password_hash=_TEST_PASSWORD_HASH,
    )
    db.add(user)
    db.commit()
    db.refresh(tenant)
    db.refresh(user)
    return tenant, user


def add_user(db, tenant, role=UserRole.MECHANIC, email=None):
    user = models.User(
        tenant_id=tenant.id,
        email=email or f"{role.value.lower()}{next(_seq)}@oficina.com",
        name=f"{role.value.title()} Teste",
        role=role.value,
        password_hash=_TEST_PASSWORD_HASH,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def context_for(user) -> TenantContext:
    return TenantContext.for_user(user)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


def make_customer_and_vehicle(db, tenant, plate="ABC1D23", name="Maria"):
    customer = models.Customer(tenant_id=tenant.id, name=name, phone="11999990000")
    db.add(customer)
    db.flush()
    vehicle = models.Vehicle(
        tenant_id=tenant.id,
        customer_id=customer.id,
        plate=plate,
        brand="Volkswagen",
        model="Gol",
    )
    db.add(vehicle)
    db.commit()
    db.refresh(customer)
    db.refresh(vehicle)
    return customer, vehicle
