import logging

from sqlalchemy.orm import Session

from app.core.security import get_password_hash
from app.db import models
from app.db.models import UserRole

logger = logging.getLogger("oficina")

DEMO_TENANT_CNPJ = "12.345.678/0001-90"
DEMO_OWNER_EMAIL = "admin@demo.com"
DEMO_MECHANIC_EMAIL = "mecanico@demo.com"
DEMO_PASSWORD = "demo123"


def seed_demo_data(db: Session) -> models.Tenant:
    """Idempotent demo workshop: owner, mechanic, two customers and their cars."""
    tenant = db.query(models.Tenant).filter(models.Tenant.cnpj == DEMO_TENANT_CNPJ).first()
    if tenant:
        return tenant

    tenant = models.Tenant(
        name="Auto Center Demo",
        trade_name="Auto Center Demo LTDA",
        cnpj=DEMO_TENANT_CNPJ,
        phone="(11) 99999-9999",
        whatsapp="(11) 99999-9999",
        email="contato@autocenterdemo.com.br",
        street="Rua das Oficinas",
        number="123",
        neighborhood="Centro",
        city="Sao Paulo",
        state="SP",
        zip_code="01234-567",
        plan="PROFESSIONAL",
        max_users=10,
        max_vehicles=500,
        default_markup=40,
        default_labor_rate=180,
    )
    db.add(tenant)
    db.flush()

    db.add_all(
        [
            models.User(
                tenant_id=tenant.id,
                email=DEMO_OWNER_EMAIL,
                password_hash=get_password_hash(DEMO_PASSWORD),
                name="Admin Demo",
                phone="(11) 99999-9999",
                role=UserRole.OWNER.value,
            ),
            models.User(
                tenant_id=tenant.id,
                email=DEMO_MECHANIC_EMAIL,
                password_hash=get_password_hash(DEMO_PASSWORD),
                name="Joao Mecanico",
                phone="(11) 98888-8888",
                role=UserRole.MECHANIC.value,
            ),
        ]
    )

    maria = models.Customer(
        tenant_id=tenant.id,
        name="Maria Silva",
        cpf_cnpj="123.456.789-00",
        email="maria@email.com",
        phone="(11) 97777-7777",
        whatsapp="(11) 97777-7777",
        city="Sao Paulo",
        state="SP",
    )
    carlos = models.Customer(
        tenant_id=tenant.id,
        name="Carlos Souza",
        cpf_cnpj="987.654.321-00",
        phone="(11) 96666-6666",
        city="Sao Paulo",
        state="SP",
    )
    db.add_all([maria, carlos])
    db.flush()

    db.add_all(
        [
            models.Vehicle(
                tenant_id=tenant.id,
                customer_id=maria.id,
                plate="ABC1D23",
                brand="Volkswagen",
                model="Gol",
                version="1.0 MPI",
                year=2020,
                model_year=2021,
                color="Prata",
                fuel_type="FLEX",
                transmission="MANUAL",
                mileage=45000,
            ),
            models.Vehicle(
                tenant_id=tenant.id,
                customer_id=carlos.id,
                plate="XYZ4E56",
                brand="Fiat",
                model="Argo",
                version="1.3 Drive",
                year=2022,
                model_year=2022,
                color="Branco",
                fuel_type="FLEX",
                transmission="MANUAL",
                mileage=18000,
            ),
        ]
    )
    db.commit()
    db.refresh(tenant)
    logger.info("demo workshop seeded tenant=%s", tenant.id)
    return tenant
