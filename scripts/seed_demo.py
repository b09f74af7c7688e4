from app.db import models
from app.db.init_db import DEMO_MECHANIC_EMAIL, DEMO_OWNER_EMAIL, DEMO_PASSWORD, seed_demo_data
from app.db.session import SessionLocal, engine


def main() -> None:
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        tenant = seed_demo_data(db)
        print(f"Oficina demo: {tenant.name} ({tenant.id})")
        print(f"Dono: {DEMO_OWNER_EMAIL} / {DEMO_PASSWORD}")
        print(f"Mecanico: {DEMO_MECHANIC_EMAIL} / {DEMO_PASSWORD}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
