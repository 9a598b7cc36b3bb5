import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import SQLAlchemyError
from hdfhr.core import config
from hdfhr.core.security import hash_password
from hdfhr.db.session import engine, SessionLocal
from hdfhr.db.rls import apply_rls_policies
from hdfhr.models.base import Base
from hdfhr.models.models import Admin, User, UserRole, UserStatus
from hdfhr.services.activity_service import get_system_user
from hdfhr.api import auth, companies, employees, admins, tasks, forms, activity_logs, maintenance

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
log = logging.getLogger("hdfhr")

app = FastAPI(title="HDF HR", version="1.0.0")


class NoCacheMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        return response


app.add_middleware(NoCacheMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=config.CORS_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(companies.router)
app.include_router(employees.router)
app.include_router(admins.router)
app.include_router(tasks.router)
app.include_router(forms.router)
app.include_router(activity_logs.router)
app.include_router(maintenance.router)


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)
    apply_rls_policies(engine)
    _seed_defaults()


def _seed_defaults():
    db = SessionLocal()
    try:
        get_system_user(db)
        email = config.SEED_SUPERADMIN_EMAIL.strip().lower()
        if email and config.SEED_SUPERADMIN_PASSWORD:
            if not db.query(User).filter(User.email == email).first():
                user = User(
                    email=email,
                    password_hash=hash_password(config.SEED_SUPERADMIN_PASSWORD),
                    status=UserStatus.ACTIVE,
                )
                db.add(user)
                db.flush()
                db.add(Admin(id=user.id, name="Super Admin", email=email,
                             role=UserRole.SUPER_ADMIN.value, status=True))
                log.info("Seeded super admin %s", email)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("Seed error: %s", e)
    finally:
        db.close()


@app.get("/health")
def health():
    return {"status": "ok", "environment": config.APP_ENV}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5000)
