from fastapi import FastAPI
from contextlib import asynccontextmanager
from passwordless.routers import auth, cron
from passwordless.core.config import settings
from passwordless.core.csrf import CSRFMiddleware
from passwordless.core.errors import AuthError
from passwordless.core.http_errors import auth_error_handler
from passwordless.core.redis import RedisClient


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Startup and shutdown events"""
    print("\n" + "=" * 50)
    print("  Starting Passwordless Auth API...")
    print("=" * 50)
    print(f"  Environment: {settings.APP_ENV}")
    print("-" * 50)

    try:
        from sqlalchemy import text
        from passwordless.core.database import engine, init_db
        init_db()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("  [OK]   Database")
    except Exception as e:
        print(f"  [FAIL] Database  - {e}")

    try:
        RedisClient.get_client()
        print(f"  [OK]   Redis     ({settings.REDIS_HOST}:{settings.REDIS_PORT})")
    except Exception as e:
        print(f"  [FAIL] Redis     - {e} (rate limiting disabled)")

    if not settings.MAIL_API_KEY:
        print("  [WARN] Mail      - MAIL_API_KEY not set")
    else:
        print("  [OK]   Mail      (API key configured)")

    print("-" * 50)
    print("  Passwordless Auth API is ready!")
    print("=" * 50 + "\n")
    yield

    print("\nShutting down Passwordless Auth API...")
    RedisClient.close()


app = FastAPI(
    title="Passwordless Auth API",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

app.add_middleware(CSRFMiddleware)
app.add_exception_handler(AuthError, auth_error_handler)


@app.get("/")
def health_check():
    return {"status": True}


app.include_router(auth.router)
app.include_router(cron.router)
