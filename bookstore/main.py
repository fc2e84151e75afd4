import logging
import os

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookstore import admin, auth, books, categories, config, database, orders, public, reviews
from bookstore.errors import BookstoreError
from bookstore.schemas import User
from bookstore.security import get_password_hash

logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="Bookstore API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, books, categories, orders, reviews, admin, public):
    app.include_router(module.router)


# ------------------------- Error responses --------------------
@app.exception_handler(BookstoreError)
async def bookstore_error_handler(request, exc: BookstoreError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err["loc"])
        details.append(f"{field}: {err['msg']}")
    return JSONResponse(status_code=400, content={"message": "Validation error", "details": details})


@app.exception_handler(Exception)
async def unhandled_error_handler(request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# ------------------------- Startup ----------------------------
@app.on_event("startup")
async def prepare_database():
    if database.db is None:
        logger.warning("Database not configured; set DATABASE_URL and DATABASE_NAME")
        return
    database.ensure_indexes()
    # Create a default admin if none exists
    if database.collection("user").count_documents({"role": "admin"}) == 0:
        default = User(
            name=config.ADMIN_NAME,
            email=config.ADMIN_EMAIL,
            password_hash=get_password_hash(config.ADMIN_PASSWORD),
            role="admin",
        )
        database.create_document("user", default)
        logger.info("Created default admin %s", config.ADMIN_EMAIL)


# ------------------------- Basic Routes -----------------------
@app.get("/")
def root():
    return {"message": "Bookstore API"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    if database.db is None:
        return response
    response["database"] = "✅ Available"
    response["database_url"] = "✅ Set" if config.DATABASE_URL else "❌ Not Set"
    response["database_name"] = database.db.name
    response["connection_status"] = "Connected"
    try:
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = "⚠️  Connected but not responding"
    return response


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
