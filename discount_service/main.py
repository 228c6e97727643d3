
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from discount_service.config import get_settings
from discount_service.database import engine
from discount_service.logger import get_logger
from discount_service.models import coupon as coupon_model
from discount_service.routers import coupons as coupons_router
from discount_service.routers import discounts as discounts_router

settings = get_settings()
logger = get_logger("main")

# Create database tables
coupon_model.Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.api_title,
    description="Coupon lifecycle management and discount calculation for product prices",
    version=settings.api_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(coupons_router.router)
app.include_router(discounts_router.router)


@app.get("/health")
def health():
    return {"status": "healthy"}


# Proper JSON error with correct status code
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"status_code": exc.status_code, "detail": exc.detail}},
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("discount_service.main:app", host="0.0.0.0", port=8000, reload=True)
