from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from marketplace.core.config import settings
from marketplace.core.exceptions import MarketplaceError
from marketplace.core.logging import configure_logging
from marketplace.core.scheduler import start_scheduler, stop_scheduler
from marketplace.endpoints import health, course, enrollment, progress, payment, review
from marketplace.middleware.exceptions import (
    global_exception_handler, marketplace_exception_handler, validation_exception_handler
)
from marketplace.middleware.logging import RequestLoggingMiddleware

configure_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(MarketplaceError, marketplace_exception_handler)
app.add_exception_handler(HTTPException, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(health.router, tags=["Health"])
app.include_router(course.router, prefix="/courses", tags=["Courses"])
app.include_router(enrollment.router, prefix="/enrollments", tags=["Enrollments"])
app.include_router(progress.router, prefix="/progress", tags=["Progress"])
app.include_router(payment.router, prefix="/payments", tags=["Payments"])
app.include_router(review.router, tags=["Reviews"])

@app.on_event("startup")
async def startup_event():
    start_scheduler()

@app.on_event("shutdown")
async def shutdown_event():
    stop_scheduler()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
