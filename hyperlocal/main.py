# hyperlocal/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hyperlocal.core.config import Settings, settings
from hyperlocal.core.exceptions import HyperlocalError
from hyperlocal.core.logging_config import setup_logging
from hyperlocal.database import get_client, get_database
from hyperlocal.models.bookings import BookingRepository
from hyperlocal.models.services import ServiceRepository
from hyperlocal.models.user import AccountDirectory
from hyperlocal.routes.bookings import booking_router
from hyperlocal.routes.contact import contact_router
from hyperlocal.routes.ws import ConnectionManager, ws_router
from hyperlocal.services.booking_state import BookingStateMachine
from hyperlocal.services.notifications import NotificationDispatcher
from hyperlocal.services.payments import PaymentVerifier, RazorpayGateway
from hyperlocal.services.queue import JobQueue
from hyperlocal.utils.email_utils import SmtpMailer

logger = logging.getLogger(__name__)


def describe_validation_errors(errors) -> str:
    """Flatten pydantic errors into one message, e.g. "rating: Field required"."""
    parts = []
    for error in errors:
        # loc starts with where the field came from, e.g. "body"
        field = ".".join(str(p) for p in error.get("loc", ())[1:])
        parts.append(f"{field}: {error['msg']}" if field else error["msg"])
    return "; ".join(parts) or "Invalid request"


def create_app(
    config: Settings = settings,
    *,
    db=None,
    bookings=None,
    services=None,
    accounts=None,
    mailer=None,
    gateway=None,
    realtime=None,
) -> FastAPI:
    """Build the application. Collaborators passed in replace the defaults."""
    app = FastAPI(title="Hyperlocal AI Bookings API")

    client = None
    if db is None and None in (bookings, services, accounts):
        client = get_client(config)
        db = get_database(client, config)

    bookings = bookings or BookingRepository(db)
    services = services or ServiceRepository(db)
    accounts = accounts or AccountDirectory(db)
    mailer = mailer or SmtpMailer(config)
    realtime = realtime or ConnectionManager()
    gateway = gateway or RazorpayGateway(
        config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET, config.RAZORPAY_API_URL
    )

    email_queue = JobQueue("email", config.QUEUE_BACKOFF_SECONDS, config.EMAIL_MAX_ATTEMPTS)
    notification_queue = JobQueue(
        "notification", config.QUEUE_BACKOFF_SECONDS, config.NOTIFICATION_MAX_ATTEMPTS
    )
    dispatcher = NotificationDispatcher(email_queue, notification_queue, mailer, realtime, config)

    state = app.state
    state.config = config
    state.db = db
    state.bookings = bookings
    state.services = services
    state.accounts = accounts
    state.realtime = realtime
    state.gateway = gateway
    state.email_queue = email_queue
    state.notification_queue = notification_queue
    state.dispatcher = dispatcher
    state.booking_state = BookingStateMachine(bookings, services, accounts, dispatcher)
    state.verifier = PaymentVerifier(config.RAZORPAY_KEY_SECRET, bookings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HyperlocalError)
    async def handle_domain_error(request: Request, exc: HyperlocalError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": describe_validation_errors(exc.errors())})

    app.include_router(booking_router, prefix="/api/bookings")
    app.include_router(contact_router, prefix="/api/contact")
    app.include_router(ws_router, prefix="/api/ws")

    @app.get("/")
    async def root():
        return {"message": "Welcome to Hyperlocal AI Bookings API"}

    @app.on_event("startup")
    async def startup():
        setup_logging("hyperlocal", config.LOG_LEVEL, config.LOG_FILE)
        email_queue.start()
        notification_queue.start()
        if db is None:
            return
        try:
            await db.command("ping")
            logger.info("MongoDB connected successfully.")
        except Exception as e:
            logger.error("MongoDB connection failed: %s", e)

    @app.on_event("shutdown")
    async def shutdown():
        await email_queue.close()
        await notification_queue.close()
        await dispatcher.wait_for_fallbacks()
        close_gateway = getattr(gateway, "aclose", None)
        if close_gateway is not None:
            await close_gateway()
        if client is not None:
            client.close()

    return app


app = create_app()
