from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates

from .config import Settings, get_settings
from .encoder import encode
from .errors import PaymentNotCompleted, ConfirmationUnavailable, StoreUnavailable, InvalidStationToken
from .logger import logger
from .payments import PaymentConfirmer, build_confirmer
from .security import resolve_station
from .sql_store import SqlTicketStore
from .store import TicketStore, RedeemOutcome, build_store
from .tickets import TicketIssuer, RedemptionCoordinator
from .admin import router as admin_router

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

CHECKIN_STATUS = {
    RedeemOutcome.OK: 200,
    RedeemOutcome.ALREADY_USED: 409,
    RedeemOutcome.NOT_FOUND: 404,
}


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[TicketStore] = None,
    confirmer: Optional[PaymentConfirmer] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logger.setLevel(settings.log_level)
    store = store or build_store(settings)
    confirmer = confirmer or build_confirmer(settings)

    # Create DB tables before serving
    if isinstance(store, SqlTicketStore):
        store.create_schema()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await store.close()

    app = FastAPI(title="Admit One", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.confirmer = confirmer
    app.state.issuer = TicketIssuer(store)
    app.state.coordinator = RedemptionCoordinator(store, default_actor=settings.default_station)

    app.include_router(admin_router)
    _register_error_handlers(app)
    _register_routes(app)
    return app


def _base_url(request: Request) -> str:
    return request.app.state.settings.base_url or str(request.base_url)


async def _confirmed_ticket(request: Request, session_id: str) -> str:
    confirmation = await request.app.state.confirmer.lookup(session_id)
    if not confirmation.paid:
        raise PaymentNotCompleted(confirmation.reference, confirmation.status)
    return await request.app.state.issuer.issue(confirmation.reference)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PaymentNotCompleted)
    async def payment_not_completed(request: Request, exc: PaymentNotCompleted):
        logger.info(f"PAYMENT: {exc}")
        return PlainTextResponse("Payment not completed", status_code=402)

    @app.exception_handler(InvalidStationToken)
    async def invalid_station(request: Request, exc: InvalidStationToken):
        logger.warning(f"CHECKIN: station token rejected ({exc.reason}) on {request.url.path}")
        return PlainTextResponse("Invalid station token", status_code=401)

    @app.exception_handler(ConfirmationUnavailable)
    async def confirmation_unavailable(request: Request, exc: ConfirmationUnavailable):
        logger.error(f"PAYMENT: {exc}", exc_info=exc)
        return PlainTextResponse("Something went wrong", status_code=502)

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable):
        logger.error(f"STORE: {exc}", exc_info=exc)
        body = "Error during check-in" if request.url.path == "/checkin" else "Something went wrong"
        return PlainTextResponse(body, status_code=503)


def _register_routes(app: FastAPI) -> None:
    @app.get("/", response_class=HTMLResponse)
    async def home(request: Request):
        return templates.TemplateResponse(request, "index.html", {"settings": request.app.state.settings})

    # Stripe redirects here with ?session_id={CHECKOUT_SESSION_ID}
    @app.get("/ticket", response_class=HTMLResponse)
    async def ticket_page(request: Request, session_id: str | None = None):
        if not session_id:
            return PlainTextResponse("Missing session_id", status_code=400)

        ticket_id = await _confirmed_ticket(request, session_id)
        encoded = encode(ticket_id, _base_url(request))
        return templates.TemplateResponse(
            request,
            "ticket.html",
            {
                "settings": request.app.state.settings,
                "ticket_id": ticket_id,
                "payload_url": encoded.payload_url,
                "qr_data_uri": encoded.data_uri,
                "qr_download_url": str(request.url_for("ticket_qr").include_query_params(session_id=session_id)),
            },
        )

    @app.get("/ticket/qr.png")
    async def ticket_qr(request: Request, session_id: str | None = None):
        if not session_id:
            return PlainTextResponse("Missing session_id", status_code=400)

        ticket_id = await _confirmed_ticket(request, session_id)
        encoded = encode(ticket_id, _base_url(request))
        return Response(
            content=encoded.png,
            media_type="image/png",
            headers={"Content-Disposition": 'attachment; filename="ticket-qr.png"'},
        )

    # One-time door check-in
    @app.get("/checkin", response_class=HTMLResponse)
    async def checkin(request: Request, code: str | None = None, station: str | None = None):
        if not code:
            return PlainTextResponse("Missing code", status_code=400)

        actor = resolve_station(station, request.app.state.settings)
        outcome = await request.app.state.coordinator.check_in(code, actor)
        return templates.TemplateResponse(
            request,
            "checkin.html",
            {"outcome": outcome.value, "code": code},
            status_code=CHECKIN_STATUS[outcome],
        )

    # Browser scanner for staff (no app install)
    @app.get("/scanner", response_class=HTMLResponse)
    async def scanner(request: Request, station: str | None = None):
        if station:
            resolve_station(station, request.app.state.settings)
        return templates.TemplateResponse(request, "scanner.html", {"station": station or ""})


app = create_app()
