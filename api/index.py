from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from claims.api import router as claims_router
from claims.notifications import VendorNotifier
from claims.service import ClaimService
from core.config import Settings, get_settings
from core.http import register_error_handlers
from core.log import configure_logging
from core.storage import InMemoryStorage
from entitlements.models import ServiceCategory
from wallet.api import router as wallet_router
from wallet.calculator import FeeSchedule
from wallet.payments import PaymentVerificationService
from wallet.service import WalletService


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[InMemoryStorage] = None,
    notifier: Optional[VendorNotifier] = None,
) -> FastAPI:
    settings = settings or get_settings()
    storage = storage or InMemoryStorage()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Warranty claims, AMC entitlements and vendor wallet ledger",
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app, debug=settings.DEBUG)

    wallet_service = WalletService(
        storage,
        fee_schedule=FeeSchedule.from_settings(settings),
        currency=settings.CURRENCY,
    )
    app.state.settings = settings
    app.state.storage = storage
    app.state.wallet_service = wallet_service
    app.state.payment_service = PaymentVerificationService(wallet_service, settings.PAYMENT_GATEWAY_SECRET)
    app.state.claim_service = ClaimService(
        storage,
        wallet=wallet_service,
        notifier=notifier,
        override_policy=settings.QUOTA_OVERRIDE_POLICY,
        policy_minimums={ServiceCategory.WARRANTY_CLAIM: settings.WARRANTY_CLAIM_MINIMUM},
    )

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "service-marketplace"}

    app.include_router(claims_router)
    app.include_router(wallet_router)
    return app


app = create_app()

handler = Mangum(app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
