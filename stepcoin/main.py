import uvicorn
from fastapi import FastAPI

from stepcoin.api.routes.coin_redemptions import router as coin_redemptions_router
from stepcoin.api.routes.health import router as health_router
from stepcoin.api.routes.internal_coin_redemptions import router as internal_coin_redemptions_router
from stepcoin.api.routes.internal_payments import router as internal_payments_router
from stepcoin.api.routes.internal_steps_config import router as internal_steps_config_router
from stepcoin.api.routes.payment_webhook import router as payment_webhook_router
from stepcoin.api.routes.payments import router as payments_router
from stepcoin.api.routes.steps import router as steps_router
from stepcoin.api.routes.subscriptions import router as subscriptions_router
from stepcoin.core.config import get_settings
from stepcoin.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Step Coin Rewards API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.include_router(health_router)
    app.include_router(steps_router)
    app.include_router(coin_redemptions_router)
    app.include_router(subscriptions_router)
    app.include_router(payments_router)
    app.include_router(payment_webhook_router)
    app.include_router(internal_steps_config_router)
    app.include_router(internal_coin_redemptions_router)
    app.include_router(internal_payments_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "stepcoin.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
