import logging
import os

from flask import Flask

from .config import Settings, settings
from .prioritization import Prioritization, StaticPrioritization, StorePrioritization
from .routes import create_routes
from .store.redis_store import RedisStore

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(message)s",
)
log = logging.getLogger("ci-scheduling-webhook")


def create_prioritization(settings: Settings) -> Prioritization:
    if not settings.redis_url:
        if settings.app_env != "test":
            raise RuntimeError("REDIS_URL is required but not set")
        log.warning("REDIS_URL not set in test env; using empty static prioritization")
        return StaticPrioritization()

    datastore = RedisStore(
        settings.redis_url,
        timeout_seconds=settings.prioritization_timeout_seconds,
    )
    return StorePrioritization(datastore, settings.prioritization_key_prefix)


def create_app(
    settings: Settings = settings, prioritization: Prioritization | None = None
) -> Flask:
    if prioritization is None:
        prioritization = create_prioritization(settings)

    app = Flask(__name__)
    app.register_blueprint(create_routes(settings, prioritization))
    log.info(
        "Webhook configured (shrink_build_cpu=%s shrink_test_cpu=%s)",
        settings.shrink_build_cpu,
        settings.shrink_test_cpu,
    )
    return app


app = create_app()

if __name__ == "__main__":
    log.info("Starting webhook server...")
    app.run(
        host="0.0.0.0",
        port=settings.port,
        ssl_context=(settings.tls_cert_file, settings.tls_key_file),
    )
