"""Connection options shared by the event bus producer and consumer."""

from __future__ import annotations

import logging
import ssl
from pathlib import Path
from typing import Any

from aiokafka.helpers import create_ssl_context

from notification_service.config import Settings

logger = logging.getLogger(__name__)


def build_ssl_context(settings: Settings) -> ssl.SSLContext | None:
    """Return an SSL context for the configured CA material, if any."""

    if settings.kafka_ca_cert:
        context = create_ssl_context(cadata=settings.kafka_ca_cert)
        logger.info("Using event bus CA certificate from the environment")
    elif settings.kafka_ca_cert_path:
        cafile = Path(settings.kafka_ca_cert_path).expanduser().resolve()
        if not cafile.is_file():
            logger.error("Event bus CA certificate %s does not exist", cafile)
            return None
        context = create_ssl_context(cafile=str(cafile))
        logger.info("Using event bus CA certificate from %s", cafile)
    elif settings.kafka_username:
        context = create_ssl_context()
    else:
        return None

    if not settings.kafka_ssl_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def build_client_options(settings: Settings) -> dict[str, Any]:
    """Return keyword arguments accepted by aiokafka clients."""

    options: dict[str, Any] = {
        "bootstrap_servers": settings.bootstrap_servers,
        "client_id": settings.kafka_client_id,
    }
    ssl_context = build_ssl_context(settings)
    if settings.kafka_username:
        options.update(
            security_protocol="SASL_SSL",
            sasl_mechanism=settings.kafka_sasl_mechanism,
            sasl_plain_username=settings.kafka_username,
            sasl_plain_password=settings.kafka_password,
            ssl_context=ssl_context,
        )
    elif ssl_context is not None:
        options.update(security_protocol="SSL", ssl_context=ssl_context)
    return options


__all__ = ["build_client_options", "build_ssl_context"]
