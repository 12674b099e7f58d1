"""Celery tasks for the tooling app."""

import base64
import binascii
import logging

from celery import shared_task
from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

CANCEL_KEY = "tooling:import-cancel:{token}"


def request_import_cancel(token: str) -> None:
    """Ask a running ``validate_import_file`` task to stop."""
    cache.set(
        CANCEL_KEY.format(token=token),
        True,
        settings.TOOLING_IMPORT_CANCEL_TTL,
    )


def is_import_cancelled(token: str) -> bool:
    return bool(cache.get(CANCEL_KEY.format(token=token)))


@shared_task(bind=True)
def validate_import_file(
    self, content: str, token: str | None = None, filename: str | None = None
):
    """Validate an uploaded import file in the background.

    ``content`` is the CSV text, or base64 for an .xlsx upload. Returns the
    result as a dict; a cancelled run has ``cancelled`` set.
    """
    from .errors import ParseError
    from .services.imports import ImportResult, validate_import

    if filename and filename.lower().endswith(".xlsx"):
        try:
            content = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as exc:
            failure = ParseError(f"Workbook content is not valid base64: {exc}")
            return ImportResult(failure=failure, errors=[str(failure)]).to_dict()

    cancel_check = None
    if token:
        cancel_check = lambda: is_import_cancelled(token)  # noqa: E731

    try:
        result = validate_import(
            content, filename=filename, cancel_check=cancel_check
        )
    except Exception:
        logger.exception("Import validation failed for token %s", token)
        raise
    finally:
        if token:
            cache.delete(CANCEL_KEY.format(token=token))

    return result.to_dict()
