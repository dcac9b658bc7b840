"""
Views for the heartbeat ping endpoint.
"""
import logging

from django.db import DatabaseError
from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from heartbeat.services.pings import ingest_ping, mask_ping_key

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def ping(request, key: str):
    """
    Record a heartbeat for the check owning `key`.

    Always answers OK so callers cannot probe which keys exist.
    """
    try:
        check_uuid = ingest_ping(key)
    except DatabaseError:
        logger.exception(f"Failed to process ping for key {mask_ping_key(key)}")
    else:
        if check_uuid is None:
            logger.debug("Ignoring ping, unknown key")

    return HttpResponse("OK", content_type="text/plain")
