from fastapi import Request, status
from fastapi.responses import JSONResponse
import structlog
from slot_telemetry.core.config import settings

logger = structlog.get_logger()


def is_blocked_user_agent(user_agent: str) -> bool:
    ua = user_agent.lower()
    return any(blocked in ua for blocked in settings.blocked_user_agents)


async def block_scanners_middleware(request: Request, call_next):
    """Reject requests from known vulnerability scanners"""
    user_agent = request.headers.get("User-Agent", "")
    if is_blocked_user_agent(user_agent):
        logger.warning(
            "scanner_blocked",
            path=request.url.path,
            client=request.client.host if request.client else "unknown"
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": "Forbidden"}
        )

    return await call_next(request)


async def body_size_middleware(request: Request, call_next):
    """
    Reject oversized requests early, based on the declared Content-Length.

    Bodies without a length header are checked again by the handler
    after reading.
    """
    content_length = request.headers.get("Content-Length")
    if content_length:
        try:
            declared = int(content_length)
        except ValueError:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Invalid request", "code": "invalid_request"}
            )
        if declared > settings.max_body_bytes:
            logger.warning("request_too_large", path=request.url.path, content_length=declared)
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={"error": "Request too large"}
            )

    return await call_next(request)
