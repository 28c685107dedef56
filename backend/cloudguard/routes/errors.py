"""
Service exception to HTTP status translation shared by the routers
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException

from ..services.errors import InvalidStateTransition, NotFoundError
from ..utils.logging_security import sanitize_for_log

logger = logging.getLogger(__name__)


@contextmanager
def translate_service_errors(operation: str) -> Iterator[None]:
    """
    Map service exceptions raised in the block to HTTPException.

    NotFoundError -> 404, InvalidStateTransition -> 409, ValueError -> 400,
    anything else -> 500 with a generic message (logged with traceback).
    """
    try:
        yield
    except HTTPException:
        raise
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStateTransition as e:
        logger.warning(f"Rejected {operation}: {sanitize_for_log(str(e), allow_special=True)}")
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        logger.warning(f"Invalid request to {operation}: {sanitize_for_log(str(e), allow_special=True)}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error during {operation}: {sanitize_for_log(str(e))}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to {operation}. Check server logs.")
