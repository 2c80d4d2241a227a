"""
Direct trigger endpoint.

Trusted callers (the dashboard, the scheduler) ask for a message to be
sent to a known user:

```json
{"action": "daily", "user_id": "4f6c..."}
```
"""

import logging

from fastapi import APIRouter, Response, status

from app.deps import Router, TrustedCaller
from app.schemas.trigger import DirectTrigger, ErrorCategory, TriggerResult

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS = {
    ErrorCategory.PROFILE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.DESTINATION_NOT_SET: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCategory.CREDENTIAL_MISSING: status.HTTP_409_CONFLICT,
    ErrorCategory.AUTH_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.DISPATCH_REJECTED: status.HTTP_502_BAD_GATEWAY,
}


@router.post("", response_model=TriggerResult, dependencies=[TrustedCaller])
async def direct_trigger(
    trigger: DirectTrigger,
    trigger_router: Router,
    response: Response,
) -> TriggerResult:
    """Run a ``welcome``, ``test``, ``daily`` or ``weekly`` action for a user."""
    result = await trigger_router.handle_direct(trigger)
    if result.error:
        logger.info("Direct %s for %s failed: %s", trigger.action.value, trigger.user_id, result.error.value)
        response.status_code = ERROR_STATUS[result.error]
    return result
