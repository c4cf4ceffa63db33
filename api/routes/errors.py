"""
Translate failed ActionStates into HTTP errors.

"""

from fastapi import HTTPException

from api.schemas import ActionError, ActionState

STATUS_BY_ERROR = {
    ActionError.invalid_input: 400,
    ActionError.not_found: 404,
    ActionError.conflict: 409,
    ActionError.unavailable: 503,
}


def unwrap(result: ActionState):
    """Return the action's data, or raise HTTPException for a failure."""
    if result.is_success:
        return result.data

    status_code = STATUS_BY_ERROR.get(result.error, 500)
    raise HTTPException(status_code=status_code, detail=result.message)
