from pydantic import BaseModel


class ActionResponse(BaseModel):
    """Outcome of a state-changing action. already_in_state means nothing was written."""

    success: bool = True
    message: str
    already_in_state: bool = False
