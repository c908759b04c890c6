"""FastAPI dependencies for API routers.

Authentication lives in front of this service. Requests arrive with the
acting user and household in headers, and every route receives them as
an explicit Owner.
"""

from typing import Annotated

from fastapi import Depends, Header, Request

from household_budget.models.subscription import Owner
from household_budget.orchestrator import AppComponents


def get_components(request: Request) -> AppComponents:
    """Components wired by create_app()."""
    return request.app.state.components


def get_owner(
    x_user_id: Annotated[int, Header(ge=1)],
    x_household_id: Annotated[int, Header(ge=1)],
) -> Owner:
    return Owner(user_id=x_user_id, household_id=x_household_id)


ComponentsDep = Annotated[AppComponents, Depends(get_components)]
OwnerDep = Annotated[Owner, Depends(get_owner)]
