"""Subscription API routes, including the on-demand billing trigger."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from household_budget.api.dependencies import ComponentsDep, OwnerDep
from household_budget.models.billing import BillingScope
from household_budget.models.expense import Expense
from household_budget.models.subscription import (
    Subscription,
    SubscriptionCreate,
    SubscriptionUpdate,
)
from household_budget.services.subscriptions import MAX_PAGE_SIZE

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])

FAILURES_HEADER = "X-Billing-Failures"
TOTAL_COUNT_HEADER = "X-Total-Count"


@router.get("", response_model=list[Subscription])
async def list_subscriptions(
    response: Response,
    owner: OwnerDep,
    components: ComponentsDep,
    page: Optional[int] = Query(None, ge=0),
    size: Optional[int] = Query(None, ge=1),
):
    """
    Subscriptions of the caller's household, ordered by description.

    With `page` and `size` only that page is returned (size is capped at
    200) and the overall count goes in the X-Total-Count header.
    """
    service = components.subscription_service
    if page is None and size is None:
        return await service.list_subscriptions(owner)

    result = await service.list_subscriptions_page(owner, page or 0, size or MAX_PAGE_SIZE)
    response.headers[TOTAL_COUNT_HEADER] = str(result.total)
    return result.items


@router.get("/active", response_model=list[Subscription])
async def list_active_subscriptions(owner: OwnerDep, components: ComponentsDep):
    return await components.subscription_service.list_active_subscriptions(owner)


@router.post("", response_model=Subscription, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    request: SubscriptionCreate,
    owner: OwnerDep,
    components: ComponentsDep,
):
    return await components.subscription_service.create_subscription(request, owner)


@router.post("/bulk", response_model=list[Subscription], status_code=status.HTTP_201_CREATED)
async def create_subscriptions(
    requests: list[SubscriptionCreate],
    owner: OwnerDep,
    components: ComponentsDep,
):
    if not requests:
        raise HTTPException(status_code=400, detail="Subscription list cannot be empty.")
    return await components.subscription_service.create_subscriptions(requests, owner)


@router.post("/process", response_model=list[Expense], status_code=status.HTTP_201_CREATED)
async def process_now(
    response: Response,
    owner: OwnerDep,
    components: ComponentsDep,
):
    """
    Post every due subscription of the caller's household.

    Returns only the expenses created by this call; repeating the call
    before the next due date returns an empty list.
    """
    report = await components.processor.process(BillingScope.household(owner.household_id))
    response.headers[FAILURES_HEADER] = str(report.failure_count)
    return report.created


@router.put("/{subscription_id}", response_model=Subscription)
async def update_subscription(
    subscription_id: int,
    request: SubscriptionUpdate,
    owner: OwnerDep,
    components: ComponentsDep,
):
    return await components.subscription_service.update_subscription(
        subscription_id, request, owner
    )


@router.patch("/{subscription_id}/toggle", response_model=Subscription)
async def toggle_subscription(
    subscription_id: int,
    owner: OwnerDep,
    components: ComponentsDep,
):
    """Pause or resume. Resuming schedules the next due date from today."""
    return await components.subscription_service.toggle_active(subscription_id, owner)


@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription(
    subscription_id: int,
    owner: OwnerDep,
    components: ComponentsDep,
) -> Response:
    await components.subscription_service.delete_subscription(subscription_id, owner)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
