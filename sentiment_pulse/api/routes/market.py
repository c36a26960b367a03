"""Market routes - sentiment, on-chain and event data through the gateway."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response

from sentiment_pulse.api.deps import get_gateway, get_scheduler
from sentiment_pulse.core.errors import ErrorKind
from sentiment_pulse.schemas.api import CancelResponse, OutcomeResponse, SnapshotOut, SnapshotsResponse
from sentiment_pulse.schemas.outcome import Cancelled, Failure, FetchOutcome
from sentiment_pulse.services.gateway import GatewayClient
from sentiment_pulse.services.scheduler import RefreshScheduler

router = APIRouter(tags=["market"])

FAILURE_STATUS = {
    ErrorKind.UNSUPPORTED_COIN: 404,
    ErrorKind.MISSING_CREDENTIAL: 503,
    ErrorKind.TIMEOUT: 504,
}


def status_for(outcome: FetchOutcome) -> int:
    if isinstance(outcome, Failure):
        return FAILURE_STATUS.get(outcome.kind, 502)
    if isinstance(outcome, Cancelled):
        return 409
    return 200


def _respond(outcome: FetchOutcome, response: Response) -> OutcomeResponse:
    response.status_code = status_for(outcome)
    return OutcomeResponse.from_outcome(outcome)


@router.get("/sentiment/{coin}", response_model=OutcomeResponse)
async def get_sentiment(coin: str, response: Response, gateway: GatewayClient = Depends(get_gateway)):
    """
    Sentiment reading for a coin.

    Served live when the provider answers; otherwise from the AI estimate or the
    neutral default, flagged with ``degraded=true``.
    """
    return _respond(await gateway.get_sentiment(coin), response)


@router.get("/onchain/{coin}", response_model=OutcomeResponse)
async def get_onchain(coin: str, response: Response, gateway: GatewayClient = Depends(get_gateway)):
    """On-chain snapshot; coins without a provider mapping are estimated."""
    return _respond(await gateway.get_onchain(coin), response)


@router.get("/events", response_model=OutcomeResponse)
async def get_events(response: Response, gateway: GatewayClient = Depends(get_gateway)):
    return _respond(await gateway.get_events(), response)


@router.post("/cancel/{kind}", response_model=CancelResponse)
async def cancel_fetch(
    kind: Literal["sentiment", "onchain", "events"],
    coin: Optional[str] = Query(None, description="Coin ticker; omit for events"),
    gateway: GatewayClient = Depends(get_gateway),
):
    """Abort a pending fetch; the waiting request answers with ``cancelled``."""
    return CancelResponse(kind=kind, coin=coin, cancelled=gateway.cancel(kind, coin))


@router.get("/snapshots", response_model=SnapshotsResponse)
def get_snapshots(
    kind: Optional[Literal["sentiment", "onchain", "events"]] = Query(None, description="Filter by data kind"),
    scheduler: Optional[RefreshScheduler] = Depends(get_scheduler),
):
    """Latest outcome of every scheduled refresh."""
    if scheduler is None:
        return SnapshotsResponse(scheduler_running=False, data=[])

    data = [
        SnapshotOut(
            key=key,
            kind=snapshot.kind,
            coin=snapshot.coin,
            fetched_at=snapshot.fetched_at,
            outcome=OutcomeResponse.from_outcome(snapshot.outcome),
        )
        for key, snapshot in sorted(scheduler.snapshots.items())
        if kind is None or snapshot.kind == kind
    ]
    return SnapshotsResponse(scheduler_running=scheduler.running, data=data)
