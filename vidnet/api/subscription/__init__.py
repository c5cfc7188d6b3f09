from fastapi import APIRouter, Depends, Query

from vidnet.models.account import Account
from vidnet.services.auth import get_current_account
from vidnet.services.graph import GraphQueryEngine, get_graph_engine
from vidnet.services.rate_limit import limit_route
from vidnet.utils.errors import Forbidden
from vidnet.utils.response import api_response, parse_object_id


router = APIRouter()


@router.post(
    "/c/{channel_id}",
    dependencies=[Depends(limit_route(lambda s: s.subscription_toggle_window_seconds))],
)
def toggle_subscription(
    channel_id: str,
    current_account: Account = Depends(get_current_account),
    graph: GraphQueryEngine = Depends(get_graph_engine),
) -> dict:
    """PROTECTED: Subscribe to a channel, or unsubscribe if already subscribed."""
    result = graph.toggle_subscription(current_account.id, parse_object_id(channel_id, "channel id"))
    message = "Successfully subscribed" if result["subscribed"] else "Successfully unsubscribed"
    return api_response(result, message)


@router.get("/c/{channel_id}")
def list_channel_subscribers(
    channel_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_account: Account = Depends(get_current_account),
    graph: GraphQueryEngine = Depends(get_graph_engine),
) -> dict:
    """PROTECTED: Subscribers of the caller's own channel."""
    channel_oid = parse_object_id(channel_id, "channel id")
    if channel_oid != current_account.id:
        raise Forbidden("You are not authorized to view this channel's subscribers")
    return api_response(graph.list_subscribers(channel_oid, page, limit), "Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
def list_subscribed_channels(
    subscriber_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_account: Account = Depends(get_current_account),
    graph: GraphQueryEngine = Depends(get_graph_engine),
) -> dict:
    """PROTECTED: Channels an account is subscribed to."""
    subscriber_oid = parse_object_id(subscriber_id, "subscriber id")
    return api_response(
        graph.list_subscribed_channels(subscriber_oid, page, limit),
        "Subscribed channels fetched successfully",
    )
