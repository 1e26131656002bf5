"""Client module - Wire codec, protocol discovery and the publication API."""

from sitelaunch.client.api import (
    APIError,
    ApiResponse,
    AuthenticationError,
    BundleResponse,
    PublishClient,
    SuggestResponse,
    Team,
    TeamList,
    TransportError,
    is_team_required,
)
from sitelaunch.client.codec import CodecError, decode_response, encode_request
from sitelaunch.client.discovery import DiscoveryError, ProtocolDiscovery, ProtocolInfo
from sitelaunch.client.keyrequest import KeyRequest, KeyRequester, KeyRequestError

__all__ = [
    # API
    "APIError",
    "ApiResponse",
    "AuthenticationError",
    "BundleResponse",
    "PublishClient",
    "SuggestResponse",
    "Team",
    "TeamList",
    "TransportError",
    "is_team_required",
    # Codec
    "CodecError",
    "decode_response",
    "encode_request",
    # Discovery
    "DiscoveryError",
    "ProtocolDiscovery",
    "ProtocolInfo",
    # Key requests
    "KeyRequest",
    "KeyRequestError",
    "KeyRequester",
]
