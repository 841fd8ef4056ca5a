from __future__ import annotations

import ipaddress
import secrets
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Request

INTERNAL_TOKEN_HEADER = "X-Internal-Token"
INTERNAL_ACTOR_HEADER = "X-Internal-Actor"
FORWARDED_FOR_HEADER = "X-Forwarded-For"
DEFAULT_ACTOR = "admin"
MAX_ACTOR_LENGTH = 64

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@dataclass(frozen=True, slots=True)
class InternalAccessDecision:
    allowed: bool
    client_ip: str | None
    actor: str
    reason: str | None = None


def _as_ip(value: str | None) -> str | None:
    try:
        return str(ipaddress.ip_address((value or "").strip()))
    except ValueError:
        return None


@lru_cache(maxsize=32)
def parse_networks(networks: str) -> tuple[IPNetwork, ...]:
    # Bare addresses become single-host networks; unparsable entries are skipped.
    parsed: list[IPNetwork] = []
    for entry in filter(None, (part.strip() for part in networks.split(","))):
        try:
            parsed.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(parsed)


def is_valid_internal_token(*, expected_token: str, received_token: str | None) -> bool:
    if not expected_token or not received_token:
        return False
    return secrets.compare_digest(expected_token, received_token)


def is_internal_request_authenticated(request: Request, *, expected_token: str) -> bool:
    return is_valid_internal_token(
        expected_token=expected_token,
        received_token=request.headers.get(INTERNAL_TOKEN_HEADER),
    )


def is_client_ip_allowed(*, client_ip: str | None, allowlist: str) -> bool:
    address = _as_ip(client_ip)
    if address is None:
        return False
    parsed = ipaddress.ip_address(address)
    return any(parsed in network for network in parse_networks(allowlist))


def extract_client_ip(request: Request, *, trusted_proxies: str = "") -> str | None:
    peer_ip = _as_ip(request.client.host if request.client is not None else None)
    forwarded_for = request.headers.get(FORWARDED_FOR_HEADER)
    if not forwarded_for or not is_client_ip_allowed(client_ip=peer_ip, allowlist=trusted_proxies):
        return peer_ip
    # Only the left-most hop is the original client; a malformed value is not trusted.
    return _as_ip(forwarded_for.split(",", maxsplit=1)[0])


def extract_internal_actor(request: Request, *, default: str = DEFAULT_ACTOR) -> str:
    actor = (request.headers.get(INTERNAL_ACTOR_HEADER) or "").strip()
    return actor[:MAX_ACTOR_LENGTH] if actor else default


def evaluate_internal_access(
    request: Request,
    *,
    expected_token: str,
    allowlist: str,
    trusted_proxies: str = "",
) -> InternalAccessDecision:
    client_ip = extract_client_ip(request, trusted_proxies=trusted_proxies)
    actor = extract_internal_actor(request)
    if not is_client_ip_allowed(client_ip=client_ip, allowlist=allowlist):
        return InternalAccessDecision(allowed=False, client_ip=client_ip, actor=actor, reason="ip_not_allowed")
    if not is_internal_request_authenticated(request, expected_token=expected_token):
        return InternalAccessDecision(allowed=False, client_ip=client_ip, actor=actor, reason="invalid_credentials")
    return InternalAccessDecision(allowed=True, client_ip=client_ip, actor=actor)
