"""Request helpers shared by the HTTP routes."""

from __future__ import annotations

from fastapi import Request


def client_ip(request: Request) -> str | None:
    """Best guess at the caller's address, honouring one ``X-Forwarded-For`` hop."""
    forwarded_for = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    if request.client is not None:
        return request.client.host
    return None


def wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


__all__ = ["client_ip", "wants_html"]
