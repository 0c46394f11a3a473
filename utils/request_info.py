from flask import has_request_context, request


def client_origin() -> str:
    """First X-Forwarded-For hop, else the socket peer, else "unknown"."""
    if not has_request_context():
        return "unknown"
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    return (first_hop or request.remote_addr or "unknown")[:64]


def client_user_agent():
    if not has_request_context():
        return None
    user_agent = request.headers.get("User-Agent") or ""
    return user_agent[:255] or None
