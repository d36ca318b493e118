import time

from .schema import UserContext, user_from_dict


def _first_ip(meta):
    xff = meta.get("HTTP_X_FORWARDED_FOR")
    if xff:
        return xff.split(",")[0].strip()
    return meta.get("REMOTE_ADDR")


def user_context_from_request(request, user: dict | None = None, consent: dict | None = None) -> UserContext:
    """
    Build the per-request UserContext from the caller's JSON plus what the
    server itself observes. IP and user agent always come from the transport.
    """
    ctx = user_from_dict(user, consent)
    if not request:
        return ctx

    q = request.GET
    c = request.COOKIES

    ctx.ip_address = _first_ip(request.META) or None
    ctx.user_agent = request.META.get("HTTP_USER_AGENT") or None

    if not ctx.page_url:
        ctx.page_url = request.META.get("HTTP_REFERER") or None

    ctx.fbp = ctx.fbp or c.get("_fbp") or None
    ctx.fbc = ctx.fbc or c.get("_fbc") or None
    fbclid = q.get("fbclid")
    if not ctx.fbc and fbclid:
        # synthesize per Meta guidance: fb.1.<ms>.<fbclid>
        ctx.fbc = f"fb.1.{int(time.time() * 1000)}.{fbclid}"

    ctx.ttclid = ctx.ttclid or q.get("ttclid") or None
    ctx.ttp = ctx.ttp or c.get("_ttp") or None

    if not ctx.client_id:
        ctx.client_id = _ga_client_id(c.get("_ga"))
    return ctx


def _ga_client_id(cookie: str | None) -> str | None:
    # _ga cookie looks like GA1.1.<random>.<timestamp>; the client id is the tail pair.
    if not cookie:
        return None
    parts = cookie.split(".")
    if len(parts) < 4:
        return None
    return ".".join(parts[-2:])
