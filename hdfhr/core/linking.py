from urllib.parse import urlencode, urlsplit, parse_qs
from hdfhr.core.config import APP_LINK_PREFIX, WEB_LINK_PREFIX

LINK_PREFIXES = [APP_LINK_PREFIX, WEB_LINK_PREFIX]

# screen name -> (path, query params the screen accepts)
SCREENS = {
    "ResetPassword": ("reset-password", ("token",)),
    "Login": ("login", ()),
    "Register": ("register", ()),
    "ForgotPassword": ("forgot-password", ()),
}

_PATHS = {path: (screen, params) for screen, (path, params) in SCREENS.items()}


def build_link(screen: str, prefix: str | None = None, **params) -> str:
    if screen not in SCREENS:
        raise KeyError(f"Unknown screen: {screen}")
    path, accepted = SCREENS[screen]
    query = {k: v for k, v in params.items() if k in accepted and v is not None}
    link = f"{prefix or APP_LINK_PREFIX}{path}"
    if query:
        link = f"{link}?{urlencode(query)}"
    return link


def resolve_link(url: str) -> tuple[str, dict] | None:
    """Map an incoming deep link or web URL to ``(screen, params)``."""
    for prefix in LINK_PREFIXES:
        if prefix and url.startswith(prefix):
            rest = url[len(prefix):]
            break
    else:
        return None
    parts = urlsplit(rest)
    path = parts.path.strip("/")
    if path not in _PATHS:
        return None
    screen, accepted = _PATHS[path]
    query = parse_qs(parts.query)
    params = {k: v[0] for k, v in query.items() if k in accepted and v}
    return screen, params


def reset_password_link(token: str) -> str:
    return build_link("ResetPassword", token=token)
