from __future__ import annotations

LOCAL_ORIGINS = ("http://localhost:3000", "http://localhost:3001")


def build_allowed_origins(*, frontend_base_url: str, frontend_urls: str | None) -> list[str]:
    allowed: set[str] = set(LOCAL_ORIGINS)
    if frontend_base_url:
        allowed.add(frontend_base_url.rstrip("/"))
    if frontend_urls:
        for origin in [s.strip() for s in str(frontend_urls).split(",") if s.strip()]:
            allowed.add(origin.rstrip("/"))
    return sorted(allowed)
