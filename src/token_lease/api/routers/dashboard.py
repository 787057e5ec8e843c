"""
token_lease.api.routers.dashboard

Operator-facing HTML view of the tracked tokens.

Responsibilities:
- Render the token table (id, client, status, time to expiry, created/expires).
- Show GitHub API rate-limit headroom as a colour-coded badge.
- Never render token secrets; only a masked preview.
"""

from __future__ import annotations

from datetime import UTC, datetime
from html import escape
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from token_lease.api.deps import lifecycle_dep, settings_dep
from token_lease.api.schemas import MODE, iso_z
from token_lease.provider_clients.github_app import RateLimitInfo
from token_lease.services.lifecycle import CredentialView, TokenLifecycleService
from token_lease.settings import Settings

router = APIRouter(tags=["dashboard"])

MASKED_PREVIEW = "ghs_****...****"
REFRESH_SECONDS = 30


def rate_limit_badge_class(remaining: int) -> str:
    if remaining > 1000:
        return "bg-success"
    if remaining > 100:
        return "bg-warning"
    return "bg-danger"


def _rate_limit_html(info: RateLimitInfo | None) -> str:
    if info is None:
        return '<span class="badge bg-secondary">rate limit unavailable</span>'
    core: dict[str, Any] = info.core or {}
    remaining = int(core.get("remaining", 0))
    limit = int(core.get("limit", 0))
    reset = core.get("reset")
    reset_html = ""
    if reset is not None:
        reset_at = datetime.fromtimestamp(int(reset), tz=UTC)
        reset_html = f'<small class="ms-2">Reset: {escape(iso_z(reset_at))}</small>'
    return (
        '<small>GitHub API Rate Limit</small><br>'
        f'<span class="badge {rate_limit_badge_class(remaining)}">{remaining}/{limit}</span>'
        f"{reset_html}"
    )


def _token_row(view: CredentialView) -> str:
    if view.is_stale:
        status = '<span class="badge bg-danger">Expired</span>'
        remaining = '<span class="text-danger">Expired</span>'
    else:
        status = '<span class="badge bg-success">Active</span>'
        seconds = round(view.time_remaining.total_seconds())
        remaining = f'<span class="text-success">{seconds}s</span>'
    return (
        "<tr>"
        f"<td><code>{escape(view.id)}</code></td>"
        f'<td><span class="badge bg-secondary">{escape(view.owner)}</span></td>'
        f'<td><span class="token-preview">{MASKED_PREVIEW}</span></td>'
        f"<td>{status}</td>"
        f"<td>{remaining}</td>"
        f"<td><small>{escape(iso_z(view.issued_at))}</small></td>"
        f"<td><small>{escape(iso_z(view.expires_at))}</small></td>"
        "</tr>"
    )


def render_dashboard(
    *,
    views: list[CredentialView],
    rate_limit: RateLimitInfo | None,
    lifespan_ms: int,
    now: datetime,
) -> str:
    if views:
        rows = "".join(_token_row(v) for v in views)
        tokens_html = (
            '<table class="table table-hover table-striped">'
            "<thead><tr>"
            "<th>Token ID</th><th>Client ID</th><th>Token Preview</th><th>Status</th>"
            "<th>Time Until Expiry</th><th>Created</th><th>Expires</th>"
            "</tr></thead>"
            f"<tbody>{rows}</tbody>"
            "</table>"
        )
    else:
        tokens_html = '<p class="text-muted">No tokens currently tracked.</p>'

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta http-equiv="refresh" content="{REFRESH_SECONDS}">
<title>Token Lease Dashboard</title>
<link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.2/dist/css/bootstrap.min.css" rel="stylesheet">
<style>.token-preview {{ font-family: monospace; }}</style>
</head>
<body class="bg-light">
<div class="container-fluid py-4">
<div class="card shadow">
<div class="card-header d-flex justify-content-between align-items-center">
<h4 class="mb-0">Token Lease Dashboard</h4>
<div class="text-end">{_rate_limit_html(rate_limit)}</div>
</div>
<div class="card-body">
<p>Tracked tokens: <strong>{len(views)}</strong></p>
{tokens_html}
</div>
<div class="card-footer text-muted text-center"><small>
Last updated: {escape(iso_z(now))} | Mode: {MODE} |
Token Lifespan: {lifespan_ms / 60_000:.1f} minutes
</small></div>
</div>
</div>
</body>
</html>
"""


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    settings: Settings = Depends(settings_dep),
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> HTMLResponse:
    views = lifecycle.list()
    # Costs one throwaway exchange + revocation upstream; never tracked.
    info = await lifecycle.rate_limit()
    return HTMLResponse(
        render_dashboard(
            views=views,
            rate_limit=info,
            lifespan_ms=settings.token_lifespan,
            now=lifecycle.now(),
        )
    )
