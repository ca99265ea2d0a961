"""
Aggregates for the public landing page and the admin dashboard.

Money and tote totals only count funded sponsorships (approved or completed);
claimed totals only count claims that were verified or further along.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.changebag.constants import COUNTED_CLAIM_STATUSES, FUNDED_SPONSORSHIP_STATUSES
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.claims.models import Claim
from app.changebag.modules.sponsorships.models import Sponsorship
from app.changebag.utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


GROWTH_MONTHS = 6
URGENT_PENDING_HOURS = 48


def _funded(q):
    return q.filter(Sponsorship.status.in_(FUNDED_SPONSORSHIP_STATUSES))


def _sum_amount(s: "Session", since: datetime | None = None) -> float:
    q = _funded(s.query(func.coalesce(func.sum(Sponsorship.total_amount), 0)))
    if since is not None:
        q = q.filter(Sponsorship.created_at >= since)
    return float(q.scalar() or 0)


def _sum_totes(s: "Session") -> int:
    return int(_funded(s.query(func.coalesce(func.sum(Sponsorship.tote_quantity), 0))).scalar() or 0)


def _distinct_sponsors(s: "Session", since: datetime | None = None) -> int:
    q = s.query(func.count(func.distinct(Sponsorship.sponsor_id))).filter(Sponsorship.sponsor_id.isnot(None))
    if since is not None:
        q = q.filter(Sponsorship.created_at >= since)
    return int(q.scalar() or 0)


def _count(s: "Session", column, *criteria) -> int:
    return int(s.query(func.count(column)).filter(*criteria).scalar() or 0)


def _months_back(now: datetime, n: int) -> list[tuple[int, int]]:
    year, month = now.year, now.month
    out = []
    for _ in range(n):
        out.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(out))


def growth_data(s: "Session", *, now: datetime | None = None) -> list[dict]:
    """Funded sponsorships per month for the last six months (oldest first)."""
    now = now or utcnow()
    months = _months_back(now, GROWTH_MONTHS)
    first_year, first_month = months[0]
    start = datetime(first_year, first_month, 1)
    buckets: "OrderedDict[tuple[int, int], dict]" = OrderedDict(
        (ym, {"sponsors": set(), "impact": 0, "amount": 0.0}) for ym in months
    )
    rows = (
        _funded(s.query(Sponsorship.created_at, Sponsorship.sponsor_id, Sponsorship.tote_quantity, Sponsorship.total_amount))
        .filter(Sponsorship.created_at >= start)
        .all()
    )
    for created_at, sponsor_id, totes, amount in rows:
        bucket = buckets.get((created_at.year, created_at.month))
        if bucket is None:
            continue
        if sponsor_id is not None:
            bucket["sponsors"].add(sponsor_id)
        bucket["impact"] += int(totes or 0)
        bucket["amount"] += float(amount or 0)
    return [
        {
            "month": datetime(y, m, 1).strftime("%b"),
            "year": y,
            "sponsors": len(b["sponsors"]),
            "impact": b["impact"],
            "amount": b["amount"],
        }
        for (y, m), b in buckets.items()
    ]


def impact_data(s: "Session") -> list[dict]:
    """Claimed bags per cause category, biggest first. Categories with no claims report 0."""
    bags: dict[str, int] = {cat: 0 for (cat,) in s.query(Cause.category).distinct().all() if cat}
    rows = (
        s.query(Cause.category, func.count(Claim.id))
        .join(Claim, Claim.cause_id == Cause.id)
        .filter(Claim.status.in_(COUNTED_CLAIM_STATUSES))
        .group_by(Cause.category)
        .all()
    )
    for cat, n in rows:
        if cat:
            bags[cat] = int(n or 0)
    return [{"cause": cat, "bags": n} for cat, n in sorted(bags.items(), key=lambda kv: (-kv[1], kv[0]))]


def public_stats(s: "Session") -> dict:
    return {
        "totalSponsors": _distinct_sponsors(s),
        "totalBagsSponsored": _sum_totes(s),
        "activeCampaigns": _count(
            s, Sponsorship.id, Sponsorship.status == "approved", Sponsorship.is_online.is_(True)
        ),
        "totalRaised": _sum_amount(s),
        "totalClaimers": int(s.query(func.count(func.distinct(Claim.email))).scalar() or 0),
        "totalBagsClaimed": _count(s, Claim.id, Claim.status.in_(COUNTED_CLAIM_STATUSES)),
        "totalCauses": _count(s, Cause.id, Cause.status == "approved"),
        "growthData": growth_data(s),
        "impactData": impact_data(s),
    }


def dashboard_metrics(s: "Session", *, now: datetime | None = None) -> dict:
    now = now or utcnow()
    week_ago = now - timedelta(days=7)
    month_start = datetime(now.year, now.month, 1)

    total_raised = _sum_amount(s)
    funded_count = _count(s, Sponsorship.id, Sponsorship.status.in_(FUNDED_SPONSORSHIP_STATUSES))
    avg = round(total_raised / funded_count, 2) if funded_count else 0

    return {
        "totalCauses": _count(s, Cause.id),
        "totalSponsors": _distinct_sponsors(s),
        "totalRaised": total_raised,
        "pendingItems": _count(s, Sponsorship.id, Sponsorship.status == "pending"),
        "totalClaims": _count(s, Claim.id),
        "verifiedClaims": _count(s, Claim.id, Claim.status == "verified"),
        "pendingClaims": _count(s, Claim.id, Claim.status == "pending"),
        "rejectedClaims": _count(s, Claim.id, Claim.status == "cancelled"),
        "totalTotes": _sum_totes(s),
        "activeCampaigns": _count(
            s, Sponsorship.id, Sponsorship.status == "approved", Sponsorship.is_online.is_(True)
        ),
        "completedCampaigns": _count(s, Sponsorship.id, Sponsorship.status == "completed"),
        "monthlyRevenue": _sum_amount(s, since=month_start),
        "avgSponsorshipAmount": avg,
        "weeklyStats": {
            "causesChange": _count(s, Cause.id, Cause.created_at >= week_ago),
            "sponsorsChange": _distinct_sponsors(s, since=week_ago),
            "raisedChange": _sum_amount(s, since=week_ago),
            "claimsChange": _count(s, Claim.id, Claim.created_at >= week_ago),
            "urgentPendingItems": _count(
                s,
                Sponsorship.id,
                Sponsorship.status == "pending",
                Sponsorship.created_at < now - timedelta(hours=URGENT_PENDING_HOURS),
            ),
        },
    }
