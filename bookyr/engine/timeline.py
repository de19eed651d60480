"""
Timeline Engine - Calendar view over booking opportunities.

Pure functions only: no DB, no network. The pipeline is

    filter by perspective -> filter by status/date/expiry -> TimelineEntry
    -> group by month -> 12 stable month tabs -> default active month

Dates are read as calendar dates. A date-only string like "2025-08-01" is split
on '-' and never pushed through UTC, so it cannot slide into the previous month.
"""

import calendar
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union
from zoneinfo import ZoneInfo

from bookyr.config import config
from bookyr.models import (
    BookingOpportunity, TimelineEntry, MonthGroup,
    CONFIRMED, PENDING, OPEN, DECLINED, CANCELLED, EXPIRED, PERSPECTIVES,
)

ENTRY_TYPE = 'booking-opportunity'

# Order within a single date: settled first, dead last
STATUS_PRIORITY = {
    CONFIRMED: 0,
    PENDING: 1,
    OPEN: 2,
    DECLINED: 3,
    CANCELLED: 4,
    EXPIRED: 5,
}

DateLike = Union[str, date, datetime]


# =============================================================================
# DATE HELPERS
# =============================================================================

def local_today() -> date:
    """Today's date in the configured timezone."""
    return datetime.now(ZoneInfo(config.TIMEZONE)).date()


def parse_local_date(value: DateLike) -> date:
    """
    Calendar date of a proposed date.

    - date-only strings are split on '-'
    - ISO datetimes with an offset (or 'Z') are converted to the configured timezone
    - naive datetimes keep their own date

    Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(ZoneInfo(config.TIMEZONE)).date()
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not a date: {value!r}")

    text = value.strip()
    if 'T' in text or ' ' in text:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        return parse_local_date(parsed)

    parts = text.split('-')
    if len(parts) != 3:
        raise ValueError(f"Not a YYYY-MM-DD date: {value!r}")
    year, month, day = (int(p) for p in parts)
    return date(year, month, day)


def extract_date(value: Union[DateLike, BookingOpportunity]) -> str:
    """'2025-08-15' from '2025-08-15', '2025-08-15T10:00:00Z' or an opportunity."""
    if isinstance(value, BookingOpportunity):
        value = value.proposed_date
    return parse_local_date(value).isoformat()


def get_month_key_from_date(value: DateLike) -> str:
    d = parse_local_date(value)
    return f"{d.year}-{d.month:02d}"


def _month_start(d: date, offset: int) -> date:
    index = d.month - 1 + offset
    return date(d.year + index // 12, index % 12 + 1, 1)


def _long_month_label(d: date) -> str:
    return f"{calendar.month_name[d.month]} {d.year}"


def _short_month_label(d: date, current_year: int) -> str:
    label = calendar.month_abbr[d.month]
    if d.year != current_year:
        label += f" '{str(d.year)[-2:]}"
    return label


# =============================================================================
# FILTER + MAP
# =============================================================================

def filter_by_perspective(opportunities: Iterable[BookingOpportunity],
                          perspective: str, context_id: str) -> List[BookingOpportunity]:
    if perspective not in PERSPECTIVES:
        raise ValueError(f"perspective must be one of {PERSPECTIVES}")
    if perspective == 'ARTIST':
        return [o for o in opportunities if o.artist_id == context_id]
    return [o for o in opportunities if o.venue_id == context_id]


def filter_opportunities(
    opportunities: Iterable[BookingOpportunity],
    statuses: Optional[Iterable[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_expired: bool = False,
) -> List[BookingOpportunity]:
    """Status allow-list (empty means all), inclusive date range, EXPIRED hidden unless asked."""
    allowed = set(statuses) if statuses else None
    kept = []
    for opportunity in opportunities:
        if allowed is not None and opportunity.status not in allowed:
            continue
        if start_date or end_date:
            d = parse_local_date(opportunity.proposed_date)
            if start_date and d < start_date:
                continue
            if end_date and d > end_date:
                continue
        if not include_expired and opportunity.status == EXPIRED:
            continue
        kept.append(opportunity)
    return kept


def create_timeline_entries(
    opportunities: Iterable[BookingOpportunity],
    perspective: str,
    context_id: str,
    statuses: Optional[Iterable[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_expired: bool = False,
) -> List[TimelineEntry]:
    """One TimelineEntry per visible opportunity, sorted by date ascending."""
    visible = filter_by_perspective(opportunities, perspective, context_id)
    visible = filter_opportunities(visible, statuses, start_date, end_date, include_expired)
    entries = [TimelineEntry(type=ENTRY_TYPE, date=o.proposed_date, data=o) for o in visible]
    # Stable sort keeps input order for same-day entries
    entries.sort(key=lambda e: parse_local_date(e.date))
    return entries


# =============================================================================
# MONTH GROUPING
# =============================================================================

def group_entries_by_month(entries: Iterable[TimelineEntry]) -> List[MonthGroup]:
    """
    Bucket entries by YYYY-MM. count is the number of distinct dates in the month,
    not the number of entries. Groups come back in chronological order.
    """
    groups: Dict[str, MonthGroup] = {}
    seen_dates: Dict[str, set] = {}

    for entry in entries:
        d = parse_local_date(entry.date)
        key = f"{d.year}-{d.month:02d}"
        if key not in groups:
            groups[key] = MonthGroup(month_key=key, month_label=_long_month_label(d))
            seen_dates[key] = set()

        groups[key].entries.append(entry)
        if d not in seen_dates[key]:
            seen_dates[key].add(d)
            groups[key].count += 1

    return [groups[key] for key in sorted(groups)]


def generate_stable_month_tabs(month_groups: Iterable[MonthGroup],
                               today: Optional[date] = None,
                               months: Optional[int] = None) -> List[MonthGroup]:
    """
    Fixed run of month tabs starting at the current month, whether or not they have
    entries. Labels are 'Aug', or "Jan '27" when the year is not the current year.
    Groups outside the window are not shown.
    """
    today = today or local_today()
    if months is None:
        months = config.TIMELINE_MONTHS
    by_key = {g.month_key: g for g in month_groups}

    tabs = []
    for offset in range(months):
        start = _month_start(today, offset)
        key = f"{start.year}-{start.month:02d}"
        existing = by_key.get(key)
        tabs.append(MonthGroup(
            month_key=key,
            month_label=_short_month_label(start, today.year),
            entries=list(existing.entries) if existing else [],
            count=existing.count if existing else 0,
        ))
    return tabs


def get_default_active_month(month_tabs: Iterable[MonthGroup], today: Optional[date] = None) -> str:
    """Earliest month with a CONFIRMED entry, else earliest non-empty month, else this month."""
    month_tabs = list(month_tabs)

    for tab in month_tabs:
        if any(entry.data.status == CONFIRMED for entry in tab.entries):
            return tab.month_key

    for tab in month_tabs:
        if tab.count > 0:
            return tab.month_key

    today = today or local_today()
    return f"{today.year}-{today.month:02d}"


# =============================================================================
# STATS + DATE GROUPING
# =============================================================================

def get_timeline_stats(opportunities: Iterable[BookingOpportunity]) -> Dict[str, Any]:
    """Header numbers for a timeline: status counts, money, date range."""
    stats: Dict[str, Any] = {
        'total': 0,
        'open': 0,
        'pending': 0,
        'confirmed': 0,
        'declined': 0,
        'cancelled': 0,
        'expired': 0,
        'total_guarantees': 0.0,
        'average_guarantee': 0.0,
        'confirmed_value': 0.0,
        'earliest_date': None,
        'latest_date': None,
    }
    guaranteed = 0

    for opportunity in opportunities:
        stats['total'] += 1
        status_key = opportunity.status.lower()
        if status_key in stats:
            stats[status_key] += 1

        guarantee = opportunity.financial_offer.guarantee if opportunity.financial_offer else None
        if guarantee:
            guaranteed += 1
            stats['total_guarantees'] += guarantee
            if opportunity.status == CONFIRMED:
                stats['confirmed_value'] += guarantee

        d = parse_local_date(opportunity.proposed_date)
        if stats['earliest_date'] is None or d < stats['earliest_date']:
            stats['earliest_date'] = d
        if stats['latest_date'] is None or d > stats['latest_date']:
            stats['latest_date'] = d

    if guaranteed:
        stats['average_guarantee'] = stats['total_guarantees'] / guaranteed

    return stats


def group_opportunities_by_date(opportunities: Iterable[BookingOpportunity]) -> Dict[str, List[BookingOpportunity]]:
    """YYYY-MM-DD -> opportunities, dates ascending, each day ordered by status priority."""
    grouped: Dict[str, List[BookingOpportunity]] = {}
    for opportunity in opportunities:
        grouped.setdefault(extract_date(opportunity), []).append(opportunity)

    return {
        day: sorted(grouped[day], key=lambda o: STATUS_PRIORITY.get(o.status, len(STATUS_PRIORITY)))
        for day in sorted(grouped)
    }


def build_timeline(
    opportunities: Iterable[BookingOpportunity],
    perspective: str,
    context_id: str,
    today: Optional[date] = None,
    statuses: Optional[Iterable[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_expired: bool = False,
) -> Dict[str, Any]:
    """
    Run the whole pipeline and return what a timeline view needs:
    {'entries', 'months', 'tabs', 'active_month', 'stats'}.
    """
    today = today or local_today()
    entries = create_timeline_entries(opportunities, perspective, context_id,
                                      statuses, start_date, end_date, include_expired)
    months = group_entries_by_month(entries)
    tabs = generate_stable_month_tabs(months, today)
    return {
        'entries': entries,
        'months': months,
        'tabs': tabs,
        'active_month': get_default_active_month(tabs, today),
        'stats': get_timeline_stats(e.data for e in entries),
    }
