#!/usr/bin/env python3
"""
Book Yr Life Terminal CLI
Booking opportunities, holds, timelines, favorites and media embeds from the terminal.
"""

import logging
import time
from datetime import timedelta
from typing import Optional

import click

from bookyr.engine import adapters, booking, holds, timeline, favorites, media, permissions
from bookyr.engine.api_client import ApiError, BookingApiClient
from bookyr.engine.holds import (
    HoldCountdown, HOLD_DURATION_PRESETS, URGENCY_COLORS,
    get_hold_urgency, time_remaining, format_time_remaining, should_clear_declined,
)
from bookyr.models import (
    BookingOpportunity, FinancialOffer, HoldRequest, MediaEmbed,
    OPPORTUNITY_STATUSES, HOLD_STATUSES, ENTITY_TYPES, HOLD_STATE_FROZEN,
)
from bookyr.bus.events import bus, EVENT_HOLD_APPROVED, EVENT_HOLD_CANCELLED, EVENT_HOLD_EXPIRED
from bookyr.db.connection import init_schema
from bookyr.logging_config import configure_logging, log_call

AI_MODEL_CHOICES = ['claude', 'deepseek-chat', 'deepseek-reasoner']

# '24', '48', '72', '168' and the '1w' shorthand
_PRESET_HOURS = {'1w': 168, **{str(hours): hours for _, hours in HOLD_DURATION_PRESETS}}

user_option = click.option('--user', envvar='BOOKYR_USER', required=True,
                           help='Acting user id (or set BOOKYR_USER)')
optional_user_option = click.option('--user', envvar='BOOKYR_USER',
                                    help='Acting user id (or set BOOKYR_USER)')


def _parse_duration(raw: str) -> int:
    """'24', '48h', '1w' -> hours."""
    value = raw.strip().lower()
    if value in _PRESET_HOURS:
        return _PRESET_HOURS[value]
    if value.endswith('h'):
        value = value[:-1]
    try:
        return int(value)
    except ValueError:
        raise click.BadParameter(f"{raw!r} is not a number of hours (presets: 24, 48, 72, 1w)")


def _format_clock(remaining: Optional[timedelta]) -> str:
    if remaining is None:
        return "00:00:00"
    seconds = int(remaining.total_seconds())
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _money(amount: Optional[float]) -> str:
    return f"${amount:,.0f}" if amount else "-"


def _echo_opportunity_row(o: BookingOpportunity) -> None:
    frozen = " [frozen]" if o.hold_state == HOLD_STATE_FROZEN else ""
    held = " [held]" if o.active_holds else ""
    click.echo(
        f"{o.proposed_date[:10]:<12} {o.status:<10} {(o.title or '')[:28]:<30} "
        f"{(o.venue_name or o.venue_id)[:18]:<20} {_money(o.financial_offer.guarantee):>8}"
        f"{held}{frozen}   {o.id}"
    )


def _notice_frozen(event_data):
    frozen_ids = event_data.get('frozen_ids') or []
    if frozen_ids:
        click.echo(f"  Froze {len(frozen_ids)} competing opportunities: {', '.join(frozen_ids)}")


def _notice_released(event_data):
    unfrozen_ids = event_data.get('unfrozen_ids') or []
    if unfrozen_ids:
        click.echo(f"  Released {len(unfrozen_ids)} frozen opportunities: {', '.join(unfrozen_ids)}")


@click.group()
def cli():
    """Book Yr Life - Booking negotiation for DIY venues and touring artists"""
    configure_logging()
    bus.on(EVENT_HOLD_APPROVED, _notice_frozen)
    bus.on(EVENT_HOLD_CANCELLED, _notice_released)
    bus.on(EVENT_HOLD_EXPIRED, _notice_released)


# =============================================================================
# OPPORTUNITY COMMANDS
# =============================================================================

@cli.group()
def opportunities():
    """Booking opportunities (proposed shows between one artist and one venue)"""
    pass


@opportunities.command('list')
@click.option('--artist', help='Artist id (artist perspective)')
@click.option('--venue', help='Venue id (venue perspective)')
@click.option('--status', 'statuses', multiple=True, type=click.Choice(OPPORTUNITY_STATUSES),
              help='Only these statuses (repeatable)')
@click.option('--from', 'start', type=click.DateTime(formats=['%Y-%m-%d']), help='Earliest date')
@click.option('--to', 'end', type=click.DateTime(formats=['%Y-%m-%d']), help='Latest date')
@click.option('--include-expired', is_flag=True, help='Include EXPIRED opportunities')
@log_call
def opportunities_list(artist, venue, statuses, start, end, include_expired):
    """List booking opportunities for an artist or a venue"""
    if bool(artist) == bool(venue):
        click.echo("Error: give exactly one of --artist or --venue.", err=True)
        return

    perspective, context_id = ('ARTIST', artist) if artist else ('VENUE', venue)
    results = booking.list_opportunities(
        perspective, context_id,
        statuses=list(statuses) or None,
        start_date=start.date() if start else None,
        end_date=end.date() if end else None,
        include_expired=include_expired,
    )

    if not results:
        click.echo("No booking opportunities found.")
        return

    click.echo(f"\nFound {len(results)} booking opportunities:\n")
    click.echo(f"{'Date':<12} {'Status':<10} {'Title':<30} {'Venue':<20} {'Guarantee':>8}")
    click.echo("-" * 90)
    for o in results:
        _echo_opportunity_row(o)


@opportunities.command('show')
@click.argument('opportunity_id')
@optional_user_option
@log_call
def opportunities_show(opportunity_id, user):
    """Show full opportunity details"""
    logger = logging.getLogger("bookyr")
    o = booking.get_opportunity(opportunity_id)

    if not o:
        logger.warning(f"opportunities_show | opportunity_id={opportunity_id} not found")
        click.echo(f"Booking opportunity {opportunity_id} not found.", err=True)
        return

    fin, perf, venue = o.financial_offer, o.performance_details, o.venue_details

    click.echo(f"\n{'='*80}")
    click.echo(f"{o.title or '(untitled)'}  [{o.status}]")
    click.echo(f"{'='*80}")
    click.echo(f"Artist:      {o.artist_name or o.artist_id}")
    click.echo(f"Venue:       {o.venue_name or o.venue_id}")
    click.echo(f"Date:        {o.proposed_date}")
    click.echo(f"Initiated:   {o.initiated_by} ({o.initiated_by_id})")
    click.echo(f"Source:      {o.source_type} / {o.source_id}")
    click.echo(f"Guarantee:   {_money(fin.guarantee)}")
    if fin.door_deal:
        click.echo(f"Door deal:   {fin.door_deal.get('percentage')}% after {fin.door_deal.get('threshold')}")
    click.echo(f"Billing:     {perf.billing_position or '(not set)'}")
    click.echo(f"Set length:  {perf.set_length or '(not set)'}")
    click.echo(f"Capacity:    {venue.capacity or '(not set)'}")
    click.echo(f"Ages:        {venue.age_restriction or '(not set)'}")
    click.echo(f"Hold state:  {o.hold_state}")
    if user:
        side = permissions.perspective_for(permissions.load_identity(user), o)
        click.echo(f"You are:     {side or 'not a party to this booking'}")

    if o.declined_reason:
        click.echo(f"Declined:    {o.declined_reason}")
    if o.cancelled_reason:
        click.echo(f"Cancelled:   {o.cancelled_reason}")
    if o.message:
        click.echo(f"\nMessage:\n{o.message}")

    if o.active_holds:
        click.echo(f"\n{'='*80}")
        click.echo("HOLDS")
        click.echo(f"{'='*80}")
        for h in o.active_holds:
            click.echo(f"{h.id}  {h.status}  {h.duration}h  requested by {h.requested_by_id}: {h.reason}")
        if any(h.status == 'ACTIVE' for h in o.active_holds):
            state = holds.get_hold_state_for_document(o.id)
            click.echo(f"Frozen:      {state['frozen_count']} competing opportunities on hold")

    if o.status_history:
        click.echo(f"\n{'='*80}")
        click.echo("STATUS HISTORY")
        click.echo(f"{'='*80}")
        for entry in o.status_history:
            reason = f" - {entry['reason']}" if entry.get('reason') else ""
            click.echo(f"[{entry.get('timestamp')}] {entry.get('status')}{reason}")

    click.echo()


@opportunities.command('add')
@user_option
@log_call
def opportunities_add(user):
    """Propose a new booking opportunity (interactive)"""
    click.echo("\n=== NEW BOOKING OPPORTUNITY ===\n")

    initiated_by = click.prompt("Initiated by", type=click.Choice(['ARTIST', 'VENUE']), default='ARTIST')
    artist_id = click.prompt("Artist id")
    venue_id = click.prompt("Venue id")
    proposed = click.prompt("Date (YYYY-MM-DD)", type=click.DateTime(formats=['%Y-%m-%d']))
    title = click.prompt("Title", default="", show_default=False)
    guarantee = click.prompt("Guarantee", type=float, default=0.0)
    message = click.prompt("Message", default="", show_default=False) or None
    direct = click.confirm("Direct offer (waiting on one party)?", default=False)

    opportunity = BookingOpportunity(
        artist_id=artist_id,
        venue_id=venue_id,
        title=title,
        proposed_date=proposed.date().isoformat(),
        initiated_by=initiated_by,
        initiated_by_id=user,
        status=booking.initial_status(initiated_by, direct=direct),
        financial_offer=FinancialOffer(guarantee=guarantee or None),
        message=message,
    )

    try:
        opportunity_id = booking.create_opportunity(opportunity)
        click.echo(f"\n✓ Created booking opportunity {opportunity_id} ({opportunity.status})")
    except ValueError as e:
        logging.getLogger("bookyr").warning(f"opportunities_add failed: {e}")
        click.echo(f"Error: {e}", err=True)


def _transition(opportunity_id: str, target: str, user: str, reason: Optional[str]) -> None:
    logger = logging.getLogger("bookyr")
    opportunity = booking.get_opportunity(opportunity_id)
    if not opportunity:
        click.echo(f"Booking opportunity {opportunity_id} not found.", err=True)
        return

    identity = permissions.load_identity(user)
    if not permissions.is_party_to(identity, opportunity):
        logger.warning(f"{target} refused: {user} is not a party to {opportunity_id}")
        click.echo("Error: you can only change bookings for your own artist or venue.", err=True)
        return

    try:
        updated = booking.transition_opportunity(opportunity_id, target, reason=reason, actor_id=user)
        click.echo(f"✓ {opportunity_id}: {opportunity.status} -> {updated.status}")
    except ValueError as e:
        logger.warning(f"{target} failed for {opportunity_id}: {e}")
        click.echo(f"Error: {e}", err=True)
    except LookupError as e:
        click.echo(f"Error: {e}", err=True)


@opportunities.command('accept')
@click.argument('opportunity_id')
@user_option
@click.option('--reason', help='Optional note for the status history')
@log_call
def opportunities_accept(opportunity_id, user, reason):
    """Accept (confirm) an opportunity"""
    _transition(opportunity_id, 'CONFIRMED', user, reason)


@opportunities.command('decline')
@click.argument('opportunity_id')
@user_option
@click.option('--reason', prompt='Reason for declining', help='Why the opportunity is declined')
@log_call
def opportunities_decline(opportunity_id, user, reason):
    """Decline an opportunity"""
    _transition(opportunity_id, 'DECLINED', user, reason)


@opportunities.command('cancel')
@click.argument('opportunity_id')
@user_option
@click.option('--reason', prompt='Reason for cancelling', help='Why the show is cancelled')
@click.confirmation_option(prompt='Cancel this booking?')
@log_call
def opportunities_cancel(opportunity_id, user, reason):
    """Cancel an opportunity (asks for confirmation)"""
    _transition(opportunity_id, 'CANCELLED', user, reason)


@opportunities.command('delete')
@click.argument('opportunity_id')
@user_option
@click.confirmation_option(prompt='Delete this booking opportunity?')
@log_call
def opportunities_delete(opportunity_id, user):
    """Delete an opportunity (soft delete, asks for confirmation)"""
    opportunity = booking.get_opportunity(opportunity_id)
    if not opportunity:
        click.echo(f"Booking opportunity {opportunity_id} not found.", err=True)
        return

    if not permissions.is_party_to(permissions.load_identity(user), opportunity):
        logging.getLogger("bookyr").warning(f"delete refused: {user} is not a party to {opportunity_id}")
        click.echo("Error: you can only delete bookings for your own artist or venue.", err=True)
        return

    if booking.delete_opportunity(opportunity_id):
        click.echo(f"✓ Deleted booking opportunity {opportunity_id}")
    else:
        click.echo(f"Booking opportunity {opportunity_id} not found.", err=True)


# =============================================================================
# TIMELINE COMMANDS
# =============================================================================

def _load_remote_timeline(artist, venue):
    """Shows, show requests and venue offers from the REST API, merged into one timeline."""
    client = BookingApiClient()
    shows = client.list_shows(artist_id=artist, venue_id=venue)
    tour_requests = client.list_show_requests(artist_id=artist, venue_id=venue)
    venue_offers = client.list_artist_offers(artist) if artist else []
    return adapters.build_legacy_timeline(shows, tour_requests, venue_offers,
                                          artist_id=artist, venue_id=venue, today=timeline.local_today())


def _load_timeline(artist, venue, include_expired=False):
    perspective, context_id = ('ARTIST', artist) if artist else ('VENUE', venue)
    opportunities_ = booking.list_opportunities(perspective, context_id, include_expired=include_expired)
    return timeline.build_timeline(opportunities_, perspective, context_id,
                                   today=timeline.local_today(), include_expired=include_expired)


@cli.command('timeline')
@click.option('--artist', help='Artist id')
@click.option('--venue', help='Venue id')
@click.option('--month', help='Month to open (YYYY-MM); defaults to the first month with a confirmed show')
@click.option('--include-expired', is_flag=True, help='Include EXPIRED opportunities')
@click.option('--remote', is_flag=True, help='Read shows, show requests and offers from the REST API')
@log_call
def timeline_cmd(artist, venue, month, include_expired, remote):
    """Month-by-month booking timeline"""
    if bool(artist) == bool(venue):
        click.echo("Error: give exactly one of --artist or --venue.", err=True)
        return

    if remote:
        try:
            view = _load_remote_timeline(artist, venue)
        except ApiError as e:
            logging.getLogger("bookyr").error(f"remote timeline failed: {e}")
            click.echo(f"API Error: {e}", err=True)
            return
    else:
        view = _load_timeline(artist, venue, include_expired)
    active = month or view['active_month']

    tabs = []
    for tab in view['tabs']:
        label = f"{tab.month_label}({tab.count})" if tab.count else tab.month_label
        tabs.append(f"[{label}]" if tab.month_key == active else label)
    click.echo("\n" + "  ".join(tabs) + "\n")

    tab = next((t for t in view['tabs'] if t.month_key == active), None)
    if tab is None:
        click.echo(f"{active} is outside the next {len(view['tabs'])} months.", err=True)
        return
    if not tab.entries:
        click.echo(f"Nothing booked in {tab.month_label}.")
        return

    for day, day_opportunities in timeline.group_opportunities_by_date(e.data for e in tab.entries).items():
        click.echo(day)
        for o in day_opportunities:
            click.echo(f"  {o.status:<10} {(o.title or '')[:30]:<32} "
                       f"{(o.venue_name if artist else o.artist_name) or ''}  {_money(o.financial_offer.guarantee)}")


@cli.command('stats')
@click.option('--artist', help='Artist id')
@click.option('--venue', help='Venue id')
@log_call
def stats(artist, venue):
    """Timeline header numbers: status counts, guarantees, date range"""
    if bool(artist) == bool(venue):
        click.echo("Error: give exactly one of --artist or --venue.", err=True)
        return

    s = _load_timeline(artist, venue)['stats']
    click.echo(f"\n{'='*50}")
    click.echo("BOOKING STATS")
    click.echo(f"{'='*50}")
    click.echo(f"Total:          {s['total']}")
    for status in OPPORTUNITY_STATUSES:
        click.echo(f"  {status.title():<13}{s[status.lower()]}")
    click.echo(f"Guarantees:     {_money(s['total_guarantees'])}")
    click.echo(f"Average:        {_money(s['average_guarantee'])}")
    click.echo(f"Confirmed:      {_money(s['confirmed_value'])}")
    if s['earliest_date']:
        click.echo(f"Dates:          {s['earliest_date']} .. {s['latest_date']}")
    click.echo()


# =============================================================================
# HOLD COMMANDS
# =============================================================================

@cli.group('holds')
def holds_group():
    """Holds: time-boxed exclusivity on a show or show request"""
    pass


@holds_group.command('request')
@click.argument('document_id')
@user_option
@click.option('--show', 'is_show', is_flag=True, help='DOCUMENT_ID is a confirmed show, not a show request')
@click.option('--duration', default='24', show_default=True, help='Hours, or a preset: 24, 48, 72, 1w')
@click.option('--reason', prompt='Reason for the hold', help='Why you need the hold')
@click.option('--message', help='Optional note to the other party')
@log_call
def holds_request(document_id, user, is_show, duration, reason, message):
    """Request a hold on a show request (or a show with --show)"""
    logger = logging.getLogger("bookyr")
    hold = HoldRequest(
        show_id=document_id if is_show else None,
        show_request_id=None if is_show else document_id,
        requested_by_id=user,
        duration=_parse_duration(duration),
        reason=reason,
        custom_message=message,
    )
    try:
        created = holds.create_hold_request(hold, permissions.load_identity(user))
        click.echo(f"✓ Hold {created.id} requested for {created.duration}h (waiting for the other party)")
    except ValueError as e:
        logger.warning(f"holds_request failed on {document_id}: {e}")
        click.echo(f"Error: {e}", err=True)
    except LookupError as e:
        click.echo(f"Error: {e}", err=True)


def _hold_action(action, hold_id: str, user: str) -> None:
    logger = logging.getLogger("bookyr")
    try:
        hold = action(hold_id, permissions.load_identity(user))
    except (ValueError, LookupError) as e:
        logger.warning(f"hold action failed for {hold_id}: {e}")
        click.echo(f"Error: {e}", err=True)
        return

    line = f"✓ Hold {hold.id} is now {hold.status}"
    if hold.expires_at and hold.status == 'ACTIVE':
        line += f" until {hold.expires_at:%Y-%m-%d %H:%M} UTC"
    click.echo(line)


@holds_group.command('approve')
@click.argument('hold_id')
@user_option
@log_call
def holds_approve(hold_id, user):
    """Grant a pending hold (counterparty only)"""
    _hold_action(holds.approve_hold, hold_id, user)


@holds_group.command('decline')
@click.argument('hold_id')
@user_option
@log_call
def holds_decline(hold_id, user):
    """Decline a pending hold (counterparty only)"""
    _hold_action(holds.decline_hold, hold_id, user)


@holds_group.command('cancel')
@click.argument('hold_id')
@user_option
@log_call
def holds_cancel(hold_id, user):
    """Withdraw your own pending hold request"""
    _hold_action(holds.cancel_hold, hold_id, user)


@holds_group.command('end')
@click.argument('hold_id')
@user_option
@click.confirmation_option(prompt='End this hold early?')
@log_call
def holds_end(hold_id, user):
    """End an active hold early and release frozen opportunities"""
    _hold_action(holds.end_hold_early, hold_id, user)


@holds_group.command('list')
@user_option
@click.option('--status', 'statuses', multiple=True, type=click.Choice(HOLD_STATUSES),
              help='Only these statuses (repeatable)')
@log_call
def holds_list(user, statuses):
    """Holds you requested or answered"""
    results = holds.list_hold_requests(user_id=user, statuses=list(statuses) or None)
    if not statuses:
        results = [h for h in results if not should_clear_declined(h)]
    if not results:
        click.echo("No holds found.")
        return

    click.echo(f"\n{'Status':<10} {'Hours':>5}  {'Remaining':<10} {'Document':<38} Reason")
    click.echo("-" * 100)
    for h in results:
        remaining = time_remaining(h.expires_at) if h.status == 'ACTIVE' else None
        left = format_time_remaining(remaining) if h.status == 'ACTIVE' else ''
        click.echo(f"{h.status:<10} {h.duration:>5}  {left:<10} {h.document_id:<38} {h.reason[:40]}")


@holds_group.command('watch')
@click.argument('hold_id')
@log_call
def holds_watch(hold_id):
    """Live countdown for an active hold (Ctrl-C to stop)"""
    hold = holds.get_hold_request(hold_id)
    if not hold:
        click.echo(f"Hold {hold_id} not found.", err=True)
        return
    if hold.status != 'ACTIVE' or not hold.expires_at:
        click.echo(f"Hold {hold_id} is {hold.status}; nothing to count down.")
        return

    countdown = HoldCountdown(hold.expires_at, on_expired=lambda: click.echo("\nHold expired."))
    try:
        while True:
            remaining = countdown.tick()
            if countdown.expired:
                break
            color = URGENCY_COLORS[get_hold_urgency(remaining)]
            click.echo("\r" + click.style(_format_clock(remaining), fg=color), nl=False)
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo()


@holds_group.command('sweep')
@log_call
def holds_sweep():
    """Expire active holds whose time is up"""
    expired = holds.process_expired_holds()
    if not expired:
        click.echo("No expired holds.")
        return
    click.echo(f"✓ Expired {len(expired)} holds:")
    for hold_id in expired:
        click.echo(f"  {hold_id}")


# =============================================================================
# FAVORITES COMMANDS
# =============================================================================

@cli.group('favorites')
def favorites_group():
    """Saved venues and artists"""
    pass


@favorites_group.command('list')
@user_option
@click.option('--type', 'entity_type', type=click.Choice(ENTITY_TYPES), help='Only venues or only artists')
@log_call
def favorites_list(user, entity_type):
    """List your favorites"""
    results = favorites.list_favorites(user, entity_type)
    if not results:
        click.echo("No favorites yet.")
        return
    for f in results:
        click.echo(f"{f.entity_type:<7} {f.entity_id}")


@favorites_group.command('toggle')
@click.argument('entity_type', type=click.Choice(ENTITY_TYPES))
@click.argument('entity_id')
@user_option
@log_call
def favorites_toggle(entity_type, entity_id, user):
    """Favorite or unfavorite a venue/artist"""
    cache = favorites.FavoritesCache(favorites.DatabaseFavoritesClient(user))
    cache.load()
    if cache.toggle(entity_type, entity_id):
        click.echo(f"★ Favorited {entity_type.lower()} {entity_id}")
    else:
        click.echo(f"☆ Removed {entity_type.lower()} {entity_id} from favorites")


# =============================================================================
# MEDIA EMBED COMMANDS
# =============================================================================

@cli.group()
def embeds():
    """Profile media (YouTube, Spotify, SoundCloud, Bandcamp)"""
    pass


@embeds.command('check')
@click.argument('url')
def embeds_check(url):
    """Check a media URL and print its player URL"""
    try:
        platform = media.validate_embed_url(url)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        return
    click.echo(f"Platform: {platform}")
    click.echo(f"Title:    {media.default_title(url)}")
    click.echo(f"Player:   {media.build_embed_url(url)}")


@embeds.command('list')
@click.argument('entity_type', type=click.Choice(ENTITY_TYPES))
@click.argument('entity_id')
@log_call
def embeds_list(entity_type, entity_id):
    """List embeds on a profile (featured first)"""
    results = media.list_embeds(entity_type, entity_id)
    if not results:
        click.echo("No media embeds.")
        return
    for e in results:
        star = "★" if e.is_featured else " "
        click.echo(f"{star} {e.order:>2}. {e.title[:30]:<32} {e.url}   {e.id}")


@embeds.command('add')
@click.argument('entity_type', type=click.Choice(ENTITY_TYPES))
@click.argument('entity_id')
@click.argument('url')
@click.option('--title', default='', help='Defaults to Video/Music/Audio/Release by platform')
@click.option('--description', help='Optional description')
@click.option('--featured', is_flag=True, help='Make this the featured embed')
@user_option
@log_call
def embeds_add(entity_type, entity_id, url, title, description, featured, user):
    """Add a media embed to an artist or venue profile"""
    if not permissions.load_identity(user).acts_for(entity_type, entity_id):
        logging.getLogger("bookyr").warning(f"embeds_add refused: {user} does not manage {entity_type} {entity_id}")
        click.echo("Error: you can only add media to your own artist or venue profile.", err=True)
        return

    embed = MediaEmbed(entity_type=entity_type, entity_id=entity_id, url=url,
                       title=title, description=description, is_featured=featured)
    try:
        created = media.add_embed(embed)
        click.echo(f"✓ Added '{created.title}' ({media.detect_platform(created.url)}) as #{created.order}")
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)


@embeds.command('remove')
@click.argument('embed_id')
@user_option
@click.confirmation_option(prompt='Remove this embed?')
@log_call
def embeds_remove(embed_id, user):
    """Remove a media embed"""
    embed = media.get_embed(embed_id)
    if embed is None:
        click.echo(f"Embed {embed_id} not found.", err=True)
        return

    if not permissions.load_identity(user).acts_for(embed.entity_type, embed.entity_id):
        logging.getLogger("bookyr").warning(f"embeds_remove refused: {user} does not manage {embed.entity_type} {embed.entity_id}")
        click.echo("Error: you can only remove media from your own artist or venue profile.", err=True)
        return

    if media.delete_embed(embed_id):
        click.echo(f"✓ Removed embed {embed_id}")
    else:
        click.echo(f"Embed {embed_id} not found.", err=True)


# =============================================================================
# MESSAGES
# =============================================================================

SENDER_TYPES = ['artist', 'venue', 'user']


def _api_call(action, *args, **kwargs):
    """Run a REST call, printing API errors instead of raising. Returns None on failure."""
    try:
        return action(*args, **kwargs)
    except ApiError as e:
        logging.getLogger("bookyr").error(f"API call failed: {e}")
        click.echo(f"API Error: {e}", err=True)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
    return None


@cli.group()
def messages():
    """Conversations with artists and venues (REST API)"""
    pass


@messages.command('list')
@log_call
def messages_list():
    """List your conversations"""
    conversations = _api_call(BookingApiClient().list_conversations)
    if conversations is None:
        return
    if not conversations:
        click.echo("No conversations yet.")
        return

    for c in conversations:
        unread = f" ({c['unreadCount']} new)" if c.get('unreadCount') else ""
        last = (c.get('lastMessage') or {}).get('content', '')
        click.echo(f"{c.get('participantName', '')[:24]:<26} {c.get('participantType', ''):<7} "
                   f"{last[:40]:<42}{unread}   {c['id']}")


@messages.command('start')
@click.argument('recipient_id')
@click.option('--name', 'recipient_name', required=True, help='Recipient display name')
@click.option('--type', 'recipient_type', type=click.Choice(SENDER_TYPES), default='venue', show_default=True)
@log_call
def messages_start(recipient_id, recipient_name, recipient_type):
    """Open (or reuse) a conversation with an artist or venue"""
    conversation_id = _api_call(BookingApiClient().start_conversation, recipient_id, recipient_name, recipient_type)
    if conversation_id:
        click.echo(f"✓ Conversation {conversation_id}")


@messages.command('show')
@click.argument('conversation_id')
@log_call
def messages_show(conversation_id):
    """Print a conversation"""
    thread = _api_call(BookingApiClient().list_messages, conversation_id)
    if thread is None:
        return
    if not thread:
        click.echo("No messages.")
        return
    for m in thread:
        click.echo(f"[{m.get('timestamp', '')}] {m.get('senderName', m.get('senderId'))}: {m.get('content', '')}")


@messages.command('send')
@click.argument('conversation_id')
@click.argument('content')
@user_option
@click.option('--name', 'sender_name', required=True, help='Your display name')
@click.option('--type', 'sender_type', type=click.Choice(SENDER_TYPES), default='user', show_default=True)
@log_call
def messages_send(conversation_id, content, user, sender_name, sender_type):
    """Send a message in a conversation"""
    sent = _api_call(BookingApiClient().send_message, conversation_id, content, user, sender_name, sender_type)
    if sent is not None:
        click.echo(f"✓ Sent to {conversation_id}")


# =============================================================================
# AI DRAFTS
# =============================================================================

@cli.command('draft')
@click.argument('opportunity_id')
@click.option('--sender', type=click.Choice(['ARTIST', 'VENUE']), default='ARTIST', show_default=True,
              help='Who the message is from')
@click.option('--notes', help='Anything extra the message should mention')
@click.option('--model', type=click.Choice(AI_MODEL_CHOICES), default='claude',
              show_default=True, help='AI model to use')
@log_call
def draft(opportunity_id, sender, notes, model):
    """Draft a booking message about an opportunity via AI"""
    try:
        from bookyr.engine import inquiry_composer

        click.echo(f"\nDrafting {sender.lower()} message for {opportunity_id} [{model}]...\n")

        result = inquiry_composer.draft_booking_inquiry(
            opportunity_id=opportunity_id,
            sender=sender,
            model=model,
            notes=notes,
        )

        click.echo(f"{'='*80}")
        click.echo(f"SUBJECT: {result['subject']}")
        click.echo(f"{'='*80}\n")
        click.echo(result['body'])
        click.echo(f"\n{'='*80}")
        click.echo(f"✓ Draft saved to: {result['draft_path']}")
        click.echo()

    except ValueError as e:
        logging.getLogger("bookyr").warning(f"draft failed for {opportunity_id}: {e}")
        click.echo(f"Error: {e}", err=True)
    except RuntimeError as e:
        logging.getLogger("bookyr").error(f"draft API error for {opportunity_id}: {e}", exc_info=True)
        click.echo(f"API Error: {e}", err=True)
        click.echo("Make sure ANTHROPIC_API_KEY / DEEPSEEK_API_KEY is set in .env", err=True)


# =============================================================================
# SETUP
# =============================================================================

@cli.command('initdb')
@log_call
def initdb():
    """Create the database tables (safe to re-run)"""
    init_schema()
    click.echo("✓ Schema applied.")


# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    cli()
