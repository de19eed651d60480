"""
Inquiry Composer - AI-drafted booking messages.

Turns the terms of a booking opportunity into a short message from one side
to the other (artist to venue, or venue to artist). Drafts are saved as text
files under data/drafts/ and announced on the bus; nothing is sent.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from bookyr.logging_config import log_call
from bookyr.engine.ai_client import call_ai
from bookyr.engine import booking
from bookyr.models import BookingOpportunity, PERSPECTIVES
from bookyr.bus.events import bus, EVENT_DRAFT_READY

logger = logging.getLogger(__name__)

DRAFTS_DIR = Path(__file__).parent.parent.parent / "data" / "drafts"

SYSTEM_PROMPT = (
    "You write booking correspondence for the DIY music scene: friendly, direct, "
    "specific about dates and money, never pushy. No placeholders like [Your Name]."
)


def build_terms_context(opportunity: BookingOpportunity) -> str:
    """Plain-text summary of everything on the table."""
    fin = opportunity.financial_offer
    perf = opportunity.performance_details
    venue = opportunity.venue_details

    parts = [
        f"Artist: {opportunity.artist_name or opportunity.artist_id}",
        f"Venue: {opportunity.venue_name or opportunity.venue_id}",
        f"Date: {opportunity.proposed_date[:10]}",
        f"Status: {opportunity.status}",
    ]
    if opportunity.title:
        parts.append(f"Title: {opportunity.title}")
    if fin.guarantee:
        parts.append(f"Guarantee: ${fin.guarantee:,.0f}")
    if fin.door_deal:
        parts.append(f"Door deal: {fin.door_deal.get('percentage')}% after {fin.door_deal.get('threshold')}")
    if fin.ticket_price:
        parts.append(f"Tickets: door {fin.ticket_price.get('door')}, advance {fin.ticket_price.get('advance')}")
    if perf.billing_position:
        parts.append(f"Billing: {perf.billing_position}")
    if perf.set_length:
        parts.append(f"Set length: {perf.set_length} min")
    if venue.capacity:
        parts.append(f"Capacity: {venue.capacity}")
    if venue.age_restriction:
        parts.append(f"Ages: {venue.age_restriction}")
    if opportunity.additional_value.additional_terms:
        parts.append(f"Other terms: {opportunity.additional_value.additional_terms}")
    if opportunity.message:
        parts.append(f"Latest message: {opportunity.message[:300]}")

    return "\n".join(parts)


@log_call
def draft_booking_inquiry(
    opportunity_id: str,
    sender: str = 'ARTIST',
    model: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Draft a message about an opportunity from `sender` ('ARTIST' or 'VENUE') to the other side.

    Returns: dict with subject, body, draft_path, model, timestamp
    """
    if sender not in PERSPECTIVES:
        raise ValueError(f"sender must be one of {PERSPECTIVES}")

    opportunity = booking.get_opportunity(opportunity_id)
    if not opportunity:
        raise ValueError(f"Booking opportunity {opportunity_id} not found")

    recipient = 'venue' if sender == 'ARTIST' else 'artist'
    logger.info(f"Drafting {sender.lower()} -> {recipient} inquiry for opportunity {opportunity_id}")

    notes_block = f"EXTRA NOTES FROM THE SENDER:\n{notes}" if notes else ""

    prompt = f"""Write a booking message from the {sender.lower()} to the {recipient} about this show.

TERMS:
{build_terms_context(opportunity)}

{notes_block}

REQUIREMENTS:
- 80-180 words
- Confirm the date and the money plainly
- Ask for whatever is still missing (load-in time, backline, lodging)
- End with one clear next step

Put a subject line on the first line, then the message body."""

    draft_text = call_ai(prompt, model=model, system=SYSTEM_PROMPT, max_tokens=800)

    lines = draft_text.split('\n', 1)
    subject = lines[0].replace('Subject:', '').strip()
    body = lines[1].strip() if len(lines) > 1 else draft_text

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    DRAFTS_DIR.mkdir(exist_ok=True, parents=True)
    draft_path = DRAFTS_DIR / f"inquiry_{opportunity_id}_{timestamp}.txt"

    draft_path.write_text(f"""OPPORTUNITY: {opportunity_id}
FROM: {sender}
TO: {recipient.upper()}
MODEL: {model or 'default'}
GENERATED: {datetime.now().isoformat()}

SUBJECT: {subject}

{body}
""", encoding="utf-8")
    logger.info(f"Draft saved to {draft_path}")

    bus.emit(EVENT_DRAFT_READY, {
        'opportunity_id': opportunity_id,
        'draft_path': str(draft_path),
        'sender': sender,
    })

    return {
        'opportunity_id': opportunity_id,
        'subject': subject,
        'body': body,
        'sender': sender,
        'model': model,
        'draft_path': str(draft_path),
        'timestamp': timestamp,
    }
