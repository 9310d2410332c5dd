"""
Booking and rebooking pricing.

Turns requested accommodation lines into priced line items and entrance-fee
lines. Overnight stays multiply the base rate and the additional pax rate by
the number of nights; entrance fees are charged once per guest.
"""

from datetime import date

from models.accommodation import get_accommodation_by_id, get_rate_by_id, find_rate
from utils.money import ZERO, money_sum, to_decimal
from utils.validators import FieldErrors, parse_positive_int


def calculate_nights(booking_type: str, check_in: date, check_out: date | None) -> int:
    """Nights charged: at least one, and always one for a day tour."""
    if booking_type != 'overnight' or not check_out:
        return 1
    return max(1, (check_out - check_in).days)


def price_line(accommodation: dict, rate: dict, guests: int, booking_type: str, nights: int) -> dict:
    """
    Price one accommodation line.

    Args:
        accommodation: Accommodation dict (min_capacity used for extra pax)
        rate: Rate dict with Decimal money fields
        guests: Guests assigned to the accommodation
        booking_type: 'day_tour' or 'overnight'
        nights: Nights charged for overnight stays

    Returns:
        dict: accommodation_id, accommodation_rate_id, accommodation_name, guests,
            rate, additional_pax_charge, subtotal, free_entrance_used
    """
    multiplier = nights if booking_type == 'overnight' else 1
    min_capacity = accommodation.get('min_capacity') or 0

    base = rate['rate'] * multiplier
    additional_pax_charge = ZERO
    if min_capacity and guests > min_capacity:
        additional_pax_charge = (guests - min_capacity) * rate['additional_pax_rate'] * multiplier

    free_entrance_used = min(guests, min_capacity) if rate['includes_free_entrance'] else 0

    return {
        'accommodation_id': accommodation['id'],
        'accommodation_rate_id': rate['id'],
        'accommodation_name': accommodation['name'],
        'guests': guests,
        'rate': rate['rate'],
        'additional_pax_charge': to_decimal(additional_pax_charge),
        'subtotal': to_decimal(base + additional_pax_charge),
        'free_entrance_used': free_entrance_used,
    }


def price_entrance_fees(total_adults: int, total_children: int, free_entrances: int, rate: dict) -> list:
    """
    Entrance-fee lines, priced from a single rate.

    Free entrances included with accommodations are applied to adults only.

    Returns:
        list of {'type', 'quantity', 'rate', 'subtotal'}; types with nothing to
        charge are omitted
    """
    fees = []
    adults_needing_entrance = max(0, total_adults - free_entrances)

    if adults_needing_entrance > 0 and rate['adult_entrance_fee'] > ZERO:
        fees.append({
            'type': 'adult',
            'quantity': adults_needing_entrance,
            'rate': rate['adult_entrance_fee'],
            'subtotal': to_decimal(adults_needing_entrance * rate['adult_entrance_fee']),
        })

    if total_children > 0 and rate['child_entrance_fee'] > ZERO:
        fees.append({
            'type': 'child',
            'quantity': total_children,
            'rate': rate['child_entrance_fee'],
            'subtotal': to_decimal(total_children * rate['child_entrance_fee']),
        })

    return fees


def _resolve_line(index: int, item, booking_type: str, errors: FieldErrors):
    """Validate one requested line; returns (accommodation, rate, guests) or None."""
    field = f'accommodations.{index}'

    if not isinstance(item, dict):
        errors.add(field, 'Invalid accommodation line')
        return None

    acc_id = parse_positive_int(item.get('accommodation_id'), minimum=1)
    accommodation = get_accommodation_by_id(acc_id) if acc_id else None
    if not accommodation:
        errors.add(f'{field}.accommodation_id', 'Accommodation not found')
        return None
    if accommodation['status'] != 'active':
        errors.add(f'{field}.accommodation_id',
                   f"Accommodation '{accommodation['name']}' is not available for booking")
        return None

    rate_id = item.get('accommodation_rate_id')
    if rate_id:
        rate_id = parse_positive_int(rate_id, minimum=1)
        rate = get_rate_by_id(rate_id) if rate_id else None
        if (not rate or rate['accommodation_id'] != accommodation['id']
                or rate['booking_type'] != booking_type or rate['status'] != 'active'):
            errors.add(f'{field}.accommodation_rate_id',
                       f"Rate is not valid for '{accommodation['name']}' ({booking_type})")
            return None
    else:
        rate = find_rate(accommodation['id'], booking_type)
        if not rate:
            errors.add(f'{field}.accommodation_id',
                       f"'{accommodation['name']}' has no {booking_type.replace('_', ' ')} rate")
            return None

    guests = parse_positive_int(item.get('guests'), minimum=1)
    if guests is None:
        errors.add(f'{field}.guests', 'Guests must be at least 1')
        return None
    if guests > accommodation['max_capacity']:
        errors.add(f'{field}.guests',
                   f"'{accommodation['name']}' holds at most {accommodation['max_capacity']} guests")
        return None

    return accommodation, rate, guests


def calculate_booking_totals(lines: list, booking_type: str, check_in: date, check_out: date | None,
                             total_adults: int, total_children: int,
                             errors: FieldErrors = None) -> dict:
    """
    Validate and price a full set of accommodation lines.

    Problems are added to `errors` (a new collector when omitted) and raised
    together as BookingValidationError.

    Returns:
        dict: accommodations (priced lines), entrance_fees, accommodation_total,
            entrance_fee_total, total_amount, nights

    Raises:
        BookingValidationError: If any line is invalid, an accommodation repeats,
            or the line guests do not add up to adults + children
    """
    errors = errors if errors is not None else FieldErrors()

    if not lines or not isinstance(lines, list):
        errors.add('accommodations', 'Select at least one accommodation')
        errors.raise_if_any()

    nights = calculate_nights(booking_type, check_in, check_out)
    priced = []
    rates = []
    seen_ids = set()

    for index, item in enumerate(lines):
        resolved = _resolve_line(index, item, booking_type, errors)
        if not resolved:
            continue
        accommodation, rate, guests = resolved
        if accommodation['id'] in seen_ids:
            errors.add(f'accommodations.{index}.accommodation_id',
                       f"'{accommodation['name']}' was selected more than once")
            continue
        seen_ids.add(accommodation['id'])
        priced.append(price_line(accommodation, rate, guests, booking_type, nights))
        rates.append(rate)

    if priced and len(priced) == len(lines):
        line_guests = sum(line['guests'] for line in priced)
        if line_guests != total_adults + total_children:
            errors.add('accommodations',
                       f'Guests assigned to accommodations ({line_guests}) must equal '
                       f'total adults and children ({total_adults + total_children})')

    errors.raise_if_any()

    free_entrances = sum(line['free_entrance_used'] for line in priced)
    entrance_fees = price_entrance_fees(total_adults, total_children, free_entrances, rates[0])

    accommodation_total = money_sum(line['subtotal'] for line in priced)
    entrance_fee_total = money_sum(fee['subtotal'] for fee in entrance_fees)

    return {
        'accommodations': priced,
        'entrance_fees': entrance_fees,
        'accommodation_total': accommodation_total,
        'entrance_fee_total': entrance_fee_total,
        'total_amount': accommodation_total + entrance_fee_total,
        'nights': nights,
    }

