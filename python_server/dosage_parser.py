#!/usr/bin/env python3
"""
Dosage text parser
Turns free-form schedule text ("Take 2 tablets twice daily") into a
times-per-day count and plain-language instructions
"""

import re

# Checked in order: higher frequencies first so "twice daily" never falls
# through to the generic "daily" rule
FREQUENCY_RULES = [
    (4, ('four times', '4 times', 'qid')),
    (3, ('three times', '3 times', 'tid')),
    (2, ('twice', 'two times', '2 times', 'bid')),
    (1, ('once', 'daily', '1 time', 'one time')),
]

EVERY_N_HOURS_PATTERN = re.compile(r'every\s+(\d+)\s+hour')
QUANTITY_PATTERN = re.compile(r'\b(\d+)\s+(tablet|pill|capsule|caplet)')

DOCTOR_DEFERRAL = "Take as your doctor tells you"

FREQUENCY_PHRASES = {
    1: "each day",
    2: "twice a day",
    3: "3 times a day",
    4: "4 times a day",
}


def parse_times_per_day(schedule_text: str) -> int:
    """
    Parse how many times per day a medication should be taken

    Args:
        schedule_text: Free-form dosing instructions

    Returns:
        int: Doses per day, 1 when nothing recognizable is found
    """
    lowered = (schedule_text or '').lower()

    for count, phrases in FREQUENCY_RULES:
        if any(phrase in lowered for phrase in phrases):
            return count

    match = EVERY_N_HOURS_PATTERN.search(lowered)
    if match:
        hours = int(match.group(1))
        if hours > 0:
            # every 36 hours would floor to 0
            return max(24 // hours, 1)

    return 1


def _form_noun(form: str, quantity: int) -> str:
    form_lower = (form or '').lower()
    if 'capsule' in form_lower:
        noun = 'capsule'
    elif 'tablet' in form_lower:
        noun = 'tablet'
    else:
        noun = 'pill'
    return noun if quantity == 1 else noun + 's'


def simplify_instructions(schedule_text: str, form: str) -> str:
    """
    Convert dosing text into simple, elderly-friendly instructions

    Args:
        schedule_text: Free-form dosing instructions
        form: Medication form name (e.g. "Tablets", "Capsule")

    Returns:
        str: Instruction such as "Take 2 tablets twice a day"
    """
    lowered = (schedule_text or '').lower()

    if 'as directed' in lowered or 'as needed' in lowered:
        return DOCTOR_DEFERRAL

    quantity = 1
    match = QUANTITY_PATTERN.search(lowered)
    if match:
        quantity = int(match.group(1))

    times_per_day = parse_times_per_day(schedule_text)
    frequency = FREQUENCY_PHRASES.get(times_per_day, f"{times_per_day} times a day")

    return f"Take {quantity} {_form_noun(form, quantity)} {frequency}"
