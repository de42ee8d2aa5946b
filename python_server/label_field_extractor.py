#!/usr/bin/env python3
"""
Label field extractor
Splits a medication name line ("LISINOPRIL (Zestril) 10MG TABLET") or
product title into dosage strength, dosage form and a residual brand name
"""

import re
from dataclasses import dataclass
from typing import Optional

DOSAGE_PLACEHOLDER = "See label"
FORM_PLACEHOLDER = "Not specified"
SUPPLEMENT_PLACEHOLDER = "Dietary Supplement"

# Alphabetic units must not run into a following word ("10 gummies")
DOSAGE_PATTERN = re.compile(
    r'(\d+(?:\.\d+)?)\s*(mg|mcg|g|ml|iu|units?|%)(?![a-z])',
    re.IGNORECASE
)

# Scan order matters: first substring hit wins
FORM_KEYWORDS = [
    'tablet', 'tablets', 'tab',
    'capsule', 'capsules', 'cap',
    'softgel', 'softgels',
    'liquid', 'solution', 'suspension',
    'cream', 'ointment', 'gel',
    'patch', 'patches',
    'inhaler', 'spray',
    'injection', 'injectable',
]

FORM_ALIASES = {
    'tablets': 'Tablet',
    'tab': 'Tablet',
    'capsules': 'Capsule',
    'cap': 'Capsule',
    'softgels': 'Softgel',
    'patches': 'Patch',
}

# Common OTC ingredients looked for in retail product titles
COMMON_PRODUCT_NAMES = [
    'vitamin c', 'vitamin d', 'vitamin b', 'multivitamin',
    'calcium', 'iron', 'zinc', 'magnesium',
    'fish oil', 'omega', 'glucosamine', 'chondroitin',
    'probiotic', 'melatonin', 'acetaminophen', 'ibuprofen',
    'aspirin', 'naproxen',
]


@dataclass(frozen=True)
class LabelFields:
    """Fields recovered from a single medication name line"""
    brand_name: str
    generic_name: str
    dosage: str
    form: str


def extract_dosage(text: str) -> Optional[str]:
    """Return the first strength found in text (e.g. "10MG"), verbatim"""
    match = DOSAGE_PATTERN.search(text or '')
    return match.group(0) if match else None


def _canonical_form(keyword: str) -> str:
    return FORM_ALIASES.get(keyword, keyword.capitalize())


def extract_form(lowered_text: str) -> Optional[str]:
    """
    Find the dosage form in already-lowercased text

    Args:
        lowered_text: Lowercased label text

    Returns:
        Optional[str]: Canonical form ("Tablet", "Capsule", "Cream", ...)
    """
    for keyword in FORM_KEYWORDS:
        if keyword in lowered_text:
            return _canonical_form(keyword)
    return None


def extract_parenthetical(text: str) -> Optional[str]:
    """Content between the first '(' and the first ')' after it"""
    start = text.find('(')
    if start == -1:
        return None
    end = text.find(')', start + 1)
    if end == -1:
        return None
    return text[start + 1:end].strip()


def derive_brand_name(line: str, dosage: Optional[str], form: Optional[str]) -> str:
    """
    Remove the dosage and form words from a name line to get the brand name

    Every word spelling the same form ("TABLETS", "Tab") is dropped.
    Falls back to the untouched line when nothing is left.
    """
    brand = line
    if dosage:
        brand = brand.replace(dosage, '')

    if form:
        form_words = {kw for kw in FORM_KEYWORDS if _canonical_form(kw) == form}
        kept = [
            word for word in brand.split()
            if word.strip('.,;:').lower() not in form_words
        ]
        brand = ' '.join(kept)

    brand = ' '.join(brand.split())
    return brand or line


def extract_generic_name(brand_name: str) -> str:
    """Generic name from a parenthetical, otherwise the brand name itself"""
    generic = extract_parenthetical(brand_name)
    return generic if generic else brand_name


def split_name_line(line: str) -> LabelFields:
    """
    Split a medication name line into brand, generic, dosage and form

    Placeholders are used for dosage and form when they cannot be found.
    """
    dosage = extract_dosage(line)
    form = extract_form(line.lower())
    brand_name = derive_brand_name(line, dosage, form)

    generic_name = extract_parenthetical(line) or extract_generic_name(brand_name)

    return LabelFields(
        brand_name=brand_name,
        generic_name=generic_name,
        dosage=dosage or DOSAGE_PLACEHOLDER,
        form=form or FORM_PLACEHOLDER,
    )


def guess_generic_from_product(title: str, description: str = '') -> str:
    """
    Best-effort generic name for a retail product

    Looks for a well-known ingredient in the title or description, then
    falls back to the second word of the title (the first is usually the
    brand).
    """
    lowered_title = (title or '').lower()
    lowered_desc = (description or '').lower()

    for name in COMMON_PRODUCT_NAMES:
        if name in lowered_title or name in lowered_desc:
            return name.title()

    words = (title or '').split()
    if len(words) >= 2:
        return words[1]

    return SUPPLEMENT_PLACEHOLDER
