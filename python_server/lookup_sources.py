#!/usr/bin/env python3
"""
Response shapes of the three medication data sources

Each source gets its own result type, decoded from the raw JSON and then
mapped into a MedicationRecord through the label field extractor.

Sources:
- upcitemdb: retail product database keyed by UPC
- openfda: FDA drug label database searched by openfda.upc
- rxnav: NLM RxNav NDC properties keyed by a formatted NDC
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from label_field_extractor import (
    DOSAGE_PLACEHOLDER,
    FORM_PLACEHOLDER,
    derive_brand_name,
    extract_dosage,
    extract_form,
    guess_generic_from_product,
)
from lookup_errors import DecodeError
from medication_record import MedicationRecord

UPCITEMDB = 'upcitemdb'
OPENFDA = 'openfda'
RXNAV = 'rxnav'

PRESCRIPTION_PLACEHOLDER = "Prescription Medication"

# (phrase in administration text, schedule text), first hit wins
ADMINISTRATION_PHRASES = [
    ('once daily', 'Once daily'),
    ('twice daily', 'Twice daily'),
    ('three times daily', 'Three times daily'),
    ('four times daily', 'Four times daily'),
    ('every 4 hours', 'Every 4 hours'),
    ('every 6 hours', 'Every 6 hours'),
    ('every 8 hours', 'Every 8 hours'),
    ('every 12 hours', 'Every 12 hours'),
]


def _first(value: Any) -> Optional[str]:
    """openFDA wraps most fields in lists; accept either shape"""
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _joined(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = ' '.join(str(v) for v in value if v)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_dict(payload: Any, source: str) -> Dict:
    if not isinstance(payload, dict):
        raise DecodeError(f"Unexpected {source} response shape", source=source)
    return payload


# ---------------------------------------------------------------------------
# UPCitemdb
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UPCItem:
    title: str
    upc: str
    ean: str = ''
    brand: Optional[str] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None


def decode_upcitemdb(payload: Any) -> List[UPCItem]:
    """
    Decode a UPCitemdb lookup response into its items

    Args:
        payload: Parsed JSON body ({code, total, offset, items: [...]})

    Returns:
        List[UPCItem]: Items in response order (possibly empty)
    """
    data = _require_dict(payload, UPCITEMDB)
    raw_items = data.get('items') or []
    if not isinstance(raw_items, list):
        raise DecodeError("UPCitemdb 'items' is not a list", source=UPCITEMDB)

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict) or not raw.get('title'):
            raise DecodeError("UPCitemdb item is missing a title", source=UPCITEMDB)
        images = raw.get('images')
        items.append(UPCItem(
            title=str(raw['title']),
            upc=str(raw.get('upc', '')),
            ean=str(raw.get('ean', '')),
            brand=_first(raw.get('brand')),
            description=_first(raw.get('description')),
            images=[str(i) for i in images] if isinstance(images, list) else None,
        ))
    return items


def upc_item_to_record(item: UPCItem, barcode: str) -> MedicationRecord:
    title = item.title
    dosage = extract_dosage(title)
    form = extract_form(title.lower())

    brand_name = item.brand or derive_brand_name(title, dosage, form)

    return MedicationRecord(
        brand_name=brand_name,
        generic_name=guess_generic_from_product(title, item.description or ''),
        dosage_text=dosage or DOSAGE_PLACEHOLDER,
        form=form or FORM_PLACEHOLDER,
        schedule_text="As directed",
        duration_text="Not specified",
        product_code=barcode,
        description=item.description,
        image_url=item.images[0] if item.images else None,
        source=UPCITEMDB,
    )


# ---------------------------------------------------------------------------
# openFDA drug label
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OpenFDALabel:
    brand_name: Optional[str] = None
    generic_name: Optional[str] = None
    substance_name: Optional[str] = None
    product_ndc: Optional[str] = None
    dosage_form: Optional[str] = None
    strength: Optional[str] = None
    purpose: Optional[str] = None
    description: Optional[str] = None
    dosage_and_administration: Optional[str] = None
    warnings: Optional[str] = None


def decode_openfda(payload: Any) -> List[OpenFDALabel]:
    """Decode an openFDA drug label search response into its results"""
    data = _require_dict(payload, OPENFDA)
    results = data.get('results') or []
    if not isinstance(results, list):
        raise DecodeError("openFDA 'results' is not a list", source=OPENFDA)

    labels = []
    for raw in results:
        if not isinstance(raw, dict):
            raise DecodeError("openFDA result is not an object", source=OPENFDA)
        meta = raw.get('openfda') or {}
        if not isinstance(meta, dict):
            raise DecodeError("openFDA 'openfda' block is not an object", source=OPENFDA)
        labels.append(OpenFDALabel(
            brand_name=_first(meta.get('brand_name')),
            generic_name=_first(meta.get('generic_name')),
            substance_name=_first(meta.get('substance_name')),
            product_ndc=_first(meta.get('product_ndc')),
            dosage_form=_first(meta.get('dosage_form')),
            strength=_first(meta.get('strength')),
            purpose=_joined(raw.get('purpose')),
            description=_joined(raw.get('description')),
            dosage_and_administration=_joined(raw.get('dosage_and_administration')),
            warnings=_joined(raw.get('warnings')),
        ))
    return labels


def schedule_from_administration(text: Optional[str]) -> str:
    """Pick a schedule phrase out of label administration text"""
    lowered = (text or '').lower()
    for phrase, schedule in ADMINISTRATION_PHRASES:
        if phrase in lowered:
            return schedule
    return "As prescribed"


def openfda_label_to_record(label: OpenFDALabel) -> MedicationRecord:
    generic_name = label.generic_name or label.substance_name or PRESCRIPTION_PLACEHOLDER
    brand_name = label.brand_name or label.generic_name or label.substance_name or PRESCRIPTION_PLACEHOLDER

    form = None
    if label.dosage_form:
        form = extract_form(label.dosage_form.lower()) or label.dosage_form.title()

    return MedicationRecord(
        brand_name=brand_name,
        generic_name=generic_name,
        dosage_text=label.strength or DOSAGE_PLACEHOLDER,
        form=form or FORM_PLACEHOLDER,
        schedule_text=schedule_from_administration(label.dosage_and_administration),
        duration_text="As prescribed",
        pharmacy_code=label.product_ndc,
        description=label.description or label.purpose,
        warnings=label.warnings,
        source=OPENFDA,
    )


# ---------------------------------------------------------------------------
# RxNav NDC properties
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NDCProperty:
    proprietary_name: Optional[str] = None
    non_proprietary_name: Optional[str] = None
    dosage_form_name: Optional[str] = None
    labeler_name: Optional[str] = None
    strength: Optional[str] = None


def _packaging_strength(raw: Dict) -> Optional[str]:
    """Strength from a STRENGTH property concept, if RxNav supplies one"""
    concept_lists = []
    for package in raw.get('packaging') or []:
        if isinstance(package, dict):
            concept_lists.append(package.get('propertyConceptList') or {})
    concept_lists.append(raw.get('propertyConceptList') or {})

    for concept_list in concept_lists:
        if not isinstance(concept_list, dict):
            continue
        for concept in concept_list.get('propertyConcept') or []:
            if isinstance(concept, dict) and str(concept.get('propName', '')).upper() == 'STRENGTH':
                return _first(concept.get('propValue'))
    return None


def decode_rxnav(payload: Any) -> List[NDCProperty]:
    """Decode an RxNav ndcproperties response; empty when no match"""
    data = _require_dict(payload, RXNAV)
    property_list = data.get('ndcPropertyList') or {}
    if not isinstance(property_list, dict):
        raise DecodeError("RxNav 'ndcPropertyList' is not an object", source=RXNAV)
    raw_properties = property_list.get('ndcProperty') or []
    if not isinstance(raw_properties, list):
        raise DecodeError("RxNav 'ndcProperty' is not a list", source=RXNAV)

    properties = []
    for raw in raw_properties:
        if not isinstance(raw, dict):
            raise DecodeError("RxNav property is not an object", source=RXNAV)
        properties.append(NDCProperty(
            proprietary_name=_first(raw.get('proprietaryName')),
            non_proprietary_name=_first(raw.get('nonProprietaryName')),
            dosage_form_name=_first(raw.get('dosageFormName')),
            labeler_name=_first(raw.get('labelerName')),
            strength=_packaging_strength(raw),
        ))
    return properties


def ndc_property_to_record(prop: NDCProperty, ndc_code: str) -> MedicationRecord:
    generic_name = prop.non_proprietary_name or PRESCRIPTION_PLACEHOLDER
    brand_name = prop.proprietary_name or generic_name

    dosage = prop.strength or extract_dosage(brand_name) or extract_dosage(generic_name)

    form = None
    if prop.dosage_form_name:
        form = extract_form(prop.dosage_form_name.lower()) or prop.dosage_form_name.title()

    return MedicationRecord(
        brand_name=brand_name,
        generic_name=generic_name,
        dosage_text=dosage or DOSAGE_PLACEHOLDER,
        form=form or FORM_PLACEHOLDER,
        schedule_text="As prescribed",
        duration_text="As prescribed",
        pharmacy_code=ndc_code,
        description=f"Labeler: {prop.labeler_name}" if prop.labeler_name else None,
        source=RXNAV,
    )
