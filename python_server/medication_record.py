#!/usr/bin/env python3
"""
Normalized medication record shared by every parsing and lookup path
"""

from dataclasses import dataclass, field, replace
from datetime import time
from typing import Dict, List, Optional

from dosage_parser import parse_times_per_day, simplify_instructions
from label_field_extractor import DOSAGE_PLACEHOLDER, FORM_PLACEHOLDER
from schedule_times import format_times, generate_scheduled_times


@dataclass(frozen=True)
class MedicationRecord:
    brand_name: str
    generic_name: str
    dosage_text: str
    form: str
    schedule_text: str
    duration_text: str
    product_code: Optional[str] = None
    pharmacy_code: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    warnings: Optional[str] = None
    times_per_day: int = 1
    simplified_instructions: str = ''
    scheduled_times: List[time] = field(default_factory=list)
    # Which data source populated the record (upcitemdb, openfda, rxnav, ai, manual)
    source: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'brand_name': self.brand_name,
            'generic_name': self.generic_name,
            'dosage': self.dosage_text,
            'form': self.form,
            'schedule': self.schedule_text,
            'duration': self.duration_text,
            'product_code': self.product_code,
            'pharmacy_code': self.pharmacy_code,
            'description': self.description,
            'image_url': self.image_url,
            'warnings': self.warnings,
            'times_per_day': self.times_per_day,
            'simplified_instructions': self.simplified_instructions,
            'scheduled_times': format_times(self.scheduled_times),
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'MedicationRecord':
        """Rebuild a record from to_dict() output; derived fields are recomputed"""
        brand_name = (_text_field(data, 'brand_name') or '').strip()
        if not brand_name:
            raise ValueError("brand_name is required")

        record = cls(
            brand_name=brand_name,
            generic_name=_text_field(data, 'generic_name') or brand_name,
            dosage_text=_text_field(data, 'dosage') or DOSAGE_PLACEHOLDER,
            form=_text_field(data, 'form') or FORM_PLACEHOLDER,
            schedule_text=_text_field(data, 'schedule') or "As directed",
            duration_text=_text_field(data, 'duration') or "Not specified",
            product_code=_text_field(data, 'product_code'),
            pharmacy_code=_text_field(data, 'pharmacy_code'),
            description=_text_field(data, 'description'),
            image_url=_text_field(data, 'image_url'),
            warnings=_text_field(data, 'warnings'),
            source=_text_field(data, 'source'),
        )
        return apply_derived_fields(record)


def _text_field(data: Dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def apply_derived_fields(record: MedicationRecord) -> MedicationRecord:
    """
    Fill in times per day, simplified instructions and reminder times

    Returns a new record; the input is left untouched.
    """
    times_per_day = parse_times_per_day(record.schedule_text)
    return replace(
        record,
        times_per_day=times_per_day,
        simplified_instructions=simplify_instructions(record.schedule_text, record.form),
        scheduled_times=generate_scheduled_times(times_per_day),
    )
