#!/usr/bin/env python3
"""
Prescription label parser
Builds a MedicationRecord from OCR'd label text, using the LLM interpreter
when available and line-based rules otherwise.
"""

import logging
from typing import Dict, Optional

from label_field_extractor import split_name_line
from llm_label_parser import NO_WARNINGS, LLMLabelParser
from medication_record import MedicationRecord, apply_derived_fields

logger = logging.getLogger(__name__)


def parse_prescription_label(text: str,
                             llm_parser: Optional[LLMLabelParser] = None
                             ) -> Optional[MedicationRecord]:
    """
    Parse prescription label text into a medication record

    Args:
        text: OCR text of the label
        llm_parser: AI interpreter to try first; rule-based parsing only when None

    Returns:
        Optional[MedicationRecord]: Record with derived schedule fields, or
        None when the text is too short to read
    """
    logger.info("Parsing prescription label text...")

    if llm_parser is not None:
        ai_fields = llm_parser.extract_label_fields(text)
        if ai_fields:
            return apply_derived_fields(record_from_ai_fields(ai_fields))
        logger.warning("AI parsing unavailable, using manual parsing...")

    record = manual_parse(text)
    return apply_derived_fields(record) if record else None


def record_from_ai_fields(fields: Dict[str, str]) -> MedicationRecord:
    label = split_name_line(fields['name'])
    warnings = fields.get('warnings') or None
    if warnings == NO_WARNINGS:
        warnings = None

    record = MedicationRecord(
        brand_name=label.brand_name,
        generic_name=label.generic_name,
        dosage_text=label.dosage,
        form=label.form,
        schedule_text=fields.get('directions') or "As directed",
        duration_text="As prescribed",
        warnings=warnings,
        source='ai',
    )
    logger.info(f"AI-powered medication created: {record.brand_name} / {record.schedule_text}")
    return record


def manual_parse(text: str) -> Optional[MedicationRecord]:
    """
    Rule-based fallback: first non-empty line is the medication name,
    the remaining lines are the directions
    """
    if not isinstance(text, str):
        return None

    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]

    if len(lines) < 2:
        logger.warning("Not enough lines for manual parsing")
        return None

    name_line = lines[0]
    instructions = ' '.join(lines[1:])
    label = split_name_line(name_line)

    record = MedicationRecord(
        brand_name=label.brand_name,
        generic_name=label.generic_name,
        dosage_text=label.dosage,
        form=label.form,
        schedule_text=instructions or "As directed",
        duration_text="As prescribed",
        source='manual',
    )
    logger.info(f"Manual parsing complete: {record.brand_name} {record.dosage_text}")
    return record
