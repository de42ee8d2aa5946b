"""
In-memory medication storage with duplicate checks

Anything exposing the same find_existing / insert_if_unique / all methods
can be passed in its place (the mobile app backs it with its own database).
"""

import logging
import threading
from typing import List, Optional

from medication_record import MedicationRecord

logger = logging.getLogger(__name__)


class MedicationStore:
    def __init__(self):
        self._medications: List[MedicationRecord] = []
        # Held across the duplicate check and the append
        self._lock = threading.Lock()

    def find_existing(self, brand_name: str, product_code: Optional[str] = None) -> Optional[MedicationRecord]:
        """
        Find a stored medication with the same brand name (case-insensitive)
        or, failing that, the same product code
        """
        with self._lock:
            return self._find_existing(brand_name, product_code)

    def _find_existing(self, brand_name: str, product_code: Optional[str]) -> Optional[MedicationRecord]:
        wanted = brand_name.lower()
        for medication in self._medications:
            if medication.brand_name.lower() == wanted:
                return medication

        if product_code:
            for medication in self._medications:
                if medication.product_code == product_code:
                    return medication

        return None

    def insert_if_unique(self, record: MedicationRecord) -> bool:
        """Insert unless a duplicate exists; True when inserted"""
        with self._lock:
            if self._find_existing(record.brand_name, record.product_code) is not None:
                logger.info(f"Duplicate medication skipped: {record.brand_name}")
                return False

            self._medications.append(record)

        logger.info(f"Stored medication: {record.brand_name}")
        return True

    def all(self) -> List[MedicationRecord]:
        with self._lock:
            return list(self._medications)
