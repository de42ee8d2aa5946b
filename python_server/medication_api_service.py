#!/usr/bin/env python3
"""
Medication lookup by barcode across three external databases

Sources are tried strictly in order and the first one that produces a
record wins:
1. UPCitemdb retail product database
2. openFDA drug label database (openfda.upc search)
3. RxNav NDC registry, only for 12-digit barcodes starting with "3"
   (pharmacy barcodes that embed a 10-digit NDC)
"""

import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Tuple

import requests

import config
from lookup_errors import (
    DecodeError,
    FormatUnsupportedError,
    LookupCancelled,
    MedicationLookupError,
    NotFoundError,
    ServerError,
    TransportError,
)
from lookup_sources import (
    OPENFDA,
    RXNAV,
    UPCITEMDB,
    decode_openfda,
    decode_rxnav,
    decode_upcitemdb,
    ndc_property_to_record,
    openfda_label_to_record,
    upc_item_to_record,
)
from medication_record import MedicationRecord, apply_derived_fields

logger = logging.getLogger(__name__)

SOURCE_LABELS = {
    UPCITEMDB: "UPC database",
    OPENFDA: "FDA drug label database",
    RXNAV: "NDC registry",
}

# Segment lengths of the NDC labeler-product-package groupings, tried in order
NDC_SEGMENT_LAYOUTS = [
    (4, 4, 2),
    (5, 3, 2),
    (5, 4, 1),
    (6, 3, 2),
    (6, 4, 1),
]

NOT_FOUND_ANYWHERE = "Medication not found in any database"

Attempt = Callable[[str, Optional[threading.Event]], MedicationRecord]


def is_ndc_barcode(barcode: str) -> bool:
    """Pharmacy barcodes are 12 digits with a leading "3" around a 10-digit NDC"""
    return len(barcode) == 12 and barcode.isdigit() and barcode.startswith('3')


def ndc_variants(barcode: str) -> List[str]:
    """
    Formatted NDC candidates for a pharmacy barcode

    Args:
        barcode: 12-digit barcode starting with "3"

    Returns:
        List[str]: One hyphenated code per segment layout, in layout order
    """
    digits = barcode[1:11]
    variants = []
    for layout in NDC_SEGMENT_LAYOUTS:
        segments = []
        offset = 0
        for length in layout:
            segment = digits[offset:offset + length]
            offset += length
            if segment:
                segments.append(segment)
        variants.append('-'.join(segments))
    return variants


def _check_cancelled(cancel_event: Optional[threading.Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise LookupCancelled("Medication lookup cancelled")


class MedicationAPIService:
    """Looks up medications by barcode with sequential source fallback"""

    def __init__(self,
                 session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None,
                 use_cache: Optional[bool] = None,
                 cache_size: Optional[int] = None,
                 upcitemdb_url: Optional[str] = None,
                 openfda_url: Optional[str] = None,
                 rxnav_url: Optional[str] = None):
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else config.LOOKUP_TIMEOUT
        self.use_cache = use_cache if use_cache is not None else config.LOOKUP_CACHE_ENABLED
        self.upcitemdb_url = upcitemdb_url or config.UPCITEMDB_URL
        self.openfda_url = openfda_url or config.OPENFDA_LABEL_URL
        self.rxnav_url = rxnav_url or config.RXNAV_NDC_URL
        self.cache_size = cache_size if cache_size is not None else config.LOOKUP_CACHE_SIZE
        self._cache: 'OrderedDict[str, MedicationRecord]' = OrderedDict()
        self._cache_lock = threading.Lock()
        logger.info(f"MedicationAPIService init: timeout={self.timeout}s, "
                    f"cache={self.use_cache} (max {self.cache_size})")

    def lookup_medication(self, barcode: str,
                          cancel_event: Optional[threading.Event] = None
                          ) -> Tuple[Optional[MedicationRecord], Optional[str]]:
        """
        Look up a medication by barcode

        Args:
            barcode: Scanned barcode digits
            cancel_event: Set by the caller to abandon the lookup

        Returns:
            Tuple of (record, None) on success or (None, error message)

        Raises:
            LookupCancelled: cancel_event was set before a record was produced
        """
        barcode = (barcode or '').strip()
        logger.info(f"Starting medication lookup for barcode: {barcode}")

        cached = self._cached(barcode)
        if cached is not None:
            logger.info(f"Cache hit for barcode {barcode}")
            return cached, None

        last_error: Optional[MedicationLookupError] = None

        for source, attempt in self._attempts():
            _check_cancelled(cancel_event)
            logger.info(f"Trying {SOURCE_LABELS[source]} for {barcode}")
            try:
                record = attempt(barcode, cancel_event)
            except MedicationLookupError as e:
                logger.warning(f"✗ {SOURCE_LABELS[source]} failed: {e.message}")
                last_error = e
                continue

            _check_cancelled(cancel_event)
            record = apply_derived_fields(record)
            logger.info(f"✓ Medication found via {SOURCE_LABELS[source]}: {record.brand_name}")
            self._remember(barcode, record)
            return record, None

        if last_error is None or isinstance(last_error, FormatUnsupportedError):
            reason = last_error.message if last_error else ''
            message = f"{NOT_FOUND_ANYWHERE}. {reason}".strip()
        else:
            message = last_error.message
        logger.warning(f"Lookup failed for {barcode}: {message}")
        return None, message

    def clear_cache(self):
        with self._cache_lock:
            self._cache.clear()

    def _cached(self, barcode: str) -> Optional[MedicationRecord]:
        if not self.use_cache:
            return None
        with self._cache_lock:
            record = self._cache.get(barcode)
            if record is not None:
                self._cache.move_to_end(barcode)
            return record

    def _remember(self, barcode: str, record: MedicationRecord):
        """Cache a successful lookup, evicting the least recently used entry"""
        if not self.use_cache or self.cache_size <= 0:
            return
        with self._cache_lock:
            self._cache[barcode] = record
            self._cache.move_to_end(barcode)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)

    def _attempts(self) -> List[Tuple[str, Attempt]]:
        return [
            (UPCITEMDB, self._lookup_upcitemdb),
            (OPENFDA, self._lookup_openfda),
            (RXNAV, self._lookup_rxnav),
        ]

    def _get_json(self, source: str, url: str, params: Dict[str, str],
                  cancel_event: Optional[threading.Event]):
        """
        GET a JSON document from a source

        404 maps to NotFoundError, any other non-200 status to ServerError,
        network failures to TransportError and unparseable bodies to
        DecodeError.
        """
        label = SOURCE_LABELS[source]
        _check_cancelled(cancel_event)
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Network error contacting {label}: {e}", source=source)
        _check_cancelled(cancel_event)

        logger.debug(f"{label} responded with status {response.status_code}")
        if response.status_code == 404:
            raise NotFoundError(f"Medication not found in {label}", source=source)
        if response.status_code != 200:
            raise ServerError(
                f"{label} server error (status {response.status_code})",
                status_code=response.status_code,
                source=source,
            )

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Could not read {label} response: {e}", source=source)

    def _lookup_upcitemdb(self, barcode: str,
                          cancel_event: Optional[threading.Event]) -> MedicationRecord:
        payload = self._get_json(UPCITEMDB, self.upcitemdb_url, {'upc': barcode}, cancel_event)
        items = decode_upcitemdb(payload)
        if not items:
            raise NotFoundError(f"No product found in UPC database for barcode {barcode}",
                                source=UPCITEMDB)
        return upc_item_to_record(items[0], barcode)

    def _lookup_openfda(self, barcode: str,
                        cancel_event: Optional[threading.Event]) -> MedicationRecord:
        params = {'search': f'openfda.upc:{barcode}', 'limit': '1'}
        payload = self._get_json(OPENFDA, self.openfda_url, params, cancel_event)
        labels = decode_openfda(payload)
        if not labels:
            raise NotFoundError(f"No drug label found for barcode {barcode}", source=OPENFDA)
        return openfda_label_to_record(labels[0])

    def _lookup_rxnav(self, barcode: str,
                      cancel_event: Optional[threading.Event]) -> MedicationRecord:
        if not is_ndc_barcode(barcode):
            raise FormatUnsupportedError(
                "Barcode format is not supported for NDC lookup",
                source=RXNAV,
            )

        failure: Optional[MedicationLookupError] = None
        for ndc_code in ndc_variants(barcode):
            logger.info(f"  Trying NDC format {ndc_code}")
            try:
                payload = self._get_json(RXNAV, self.rxnav_url, {'id': ndc_code}, cancel_event)
                properties = decode_rxnav(payload)
            except NotFoundError:
                continue
            except MedicationLookupError as e:
                failure = e
                continue

            if properties:
                return ndc_property_to_record(properties[0], ndc_code)

        if failure is not None:
            raise failure
        raise NotFoundError(
            f"NDC {barcode[1:11]} not found in {SOURCE_LABELS[RXNAV]}",
            source=RXNAV,
        )
