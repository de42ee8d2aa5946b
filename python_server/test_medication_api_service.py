import threading
from datetime import time
from unittest.mock import Mock

import pytest
import requests

from lookup_errors import LookupCancelled, ServerError
from medication_api_service import MedicationAPIService, is_ndc_barcode, ndc_variants

UPC_URL = "https://upc.test/lookup"
FDA_URL = "https://fda.test/label.json"
RXNAV_URL = "https://rxnav.test/ndcproperties.json"

NDC_BARCODE = "312345678903"
RETAIL_BARCODE = "012345678905"

UPC_PAYLOAD = {
    "code": "OK",
    "total": 1,
    "offset": 0,
    "items": [{
        "ean": "0012345678905",
        "title": "Nature Made Vitamin D3 1000 IU Softgels",
        "upc": RETAIL_BARCODE,
        "brand": "Nature Made",
        "description": "Supports bone health",
        "images": ["https://img.test/d3.jpg"],
    }],
}

FDA_PAYLOAD = {
    "results": [{
        "openfda": {
            "brand_name": ["Zestril"],
            "generic_name": ["LISINOPRIL"],
            "product_ndc": ["0310-0130"],
            "dosage_form": ["TABLET"],
        },
        "dosage_and_administration": ["Take one tablet twice daily with water."],
    }]
}

RXNAV_PAYLOAD = {
    "ndcPropertyList": {
        "ndcProperty": [{
            "proprietaryName": "Lipitor",
            "nonProprietaryName": "atorvastatin calcium",
            "dosageFormName": "TABLET, FILM COATED",
            "labelerName": "Pfizer Laboratories",
            "packaging": [{
                "propertyConceptList": {
                    "propertyConcept": [
                        {"propName": "STRENGTH", "propValue": "20 MG"},
                    ]
                }
            }],
        }]
    }
}


def make_response(status_code=200, payload=None, json_error=False):
    response = Mock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = payload
    return response


class FakeSession:
    """Returns queued responses per URL and records every call"""

    def __init__(self, routes):
        self.routes = {url: list(responses) for url, responses in routes.items()}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params or {}), timeout))
        queue = self.routes.get(url)
        if not queue:
            return make_response(404)
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        if isinstance(result, Mock):
            return result
        return result()

    def calls_to(self, url):
        return [call for call in self.calls if call[0] == url]


def make_service(session, use_cache=False, cache_size=None):
    return MedicationAPIService(
        session=session,
        timeout=5,
        use_cache=use_cache,
        cache_size=cache_size,
        upcitemdb_url=UPC_URL,
        openfda_url=FDA_URL,
        rxnav_url=RXNAV_URL,
    )


def test_ndc_barcode_shape():
    assert is_ndc_barcode(NDC_BARCODE)
    assert not is_ndc_barcode(RETAIL_BARCODE)
    assert not is_ndc_barcode("31234567890")
    assert not is_ndc_barcode("3123456789ab")


def test_ndc_variants_in_fixed_order():
    assert ndc_variants(NDC_BARCODE) == [
        "1234-5678-90",
        "12345-678-90",
        "12345-6789-0",
        "123456-789-0",
        "123456-7890",
    ]


def test_upcitemdb_hit_short_circuits():
    session = FakeSession({UPC_URL: [make_response(200, UPC_PAYLOAD)]})
    record, error = make_service(session).lookup_medication(RETAIL_BARCODE)

    assert error is None
    assert record.source == "upcitemdb"
    assert record.brand_name == "Nature Made"
    assert record.generic_name == "Vitamin D"
    assert record.dosage_text == "1000 IU"
    assert record.form == "Softgel"
    assert record.schedule_text == "As directed"
    assert record.duration_text == "Not specified"
    assert record.product_code == RETAIL_BARCODE
    assert record.pharmacy_code is None
    assert record.image_url == "https://img.test/d3.jpg"
    assert record.simplified_instructions == "Take as your doctor tells you"
    assert record.scheduled_times == [time(9, 0)]
    assert len(session.calls) == 1
    assert session.calls[0] == (UPC_URL, {"upc": RETAIL_BARCODE}, 5)


def test_falls_back_to_openfda():
    session = FakeSession({
        UPC_URL: [make_response(404)],
        FDA_URL: [make_response(200, FDA_PAYLOAD)],
    })
    record, error = make_service(session).lookup_medication(RETAIL_BARCODE)

    assert error is None
    assert record.source == "openfda"
    assert record.brand_name == "Zestril"
    assert record.generic_name == "LISINOPRIL"
    assert record.dosage_text == "See label"
    assert record.form == "Tablet"
    assert record.schedule_text == "Twice daily"
    assert record.pharmacy_code == "0310-0130"
    assert record.product_code is None
    assert record.times_per_day == 2
    assert record.scheduled_times == [time(9, 0), time(21, 0)]

    fda_calls = session.calls_to(FDA_URL)
    assert fda_calls[0][1] == {"search": f"openfda.upc:{RETAIL_BARCODE}", "limit": "1"}


def test_upcitemdb_connection_error_falls_back_to_openfda():
    session = FakeSession({
        UPC_URL: [requests.exceptions.ConnectionError("connection refused")],
        FDA_URL: [make_response(200, FDA_PAYLOAD)],
    })
    record, error = make_service(session).lookup_medication(RETAIL_BARCODE)

    assert error is None
    assert record.source == "openfda"
    assert record.brand_name == "Zestril"
    assert len(session.calls_to(UPC_URL)) == 1
    assert len(session.calls_to(FDA_URL)) == 1


def test_openfda_falls_back_to_substance_name():
    payload = {"results": [{"openfda": {"substance_name": ["IBUPROFEN"]}}]}
    session = FakeSession({
        UPC_URL: [make_response(404)],
        FDA_URL: [make_response(200, payload)],
    })
    record, _ = make_service(session).lookup_medication(RETAIL_BARCODE)

    assert record.generic_name == "IBUPROFEN"
    assert record.brand_name == "IBUPROFEN"
    assert record.schedule_text == "As prescribed"
    assert record.form == "Not specified"


def test_decode_error_and_empty_items_advance_to_next_source():
    for upc_response in (make_response(200, json_error=True), make_response(200, {"items": []})):
        session = FakeSession({
            UPC_URL: [upc_response],
            FDA_URL: [make_response(200, FDA_PAYLOAD)],
        })
        record, error = make_service(session).lookup_medication(RETAIL_BARCODE)
        assert error is None
        assert record.source == "openfda"


def test_retail_barcode_never_reaches_registry():
    session = FakeSession({
        UPC_URL: [make_response(404)],
        FDA_URL: [make_response(404)],
        RXNAV_URL: [make_response(200, RXNAV_PAYLOAD)],
    })
    record, error = make_service(session).lookup_medication(RETAIL_BARCODE)

    assert record is None
    assert error.startswith("Medication not found in any database")
    assert "not supported" in error
    assert session.calls_to(RXNAV_URL) == []


def test_ndc_barcode_tries_all_five_formats():
    session = FakeSession({
        UPC_URL: [make_response(404)],
        FDA_URL: [make_response(404)],
        RXNAV_URL: [make_response(200, {})],
    })
    record, error = make_service(session).lookup_medication(NDC_BARCODE)

    assert record is None
    assert "1234567890" in error
    assert [call[1]["id"] for call in session.calls_to(RXNAV_URL)] == ndc_variants(NDC_BARCODE)


def test_ndc_barcode_stops_at_first_matching_format():
    session = FakeSession({
        UPC_URL: [make_response(500)],
        FDA_URL: [make_response(404)],
        RXNAV_URL: [
            make_response(200, {}),
            make_response(200, {"ndcPropertyList": {}}),
            make_response(200, RXNAV_PAYLOAD),
        ],
    })
    record, error = make_service(session).lookup_medication(NDC_BARCODE)

    assert error is None
    assert record.source == "rxnav"
    assert record.brand_name == "Lipitor"
    assert record.generic_name == "atorvastatin calcium"
    assert record.dosage_text == "20 MG"
    assert record.form == "Tablet"
    assert record.pharmacy_code == "12345-6789-0"
    assert record.product_code is None
    assert len(record.scheduled_times) == record.times_per_day
    assert len(session.calls_to(RXNAV_URL)) == 3


def test_last_step_failure_is_reported():
    session = FakeSession({
        UPC_URL: [make_response(404)],
        FDA_URL: [make_response(404)],
        RXNAV_URL: [requests.exceptions.ConnectionError("connection refused")],
    })
    record, error = make_service(session).lookup_medication(NDC_BARCODE)

    assert record is None
    assert error.startswith("Network error contacting NDC registry")


def test_server_error_carries_status_code():
    session = FakeSession({UPC_URL: [make_response(503)]})
    service = make_service(session)

    with pytest.raises(ServerError) as excinfo:
        service._lookup_upcitemdb(RETAIL_BARCODE, None)

    assert excinfo.value.status_code == 503
    assert "503" in excinfo.value.message


def test_cancelled_before_start_makes_no_calls():
    session = FakeSession({UPC_URL: [make_response(200, UPC_PAYLOAD)]})
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(LookupCancelled):
        make_service(session).lookup_medication(RETAIL_BARCODE, cancel_event=cancel)
    assert session.calls == []


def test_cancelled_mid_lookup_stops_fallback():
    cancel = threading.Event()

    def cancel_then_miss():
        cancel.set()
        return make_response(404)

    session = FakeSession({
        UPC_URL: [cancel_then_miss],
        FDA_URL: [make_response(200, FDA_PAYLOAD)],
    })

    with pytest.raises(LookupCancelled):
        make_service(session).lookup_medication(RETAIL_BARCODE, cancel_event=cancel)
    assert session.calls_to(FDA_URL) == []


def test_successful_lookups_are_cached():
    session = FakeSession({UPC_URL: [make_response(200, UPC_PAYLOAD)]})
    service = make_service(session, use_cache=True)

    first, _ = service.lookup_medication(RETAIL_BARCODE)
    second, _ = service.lookup_medication(RETAIL_BARCODE)

    assert first == second
    assert len(session.calls) == 1

    service.clear_cache()
    service.lookup_medication(RETAIL_BARCODE)
    assert len(session.calls) == 2


def test_cache_evicts_least_recently_used():
    session = FakeSession({UPC_URL: [make_response(200, UPC_PAYLOAD)]})
    service = make_service(session, use_cache=True, cache_size=2)

    service.lookup_medication("012345678905")
    service.lookup_medication("012345678912")
    # Touch the first barcode so the second becomes the oldest
    service.lookup_medication("012345678905")
    service.lookup_medication("012345678929")
    assert len(session.calls) == 3

    service.lookup_medication("012345678905")
    assert len(session.calls) == 3

    service.lookup_medication("012345678912")
    assert len(session.calls) == 4
