import threading

from medication_record import MedicationRecord
from medication_store import MedicationStore


def make_record(brand_name, product_code=None):
    return MedicationRecord(
        brand_name=brand_name,
        generic_name=brand_name,
        dosage_text="10 mg",
        form="Tablet",
        schedule_text="Once daily",
        duration_text="As prescribed",
        product_code=product_code,
    )


def test_insert_and_list():
    store = MedicationStore()
    assert store.insert_if_unique(make_record("Zestril"))
    assert store.insert_if_unique(make_record("Lipitor"))
    assert [m.brand_name for m in store.all()] == ["Zestril", "Lipitor"]


def test_duplicate_brand_is_case_insensitive():
    store = MedicationStore()
    store.insert_if_unique(make_record("Zestril"))

    assert not store.insert_if_unique(make_record("ZESTRIL"))
    assert len(store.all()) == 1


def test_duplicate_product_code():
    store = MedicationStore()
    store.insert_if_unique(make_record("Nature Made", product_code="012345678905"))

    existing = store.find_existing("Nature Made D3", "012345678905")
    assert existing is not None
    assert existing.brand_name == "Nature Made"
    assert not store.insert_if_unique(make_record("Nature Made D3", product_code="012345678905"))


def test_missing_product_code_only_matches_brand():
    store = MedicationStore()
    store.insert_if_unique(make_record("Zestril", product_code="111"))

    assert store.find_existing("Lipitor") is None
    assert store.find_existing("Lipitor", "") is None


def test_concurrent_inserts_store_one_record():
    store = MedicationStore()
    start = threading.Barrier(8)
    results = []

    def insert():
        start.wait()
        results.append(store.insert_if_unique(make_record("Zestril")))

    threads = [threading.Thread(target=insert) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert len(store.all()) == 1
