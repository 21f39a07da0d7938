"""
Integration tests for the transactional document writer.
"""
import sqlite3
import threading

import pytest

from registry.documents import PROPERTY_RECEIPT, PURCHASE_ORDER
from registry.errors import DocumentNotFound, DuplicateKey, PersistenceFailure


def _force_item_failure(db, description: str = "boom") -> None:
    """Make any PO item with *description* fail on insert."""
    conn = sqlite3.connect(str(db.db_path))
    try:
        conn.execute(
            f"""
            CREATE TRIGGER fail_po_item BEFORE INSERT ON po_items
            WHEN NEW.item_description = '{description}'
            BEGIN SELECT RAISE(ABORT, 'forced failure'); END
            """
        )
        conn.commit()
    finally:
        conn.close()


@pytest.mark.integration
class TestDocumentWriter:
    """Tests for DocumentWriter.save()."""

    def test_insert_returns_computed_total(self, writer, validator, test_db, sample_po):
        record = validator.validate(PURCHASE_ORDER, sample_po)

        result = writer.save(PURCHASE_ORDER, record)

        assert result.doc_id > 0
        assert result.updated is False
        assert result.item_count == 2
        assert result.total_amount == pytest.approx(25001.0, abs=1e-6)
        stored = test_db.get_purchase_order(result.doc_id)
        assert stored["total_amount"] == pytest.approx(25001.0, abs=1e-6)
        assert sum(i["amount"] for i in stored["items"]) == pytest.approx(25001.0, abs=1e-6)

    def test_duplicate_po_no_rejected(self, writer, validator, test_db, sample_po):
        record = validator.validate(PURCHASE_ORDER, sample_po)
        writer.save(PURCHASE_ORDER, record)

        with pytest.raises(DuplicateKey) as exc_info:
            writer.save(PURCHASE_ORDER, record)

        assert "PO-2024-001" in exc_info.value.message
        assert test_db.count_rows(PURCHASE_ORDER) == (1, 2)

    def test_concurrent_inserts_one_wins(self, writer, validator, test_db, sample_po):
        record = validator.validate(PURCHASE_ORDER, sample_po)
        barrier = threading.Barrier(2)
        outcomes: list = []

        def attempt():
            barrier.wait()
            try:
                outcomes.append(writer.save(PURCHASE_ORDER, record))
            except PersistenceFailure as exc:
                outcomes.append(exc)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert len(outcomes) == 2
        assert sum(isinstance(o, DuplicateKey) for o in outcomes) == 1
        assert test_db.count_rows(PURCHASE_ORDER)[0] == 1

    def test_failure_on_item_leaves_no_rows(self, writer, validator, test_db, sample_po):
        _force_item_failure(test_db)
        sample_po["items"].insert(1, {"item_description": "boom", "quantity": 1, "unit_cost": 1})
        record = validator.validate(PURCHASE_ORDER, sample_po)

        with pytest.raises(PersistenceFailure):
            writer.save(PURCHASE_ORDER, record)

        assert test_db.count_rows(PURCHASE_ORDER) == (0, 0)

    def test_failed_update_keeps_previous_items(self, writer, validator, test_db, sample_po):
        first = writer.save(PURCHASE_ORDER, validator.validate(PURCHASE_ORDER, sample_po))
        _force_item_failure(test_db)
        sample_po["supplier"] = "Changed Supplier"
        sample_po["items"] = [
            {"item_description": "fine", "quantity": 1, "unit_cost": 1},
            {"item_description": "boom", "quantity": 1, "unit_cost": 1},
        ]
        record = validator.validate(PURCHASE_ORDER, sample_po, updating=True)

        with pytest.raises(PersistenceFailure):
            writer.save(PURCHASE_ORDER, record, doc_id=first.doc_id)

        stored = test_db.get_purchase_order(first.doc_id)
        assert stored["supplier_name"] == "Acme Office Supply"
        assert len(stored["items"]) == 2

    def test_update_replaces_items(self, writer, validator, test_db, sample_po):
        sample_po["items"].append({"item_description": "Lamp", "quantity": 1, "unit_cost": 900})
        first = writer.save(PURCHASE_ORDER, validator.validate(PURCHASE_ORDER, sample_po))
        assert test_db.count_rows(PURCHASE_ORDER, first.doc_id) == (1, 3)

        sample_po["items"] = [{"item_description": "Cabinet", "quantity": 1, "unit_cost": 4200}]
        record = validator.validate(PURCHASE_ORDER, sample_po, updating=True)
        second = writer.save(PURCHASE_ORDER, record, doc_id=first.doc_id)

        assert second.doc_id == first.doc_id
        assert second.updated is True
        assert test_db.count_rows(PURCHASE_ORDER, first.doc_id) == (1, 1)
        assert test_db.get_purchase_order(first.doc_id)["total_amount"] == pytest.approx(4200.0)

    def test_update_may_keep_own_po_no(self, writer, validator, sample_po):
        first = writer.save(PURCHASE_ORDER, validator.validate(PURCHASE_ORDER, sample_po))
        record = validator.validate(PURCHASE_ORDER, sample_po, updating=True)

        result = writer.save(PURCHASE_ORDER, record, doc_id=first.doc_id)

        assert result.natural_key == "PO-2024-001"

    def test_update_to_another_po_no_rejected(self, writer, validator, sample_po):
        writer.save(PURCHASE_ORDER, validator.validate(PURCHASE_ORDER, sample_po))
        sample_po["po_no"] = "PO-2024-002"
        second = writer.save(PURCHASE_ORDER, validator.validate(PURCHASE_ORDER, sample_po))

        sample_po["po_no"] = "PO-2024-001"
        record = validator.validate(PURCHASE_ORDER, sample_po, updating=True)
        with pytest.raises(DuplicateKey):
            writer.save(PURCHASE_ORDER, record, doc_id=second.doc_id)

    def test_update_unknown_id(self, writer, validator, test_db, sample_po):
        record = validator.validate(PURCHASE_ORDER, sample_po, updating=True)

        with pytest.raises(DocumentNotFound):
            writer.save(PURCHASE_ORDER, record, doc_id=999)

        assert test_db.count_rows(PURCHASE_ORDER) == (0, 0)


@pytest.mark.integration
class TestRecipientResolution:
    """Tests for PAR recipient find-or-create."""

    def _user_count(self, db) -> int:
        return db.table_counts()["users"]

    def test_same_recipient_creates_one_user(self, writer, validator, test_db, sample_par):
        first = writer.save(PROPERTY_RECEIPT, validator.validate(PROPERTY_RECEIPT, sample_par))
        sample_par["par_no"] = "PAR-2024-002"
        second = writer.save(PROPERTY_RECEIPT, validator.validate(PROPERTY_RECEIPT, sample_par))

        assert self._user_count(test_db) == 1
        assert first.recipient_id == second.recipient_id

    def test_new_recipient_stores_position(self, writer, validator, test_db, sample_par):
        writer.save(PROPERTY_RECEIPT, validator.validate(PROPERTY_RECEIPT, sample_par))

        with test_db.reader() as conn:
            user = conn.execute("SELECT * FROM users").fetchone()
        assert user["full_name"] == "Maria Santos"
        assert user["position"] == "Administrative Officer"
        assert user["department"] == "Engineering"

    def test_numeric_recipient_uses_existing_user(self, writer, validator, test_db, sample_par):
        first = writer.save(PROPERTY_RECEIPT, validator.validate(PROPERTY_RECEIPT, sample_par))
        sample_par["par_no"] = "PAR-2024-002"
        sample_par["received_by"] = str(first.recipient_id)

        second = writer.save(PROPERTY_RECEIPT, validator.validate(PROPERTY_RECEIPT, sample_par))

        assert second.recipient_id == first.recipient_id
        assert self._user_count(test_db) == 1

    @pytest.mark.parametrize("name", ["²", "9" * 30])
    def test_digit_like_recipient_is_a_name(self, writer, validator, test_db, sample_par, name):
        sample_par["received_by"] = name
        result = writer.save(PROPERTY_RECEIPT, validator.validate(PROPERTY_RECEIPT, sample_par))

        with test_db.reader() as conn:
            user = conn.execute(
                "SELECT full_name FROM users WHERE user_id = ?", (result.recipient_id,)
            ).fetchone()
        assert user["full_name"] == name

    def test_concurrent_pars_same_recipient(self, writer, validator, test_db, sample_par):
        records = []
        for n in range(2):
            sample_par["par_no"] = f"PAR-C-{n}"
            records.append(validator.validate(PROPERTY_RECEIPT, sample_par))
        barrier = threading.Barrier(2)
        errors: list = []

        def attempt(record):
            barrier.wait()
            try:
                writer.save(PROPERTY_RECEIPT, record)
            except PersistenceFailure as exc:
                errors.append(exc)

        threads = [threading.Thread(target=attempt, args=(r,)) for r in records]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert self._user_count(test_db) == 1
        assert test_db.count_rows(PROPERTY_RECEIPT) == (2, 4)
