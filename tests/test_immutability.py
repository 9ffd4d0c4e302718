import pytest
from sqlalchemy import delete, update

from stockledger.exceptions import DirectStockWriteError, ImmutableEntryError
from stockledger.models.ledger_entry import LedgerEntry
from stockledger.models.product import Product
from stockledger.schemas.product import ProductUpdate
from stockledger.services import product_service


def test_entry_cannot_be_updated(make_product, db, ledger_of):
    product = make_product(quantity=3)
    entry = db.query(LedgerEntry).filter(LedgerEntry.product_id == product.id).one()

    entry.reason = "rewritten"
    with pytest.raises(ImmutableEntryError) as exc_info:
        db.flush()
    db.rollback()

    assert exc_info.value.operation == "update"
    assert ledger_of(product.id)[0].reason == "Initial stock on product creation"


def test_entry_cannot_be_deleted(make_product, db, ledger_of):
    product = make_product(quantity=3)
    entry = db.query(LedgerEntry).filter(LedgerEntry.product_id == product.id).one()

    db.delete(entry)
    with pytest.raises(ImmutableEntryError) as exc_info:
        db.flush()
    db.rollback()

    assert exc_info.value.operation == "delete"
    assert len(ledger_of(product.id)) == 1


def test_bulk_statements_against_the_ledger_are_rejected(make_product, db, ledger_of):
    product = make_product(quantity=3)

    with pytest.raises(ImmutableEntryError):
        db.execute(update(LedgerEntry).values(reason="bulk"))
    with pytest.raises(ImmutableEntryError):
        db.execute(delete(LedgerEntry).where(LedgerEntry.product_id == product.id))
    db.rollback()

    [entry] = ledger_of(product.id)
    assert entry.reason == "Initial stock on product creation"


def test_product_quantity_has_no_setter(make_product):
    product = make_product(quantity=3)
    with pytest.raises(AttributeError):
        product.quantity = 100
    assert product.quantity == 3


def test_product_cannot_be_constructed_with_stock():
    with pytest.raises(AttributeError):
        Product(sku="X", name="X", quantity=5)


def test_assigning_the_stock_column_is_rejected(make_product, db, stock_of, ledger_of):
    product = make_product(quantity=3)

    product._quantity = 50
    with pytest.raises(DirectStockWriteError) as exc_info:
        db.commit()
    db.rollback()

    assert exc_info.value.operation == "update"
    assert stock_of(product.id) == 3
    assert len(ledger_of(product.id)) == 1


def test_other_product_fields_stay_editable(make_product, db, stock_of):
    product = make_product(quantity=3)

    updated = product_service.update_product(db, product.id, ProductUpdate(name="Renamed", low_stock_threshold=2))

    assert (updated.name, updated.low_stock_threshold) == ("Renamed", 2)
    assert stock_of(product.id) == 3


def test_product_cannot_be_inserted_with_stock(db):
    db.add(Product(sku="RAW-1", name="Raw", _quantity=5))
    with pytest.raises(DirectStockWriteError) as exc_info:
        db.commit()
    db.rollback()

    assert exc_info.value.operation == "insert"
    assert db.query(Product).filter(Product.sku == "RAW-1").count() == 0


def test_bulk_stock_update_outside_the_ledger_is_rejected(make_product, db, stock_of):
    product = make_product(quantity=3)

    with pytest.raises(DirectStockWriteError):
        db.execute(update(Product).where(Product.id == product.id).values({Product._quantity: 99}))
    db.rollback()

    assert stock_of(product.id) == 3
