import pytest
from sqlalchemy.orm import sessionmaker

from stockledger.database import init_db, make_engine
from stockledger.models.ledger_entry import LedgerEntry
from stockledger.models.product import Product
from stockledger.schemas.ledger import StockChangeRequest
from stockledger.schemas.product import ProductCreate
from stockledger.services import auth_service, ledger_service, product_service


@pytest.fixture
def engine(tmp_path):
    # File-backed so that separate sessions/threads really contend for the row
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}", timeout_seconds=30)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def admin(db):
    return auth_service.create_user(db, "admin", role="admin")


@pytest.fixture
def seller(db):
    return auth_service.create_user(db, "seller-a", role="seller")


@pytest.fixture
def other_seller(db):
    return auth_service.create_user(db, "seller-b", role="seller")


@pytest.fixture
def make_product(db, seller):
    counter = {"n": 0}

    def _make(quantity: int = 0, seller_id: str | None = None, low_stock_threshold: int | None = None, price: float = 10.0):
        counter["n"] += 1
        data = ProductCreate(
            sku=f"SKU-{counter['n']:03d}",
            name=f"Product {counter['n']}",
            price=price,
            quantity=quantity,
            low_stock_threshold=low_stock_threshold,
        )
        return product_service.create_product(db, data, seller_id=seller_id or seller.id, performed_by=seller.id)

    return _make


@pytest.fixture
def apply(db):
    def _apply(product_id: str, operation_type, quantity, **kwargs):
        return ledger_service.apply_change(
            db,
            StockChangeRequest(product_id=product_id, quantity=quantity, operation_type=operation_type, **kwargs),
        )

    return _apply


@pytest.fixture
def stock_of(session_factory):
    """Stock as persisted, read through a fresh session."""

    def _stock_of(product_id: str) -> int:
        with session_factory() as session:
            return session.get(Product, product_id).quantity

    return _stock_of


@pytest.fixture
def ledger_of(session_factory):
    """Ledger entries for a product in commit order, read through a fresh session."""

    def _ledger_of(product_id: str) -> list[LedgerEntry]:
        with session_factory() as session:
            return (
                session.query(LedgerEntry)
                .filter(LedgerEntry.product_id == product_id)
                .order_by(LedgerEntry.id.asc())
                .all()
            )

    return _ledger_of
