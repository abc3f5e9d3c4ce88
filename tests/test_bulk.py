import pytest

from chaintrack.errors import (
    AuthorizationError, InsufficientStockError, NotFoundError, PreconditionError, ValidationError,
)
from chaintrack.models import MovementKind
from chaintrack.services import bulk


class TestTransfer:

    def test_produce_and_dispatch(self, db, bulk_product, manufacturer, seller):
        # Manufacturer holds exactly 5, then ships all of them
        bulk.produce(db, bulk_product.id, manufacturer.id, 5)
        bulk.dispatch(db, bulk_product.id, manufacturer.id, seller.id, 5)
        assert bulk.balance(db, bulk_product.id, seller.id) == 5
        assert bulk.balance(db, bulk_product.id, manufacturer.id) == 0

    def test_row_is_created_lazily(self, db, bulk_product, manufacturer, seller):
        assert bulk.list_stock(db, product_id=bulk_product.id, include_empty=True) == []
        bulk.produce(db, bulk_product.id, manufacturer.id, 3)
        rows = bulk.list_stock(db, product_id=bulk_product.id)
        assert [(r.owner_id, r.quantity) for r in rows] == [(manufacturer.id, 3)]

    def test_overdraw_fails_without_partial_debit(self, db, bulk_product, manufacturer, seller):
        bulk.produce(db, bulk_product.id, manufacturer.id, 3)
        with pytest.raises(InsufficientStockError) as exc:
            bulk.transfer(db, bulk_product.id, manufacturer.id, seller.id, 4)
        assert exc.value.context["available"] == 3
        assert bulk.balance(db, bulk_product.id, manufacturer.id) == 3
        assert bulk.balance(db, bulk_product.id, seller.id) == 0
        assert len(bulk.list_movements(db, product_id=bulk_product.id)) == 1

    def test_missing_source_row(self, db, bulk_product, seller):
        with pytest.raises(InsufficientStockError):
            bulk.transfer(db, bulk_product.id, seller.id, None, 1)

    def test_sale_leaves_the_system(self, db, bulk_product, manufacturer, seller):
        bulk.produce(db, bulk_product.id, manufacturer.id, 5)
        bulk.dispatch(db, bulk_product.id, manufacturer.id, seller.id, 5)
        movement = bulk.transfer(db, bulk_product.id, seller.id, None, 2)
        assert movement.kind == MovementKind.SALE
        assert bulk.balance(db, bulk_product.id, seller.id) == 3
        t = bulk.totals(db, bulk_product.id)
        assert (t.on_hand, t.produced, t.sold) == (3, 5, 2)
        assert t.balanced

    def test_recall_back_to_manufacturer(self, db, bulk_product, manufacturer, seller):
        bulk.produce(db, bulk_product.id, manufacturer.id, 5)
        bulk.dispatch(db, bulk_product.id, manufacturer.id, seller.id, 5)
        bulk.recall(db, bulk_product.id, seller.id, manufacturer.id, 2, reason="Batch 7 faulty")
        assert bulk.balance(db, bulk_product.id, seller.id) == 3
        assert bulk.balance(db, bulk_product.id, manufacturer.id) == 2
        assert bulk.totals(db, bulk_product.id).balanced

    @pytest.mark.parametrize("target", ["buyer", "manufacturer", "missing"])
    def test_dispatch_only_to_sellers(self, db, bulk_product, manufacturer, buyer, target):
        owner_id = {"buyer": buyer.id, "manufacturer": manufacturer.id, "missing": 4242}[target]
        bulk.produce(db, bulk_product.id, manufacturer.id, 5)
        with pytest.raises(NotFoundError):
            bulk.dispatch(db, bulk_product.id, manufacturer.id, owner_id, 3)
        assert bulk.balance(db, bulk_product.id, manufacturer.id) == 5
        if target != "manufacturer":
            assert bulk.balance(db, bulk_product.id, owner_id) == 0
        assert len(bulk.list_movements(db, product_id=bulk_product.id)) == 1

    def test_recall_only_from_sellers(self, db, bulk_product, manufacturer, buyer):
        bulk.produce(db, bulk_product.id, manufacturer.id, 5)
        with pytest.raises(NotFoundError):
            bulk.recall(db, bulk_product.id, buyer.id, manufacturer.id, 1)
        with pytest.raises(NotFoundError):
            bulk.recall(db, bulk_product.id, 4242, manufacturer.id, 1)

    @pytest.mark.parametrize("qty", [0, -1, 1.5, True, "3"])
    def test_quantity_must_be_positive_integer(self, db, bulk_product, manufacturer, qty):
        with pytest.raises(ValidationError):
            bulk.transfer(db, bulk_product.id, None, manufacturer.id, qty)

    def test_endpoints(self, db, bulk_product, manufacturer):
        with pytest.raises(ValidationError):
            bulk.transfer(db, bulk_product.id, None, None, 1)
        with pytest.raises(ValidationError):
            bulk.transfer(db, bulk_product.id, manufacturer.id, manufacturer.id, 1)

    def test_serialized_products_are_refused(self, db, serial_product, manufacturer):
        with pytest.raises(PreconditionError):
            bulk.produce(db, serial_product.id, manufacturer.id, 1)

    def test_only_the_maker_produces(self, db, bulk_product, other_manufacturer):
        with pytest.raises(AuthorizationError):
            bulk.produce(db, bulk_product.id, other_manufacturer.id, 1)

    def test_movements_by_owner(self, db, bulk_product, manufacturer, seller, other_seller):
        bulk.produce(db, bulk_product.id, manufacturer.id, 10)
        bulk.dispatch(db, bulk_product.id, manufacturer.id, seller.id, 4)
        bulk.dispatch(db, bulk_product.id, manufacturer.id, other_seller.id, 6)
        kinds = [m.kind for m in bulk.list_movements(db, owner_id=seller.id)]
        assert kinds == [MovementKind.DISPATCH]
        assert len(bulk.list_movements(db, owner_id=manufacturer.id)) == 3
        assert len(bulk.list_movements(db, kind=MovementKind.PRODUCE)) == 1


class TestConcurrentWriters:
    """Two sessions on a file database, interleaved by hand."""

    @pytest.fixture
    def sessions(self, tmp_path):
        from sqlalchemy import create_engine
        from sqlalchemy.orm import sessionmaker
        from chaintrack.database import Base

        engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
        Base.metadata.create_all(bind=engine)
        make_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        first, second = make_session(), make_session()
        try:
            yield first, second
        finally:
            first.close()
            second.close()
            engine.dispose()

    def test_duplicate_stock_row_is_a_concurrency_error(self, sessions):
        from sqlalchemy import event
        from chaintrack.errors import ConcurrencyError
        from chaintrack.models import Role
        from chaintrack.services import catalog
        from tests.conftest import make_user

        first, second = sessions
        maker = make_user(first, Role.MANUFACTURER, "maker@example.com")
        product = catalog.create_product(first, name="Sand 25kg", manufacturer_id=maker.id, is_serialized=False)
        maker_id, product_id = maker.id, product.id

        # The other writer creates the (product, maker) row just before this one flushes
        def _race(session, flush_context, instances):
            bulk.produce(first, product_id, maker_id, 2)

        event.listen(second, "before_flush", _race, once=True)

        with pytest.raises(ConcurrencyError):
            bulk.produce(second, product_id, maker_id, 5)

        # The loser left nothing behind and its session is usable again
        assert bulk.balance(second, product_id, maker_id) == 2
        assert len(bulk.list_movements(second, product_id=product_id)) == 1
        bulk.produce(second, product_id, maker_id, 5)
        assert bulk.balance(second, product_id, maker_id) == 7
        assert bulk.totals(second, product_id).balanced
