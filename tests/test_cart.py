import pytest

from chaintrack.errors import AuthorizationError, InsufficientStockError, NotFoundError, ValidationError
from chaintrack.models import Cart, Order
from chaintrack.services import bulk, cart, units


@pytest.fixture
def shelf(db, bulk_product, manufacturer, seller):
    bulk.produce(db, bulk_product.id, manufacturer.id, 10)
    bulk.dispatch(db, bulk_product.id, manufacturer.id, seller.id, 10)
    return bulk_product


def test_cart_is_created_on_demand(db, buyer):
    first = cart.get_cart(db, buyer)
    second = cart.get_cart(db, buyer)
    assert first.id == second.id
    assert first.status == "open"


def test_only_buyers_have_carts(db, seller):
    with pytest.raises(AuthorizationError):
        cart.get_cart(db, seller)


def test_repeated_adds_merge_quantities(db, shelf, seller, buyer):
    cart.add_item(db, buyer, shelf.id, seller.id, qty=2)
    c = cart.add_item(db, buyer, shelf.id, seller.id, qty=3)
    assert len(c.items) == 1
    assert c.items[0].qty == 5


def test_same_product_from_two_sellers_is_two_lines(db, shelf, manufacturer, seller, other_seller, buyer):
    bulk.produce(db, shelf.id, manufacturer.id, 1)
    bulk.dispatch(db, shelf.id, manufacturer.id, other_seller.id, 1)
    cart.add_item(db, buyer, shelf.id, seller.id, qty=1)
    c = cart.add_item(db, buyer, shelf.id, other_seller.id, qty=1)
    assert sorted(i.seller_id for i in c.items) == sorted([seller.id, other_seller.id])


def test_unit_selections_are_unioned(db, serial_product, seller, buyer, stocked_units):
    cart.add_item(db, buyer, serial_product.id, seller.id, unit_ids=stocked_units[:2])
    c = cart.add_item(db, buyer, serial_product.id, seller.id, unit_ids=stocked_units[1:3])
    item = c.items[0]
    assert item.unit_ids == stocked_units[:3]
    assert item.qty == 3


def test_quantity_and_unit_lines_do_not_mix(db, serial_product, seller, buyer, stocked_units):
    cart.add_item(db, buyer, serial_product.id, seller.id, qty=1)
    with pytest.raises(ValidationError):
        cart.add_item(db, buyer, serial_product.id, seller.id, unit_ids=[stocked_units[0]])


def test_unit_ids_on_bulk_product(db, shelf, seller, buyer):
    with pytest.raises(ValidationError):
        cart.add_item(db, buyer, shelf.id, seller.id, unit_ids=[1])


@pytest.mark.parametrize("qty", [None, 0, -1])
def test_quantity_must_be_positive(db, shelf, seller, buyer, qty):
    with pytest.raises(ValidationError):
        cart.add_item(db, buyer, shelf.id, seller.id, qty=qty)


def test_remove_item(db, shelf, seller, buyer):
    c = cart.add_item(db, buyer, shelf.id, seller.id, qty=1)
    c = cart.remove_item(db, buyer, c.items[0].id)
    assert c.items == []
    with pytest.raises(NotFoundError):
        cart.remove_item(db, buyer, 999)


def test_checkout_places_one_order_per_line(db, shelf, serial_product, seller, buyer, stocked_units):
    cart.add_item(db, buyer, shelf.id, seller.id, qty=4)
    cart.add_item(db, buyer, serial_product.id, seller.id, unit_ids=stocked_units[:2])

    placed = cart.checkout(db, buyer)
    assert len(placed) == 2
    assert bulk.balance(db, shelf.id, seller.id) == 6
    serial_order = next(o for o in placed if o.product_id == serial_product.id)
    assert serial_order.unit_selection == stocked_units[:2]

    # The checked-out cart is closed and a fresh one opens next time
    assert db.query(Cart).filter(Cart.status == "ordered").count() == 1
    assert cart.get_cart(db, buyer).items == []


def test_checkout_is_all_or_nothing(db, shelf, serial_product, seller, buyer, stocked_units):
    cart.add_item(db, buyer, shelf.id, seller.id, qty=4)
    cart.add_item(db, buyer, serial_product.id, seller.id, qty=2)
    # Seller's shelf shrinks below the second line before checkout
    units.recall_defective(db, stocked_units[:4])

    with pytest.raises(InsufficientStockError):
        cart.checkout(db, buyer)

    assert db.query(Order).count() == 0
    assert bulk.balance(db, shelf.id, seller.id) == 10
    assert len(cart.get_cart(db, buyer).items) == 2


def test_checkout_empty_cart(db, buyer):
    with pytest.raises(ValidationError):
        cart.checkout(db, buyer)
