from decimal import Decimal

import pytest

from storefront.domain.errors import InsufficientStock, InvalidQuantity, LineNotFound, ProductNotFound
from storefront.domain.owner import SessionOwner, UserOwner
from storefront.repos.cart_repo import CartRepo


def test_get_or_create_returns_the_same_active_cart(cart_service):
    first = cart_service.get_or_create_active_cart(UserOwner(1))
    second = cart_service.get_or_create_active_cart(UserOwner(1))
    guest = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))

    assert first.id == second.id
    assert guest.id != first.id
    assert first.user_id == 1 and first.session_id is None
    assert guest.session_id == "sess-1" and guest.user_id is None


def test_add_line_snapshots_price_at_add_time(db, cart_service, make_product):
    product = make_product(price="20.00", discount="10", stock=5)
    cart = cart_service.get_or_create_active_cart(UserOwner(1))

    line = cart_service.add_line(cart, product.id, 2)

    product.price = Decimal("30.00")
    product.discount_percentage = Decimal("0")
    db.commit()

    view = cart_service.get_cart_view(UserOwner(1))
    item = view["items"][0]
    assert item["id"] == line.id
    assert item["price_at_time"] == Decimal("20.00")
    assert item["discount_percentage"] == Decimal("10")
    assert item["discounted_price"] == Decimal("18.00")
    assert item["total"] == Decimal("36.00")
    assert view["totals"]["total_savings"] == Decimal("4.00")


def test_adding_same_product_twice_sums_quantity(db, cart_service, make_product):
    product = make_product(stock=5)
    cart = cart_service.get_or_create_active_cart(UserOwner(1))

    cart_service.add_line(cart, product.id, 2)
    cart_service.add_line(cart, product.id, 3)

    lines = CartRepo(db).get_cart_lines(cart.id)
    assert [(l.product_id, l.quantity) for l in lines] == [(product.id, 5)]


def test_second_add_over_stock_fails_and_keeps_first_line(db, cart_service, make_product):
    product = make_product(stock=5)
    cart = cart_service.get_or_create_active_cart(UserOwner(1))
    cart_service.add_line(cart, product.id, 3)

    with pytest.raises(InsufficientStock) as exc:
        cart_service.add_line(cart, product.id, 3)

    assert exc.value.available == 5
    assert exc.value.requested == 6
    db.expire_all()
    assert CartRepo(db).get_cart_lines(cart.id)[0].quantity == 3


def test_add_line_validation(cart_service, make_product):
    product = make_product(stock=2)
    hidden = make_product(title="Hidden", is_active=False)
    cart = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))

    with pytest.raises(InvalidQuantity):
        cart_service.add_line(cart, product.id, 0)
    with pytest.raises(InsufficientStock) as exc:
        cart_service.add_line(cart, product.id, 3)
    assert exc.value.available == 2
    with pytest.raises(ProductNotFound):
        cart_service.add_line(cart, hidden.id, 1)
    with pytest.raises(ProductNotFound):
        cart_service.add_line(cart, 9999, 1)


def test_set_line_quantity(cart_service, make_product):
    product = make_product(stock=4)
    cart = cart_service.get_or_create_active_cart(UserOwner(1))
    line = cart_service.add_line(cart, product.id, 1)

    assert cart_service.set_line_quantity(cart, line.id, 4).quantity == 4

    with pytest.raises(InsufficientStock):
        cart_service.set_line_quantity(cart, line.id, 5)
    with pytest.raises(InvalidQuantity):
        cart_service.set_line_quantity(cart, line.id, 0)


def test_line_of_another_cart_is_not_found(cart_service, make_product):
    product = make_product()
    mine = cart_service.get_or_create_active_cart(UserOwner(1))
    theirs = cart_service.get_or_create_active_cart(UserOwner(2))
    their_line = cart_service.add_line(theirs, product.id, 1)

    with pytest.raises(LineNotFound):
        cart_service.set_line_quantity(mine, their_line.id, 2)
    with pytest.raises(LineNotFound):
        cart_service.remove_line(mine, their_line.id)


def test_remove_line_and_clear(db, cart_service, make_product):
    lamp = make_product(title="Desk Lamp")
    chair = make_product(title="Chair")
    cart = cart_service.get_or_create_active_cart(UserOwner(1))
    line = cart_service.add_line(cart, lamp.id, 1)
    cart_service.add_line(cart, chair.id, 1)

    cart_service.remove_line(cart, line.id)
    with pytest.raises(LineNotFound):
        cart_service.remove_line(cart, line.id)

    cart_service.clear(cart)
    assert CartRepo(db).get_cart_lines(cart.id) == []

    # clearing an empty cart is fine
    cart_service.clear(cart)


def test_merge_caps_at_stock_and_deletes_guest_cart(db, cart_service, make_product):
    product = make_product(stock=10)
    guest = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))
    user_cart = cart_service.get_or_create_active_cart(UserOwner(1))
    cart_service.add_line(guest, product.id, 2)
    cart_service.add_line(user_cart, product.id, 9)
    guest_id = guest.id

    merged = cart_service.merge_cart(guest_id, 1)

    assert merged.id == user_cart.id
    repo = CartRepo(db)
    assert repo.get_cart(guest_id) is None
    assert [l.quantity for l in repo.get_cart_lines(user_cart.id)] == [10]

    # retry with the deleted guest cart is a no-op
    assert cart_service.merge_cart(guest_id, 1) is None
    assert [l.quantity for l in repo.get_cart_lines(user_cart.id)] == [10]


def test_merge_copies_guest_line_with_its_snapshot(db, cart_service, make_product):
    product = make_product(price="10.00", discount="5", stock=10)
    guest = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))
    cart_service.add_line(guest, product.id, 2)

    product.price = Decimal("12.00")
    product.discount_percentage = Decimal("0")
    db.commit()

    user_cart = cart_service.merge("sess-1", 1)

    lines = CartRepo(db).get_cart_lines(user_cart.id)
    assert len(lines) == 1
    assert lines[0].quantity == 2
    assert lines[0].price_at_time == Decimal("10.00")
    assert lines[0].discount_at_time == Decimal("5")


def test_merge_by_session_is_idempotent(db, cart_service, make_product):
    product = make_product(stock=10)
    guest = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))
    cart_service.add_line(guest, product.id, 3)

    cart_service.merge("sess-1", 1)
    assert cart_service.merge("sess-1", 1) is None

    user_cart = CartRepo(db).get_active_cart(UserOwner(1))
    assert [l.quantity for l in CartRepo(db).get_cart_lines(user_cart.id)] == [3]


def test_merge_skips_when_another_request_holds_the_lock(db, cart_service, lock_service, make_product):
    product = make_product(stock=10)
    guest = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))
    cart_service.add_line(guest, product.id, 3)
    lock_service.held.add(guest.id)

    assert cart_service.merge_cart(guest.id, 1) is None
    assert CartRepo(db).get_cart(guest.id) is not None
    assert CartRepo(db).get_active_cart(UserOwner(1)) is None


def test_merge_releases_lock(cart_service, lock_service, make_product):
    product = make_product(stock=10)
    guest = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))
    cart_service.add_line(guest, product.id, 1)

    cart_service.merge_cart(guest.id, 1)

    assert lock_service.held == set()


@pytest.fixture
def cart_created_elsewhere(monkeypatch, session_factory, cart_service):
    """Another request commits the owner's cart between our read and our insert."""

    def _arm(owner):
        original = cart_service.repo.get_active_cart
        raced = []

        def get_active_cart(who):
            found = original(who)
            if found is None and who == owner and not raced:
                with session_factory() as other:
                    other_repo = CartRepo(other)
                    raced.append(other_repo.create_cart(owner).id)
                    other_repo.commit()
            return found

        monkeypatch.setattr(cart_service.repo, "get_active_cart", get_active_cart)
        return raced

    return _arm


def test_concurrent_first_request_gets_the_winning_cart(db, cart_service, cart_created_elsewhere):
    raced = cart_created_elsewhere(UserOwner(7))

    cart = cart_service.get_or_create_active_cart(UserOwner(7))

    assert cart.id == raced[0]
    assert CartRepo(db).get_active_cart(UserOwner(7)).id == raced[0]


def test_merge_survives_a_concurrently_created_user_cart(db, cart_service, cart_created_elsewhere, make_product):
    product = make_product(stock=10)
    guest = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))
    cart_service.add_line(guest, product.id, 2)
    guest_id = guest.id
    raced = cart_created_elsewhere(UserOwner(7))

    merged = cart_service.merge_cart(guest_id, 7)

    assert merged.id == raced[0]
    repo = CartRepo(db)
    assert repo.get_cart(guest_id) is None
    assert [(l.product_id, l.quantity) for l in repo.get_cart_lines(raced[0])] == [(product.id, 2)]


def test_merge_keeps_user_line_when_product_sold_out(db, cart_service, make_product):
    product = make_product(stock=10)
    guest = cart_service.get_or_create_active_cart(SessionOwner("sess-1"))
    user_cart = cart_service.get_or_create_active_cart(UserOwner(1))
    cart_service.add_line(guest, product.id, 1)
    cart_service.add_line(user_cart, product.id, 2)
    guest_id = guest.id

    product.stock = 0
    db.commit()

    merged = cart_service.merge_cart(guest_id, 1)

    assert merged.id == user_cart.id
    repo = CartRepo(db)
    assert repo.get_cart(guest_id) is None
    assert [(l.product_id, l.quantity) for l in repo.get_cart_lines(user_cart.id)] == [(product.id, 2)]
