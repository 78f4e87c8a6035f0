import pytest

from app.errors import EmptyCart, InvalidCustomer, InvalidInput
from app.order_assembler import CartLine, CustomerInfo, assemble

CUSTOMER = CustomerInfo(name="Amina Diallo", email="amina@example.com")


def line(product_id=1, price=10000, qty=1, rate=30, vendor_id=10, title="Item"):
    return CartLine(
        product_id=product_id,
        title=title,
        unit_price=price,
        quantity=qty,
        commission_rate=rate,
        vendor_id=vendor_id,
    )


def test_empty_cart():
    with pytest.raises(EmptyCart):
        assemble([], CUSTOMER)


@pytest.mark.parametrize(
    "customer",
    [
        CustomerInfo(name="", email="a@example.com"),
        CustomerInfo(name="   ", email="a@example.com"),
        CustomerInfo(name="Amina", email=""),
    ],
)
def test_customer_name_and_email_required(customer):
    with pytest.raises(InvalidCustomer):
        assemble([line()], customer)


def test_quantity_must_be_positive():
    with pytest.raises(InvalidInput):
        assemble([line(qty=0)], CUSTOMER)


def test_price_must_not_be_negative():
    with pytest.raises(InvalidInput):
        assemble([line(price=-100)], CUSTOMER)


def test_single_line_draft():
    draft = assemble([line(price=10000, qty=2, rate=30)], CUSTOMER)

    assert draft.total_amount == 20000
    assert len(draft.items) == 1
    assert draft.items[0].commission_amount == 6000
    assert draft.items[0].vendor_net == 14000
    assert draft.total_commission == 6000


def test_total_is_exact_sum_of_line_subtotals():
    lines = [
        line(product_id=1, price=333, qty=3, rate=15, vendor_id=10),
        line(product_id=2, price=2599, qty=7, rate=12, vendor_id=11),
        line(product_id=3, price=1, qty=1, rate=50, vendor_id=10),
        line(product_id=4, price=0, qty=4, rate=20, vendor_id=12),
    ]
    draft = assemble(lines, CUSTOMER)

    assert draft.total_amount == 333 * 3 + 2599 * 7 + 1 + 0
    assert draft.total_amount == sum(i.unit_price * i.quantity for i in draft.items)
    assert [i.commission_amount for i in draft.items] == [150, 312 * 7, 1, 0]
    assert draft.vendor_ids == (10, 11, 12)


def test_customer_fields_are_trimmed():
    draft = assemble([line()], CustomerInfo(name="  Amina ", email=" amina@example.com ", phone="  "))
    assert draft.customer.name == "Amina"
    assert draft.customer.email == "amina@example.com"
    assert draft.customer.phone is None


def test_each_draft_gets_its_own_id():
    a = assemble([line()], CUSTOMER)
    b = assemble([line()], CUSTOMER)
    assert a.draft_id != b.draft_id
