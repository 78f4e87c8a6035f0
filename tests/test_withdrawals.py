import pytest

from app import settlement_service, wallet_service, withdrawal_service
from app.errors import (
    InsufficientFunds,
    InvalidAmount,
    InvalidInput,
    InvalidPaymentMethod,
    InvalidStateTransition,
    NotFound,
)
from app.order_assembler import CartLine, CustomerInfo, assemble
from models.profiles import Profile
from models.transactions import Transaction, TransactionType
from models.withdrawals import Withdrawal, WithdrawalMethod, WithdrawalStatus


@pytest.fixture
def funded(db, vendor, product):
    """Vendor with 14000 earned from one settled sale."""
    line = CartLine(
        product_id=product.id,
        title=product.title,
        unit_price=int(product.price),
        quantity=2,
        commission_rate=int(product.commission),
        vendor_id=vendor.id,
    )
    settlement_service.settle(db, assemble([line], CustomerInfo(name="Buyer", email="b@example.com")))
    assert wallet_service.get_balance(db, vendor.id) == 14000
    return vendor


def test_request_does_not_debit(db, funded):
    w = withdrawal_service.request_withdrawal(
        db, user_id=funded.id, amount=5000, method="bank", details="GB00 1234 5678"
    )

    assert w.status == WithdrawalStatus.PENDING
    assert w.payment_method == WithdrawalMethod.BANK
    assert wallet_service.get_balance(db, funded.id) == 14000
    assert db.query(Transaction).filter(Transaction.type == TransactionType.WITHDRAWAL).count() == 0


def test_request_over_balance_is_rejected(db, funded):
    with pytest.raises(InsufficientFunds):
        withdrawal_service.request_withdrawal(
            db, user_id=funded.id, amount=14001, method="mobile", details="+233 20 000 0000"
        )
    assert db.query(Withdrawal).count() == 0
    assert db.query(Transaction).filter(Transaction.type == TransactionType.WITHDRAWAL).count() == 0


@pytest.mark.parametrize("amount", [0, -100, True, 10.5])
def test_request_invalid_amount(db, funded, amount):
    with pytest.raises(InvalidAmount):
        withdrawal_service.request_withdrawal(
            db, user_id=funded.id, amount=amount, method="bank", details="acct"
        )


def test_request_invalid_method_and_details(db, funded):
    with pytest.raises(InvalidPaymentMethod):
        withdrawal_service.request_withdrawal(db, user_id=funded.id, amount=100, method="crypto", details="x")
    with pytest.raises(InvalidInput):
        withdrawal_service.request_withdrawal(db, user_id=funded.id, amount=100, method="card", details="   ")


def test_request_unknown_user(db):
    with pytest.raises(NotFound):
        withdrawal_service.request_withdrawal(db, user_id=424242, amount=100, method="bank", details="x")


def test_approve_debits_and_writes_ledger(db, funded):
    w = withdrawal_service.request_withdrawal(db, user_id=funded.id, amount=5000, method="card", details="4111")

    approved = withdrawal_service.approve_withdrawal(db, w.id, note="paid out")

    assert approved.status == WithdrawalStatus.APPROVED
    assert approved.processed_at is not None
    assert wallet_service.get_balance(db, funded.id) == 9000

    debits = db.query(Transaction).filter(Transaction.type == TransactionType.WITHDRAWAL).all()
    assert len(debits) == 1
    assert debits[0].amount == 5000
    assert debits[0].signed_amount == -5000
    assert debits[0].reference_id == str(w.id)

    assert wallet_service.audit(db, funded.id).consistent
    assert wallet_service.ledger_balance(db, funded.id) == 9000


def test_approval_rechecks_funds(db, funded):
    first = withdrawal_service.request_withdrawal(db, user_id=funded.id, amount=10000, method="bank", details="x")
    second = withdrawal_service.request_withdrawal(db, user_id=funded.id, amount=10000, method="bank", details="x")

    withdrawal_service.approve_withdrawal(db, first.id)
    with pytest.raises(InsufficientFunds):
        withdrawal_service.approve_withdrawal(db, second.id)

    db.refresh(second)
    assert second.status == WithdrawalStatus.PENDING
    assert db.query(Profile.wallet_balance).filter(Profile.id == funded.id).scalar() == 4000
    assert wallet_service.audit(db, funded.id).consistent


def test_reject_moves_no_money(db, funded):
    w = withdrawal_service.request_withdrawal(db, user_id=funded.id, amount=5000, method="bank", details="x")

    rejected = withdrawal_service.reject_withdrawal(db, w.id, note="details do not match")

    assert rejected.status == WithdrawalStatus.REJECTED
    assert rejected.note == "details do not match"
    assert wallet_service.get_balance(db, funded.id) == 14000


def test_decisions_are_final(db, funded):
    w = withdrawal_service.request_withdrawal(db, user_id=funded.id, amount=1000, method="bank", details="x")
    withdrawal_service.approve_withdrawal(db, w.id)

    with pytest.raises(InvalidStateTransition):
        withdrawal_service.approve_withdrawal(db, w.id)
    with pytest.raises(InvalidStateTransition):
        withdrawal_service.reject_withdrawal(db, w.id)
    with pytest.raises(NotFound):
        withdrawal_service.approve_withdrawal(db, 999999)

    assert wallet_service.get_balance(db, funded.id) == 13000


def test_wallet_credit_rejects_debit_types(db, vendor):
    with pytest.raises(InvalidAmount):
        wallet_service.credit(db, user_id=vendor.id, amount=100, tx_type=TransactionType.WITHDRAWAL)
    with pytest.raises(InvalidAmount):
        wallet_service.debit(db, user_id=vendor.id, amount=100, tx_type=TransactionType.SALE)
