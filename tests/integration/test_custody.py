import pytest

from zdte.core.errors import InsufficientBalance, InvalidParam
from zdte.integration.custody import InMemoryCustody
from zdte.integration.interfaces import AssetTransfer, OptionPricing, PriceOracle, StaticPriceOracle


def test_transfer_in_and_out():
    c = InMemoryCustody(vault_account="v")
    c.fund("alice", "USDC", 100)
    c.transfer_in("USDC", "alice", 60)
    c.transfer_out("USDC", "bob", 25)
    assert c.balance_of("alice", "USDC") == 40
    assert c.balance_of("v", "USDC") == 35
    assert c.balance_of("bob", "USDC") == 25


def test_overdraft_moves_nothing():
    c = InMemoryCustody()
    c.fund("alice", "USDC", 10)
    with pytest.raises(InsufficientBalance, match="exceeds balance"):
        c.transfer_in("USDC", "alice", 11)
    assert c.balance_of("alice", "USDC") == 10
    assert c.balance_of(c.vault_account, "USDC") == 0


def test_vault_cannot_pay_what_it_does_not_hold():
    c = InMemoryCustody()
    with pytest.raises(InsufficientBalance):
        c.transfer_out("WETH", "alice", 1)


@pytest.mark.parametrize("amount", [-1, True, 1.5])
def test_bad_amounts(amount):
    c = InMemoryCustody()
    c.fund("alice", "USDC", 10)
    with pytest.raises(InvalidParam):
        c.transfer_in("USDC", "alice", amount)


def test_interfaces_are_abstract():
    with pytest.raises(NotImplementedError):
        AssetTransfer().transfer_in("USDC", "alice", 1)
    with pytest.raises(NotImplementedError):
        PriceOracle().get_spot_price()
    with pytest.raises(NotImplementedError):
        OptionPricing().price(1, 1, 1, 1, 1, False)


def test_static_oracle_rejects_bad_prices():
    oracle = StaticPriceOracle(5)
    with pytest.raises(ValueError):
        oracle.update_price(0)
    assert oracle.get_spot_price() == 5
