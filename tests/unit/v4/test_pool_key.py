"""Tests for PoolKey canonicalisation and pool id derivation."""

import pytest

from cc0swap.config import BASE
from cc0swap.errors import EncodingError
from cc0swap.v4.pool_key import PoolKey
from tests.helpers import HOOK, POOL_ID, TOKEN, WETH, make_pool_key


class TestCanonicalOrder:
    def test_from_tokens_sorts_currencies(self):
        """Either input order yields the same key with currency0 < currency1."""
        a = PoolKey.from_tokens(TOKEN, WETH, 0x800000, 200, HOOK)
        b = PoolKey.from_tokens(WETH, TOKEN, 0x800000, 200, HOOK)
        assert a == b
        assert a.currency0 == TOKEN
        assert a.currency1 == WETH

    def test_mixed_case_inputs_normalize(self):
        """Checksummed and lowercase inputs give identical keys."""
        key = PoolKey.from_tokens(
            "0x4200000000000000000000000000000000000006",
            TOKEN.upper().replace("0X", "0x"),
            0x800000,
            200,
            HOOK,
        )
        assert key == make_pool_key()

    def test_unsorted_direct_construction_rejected(self):
        """The constructor refuses currency0 >= currency1."""
        with pytest.raises(EncodingError):
            PoolKey(WETH, TOKEN, 0x800000, 200, HOOK)
        with pytest.raises(EncodingError):
            PoolKey(WETH, WETH, 0x800000, 200, HOOK)

    def test_native_currency_sorts_first(self):
        """The zero address (native ETH) is always currency0."""
        key = PoolKey.from_tokens(TOKEN, "0x" + "00" * 20, 3000, 60, "0x" + "00" * 20)
        assert key.currency0 == "0x" + "00" * 20


class TestValidation:
    def test_fee_bounds(self):
        """Static fees above 100% are rejected; the dynamic flag is allowed."""
        make_pool_key(fee=1_000_000)
        make_pool_key(fee=0x800000)
        with pytest.raises(EncodingError):
            make_pool_key(fee=1_000_001)

    def test_tick_spacing_bounds(self):
        with pytest.raises(EncodingError):
            make_pool_key(tick_spacing=0)
        with pytest.raises(EncodingError):
            make_pool_key(tick_spacing=32768)

    def test_invalid_address(self):
        with pytest.raises(EncodingError):
            make_pool_key(hooks="0x1234")


class TestPoolId:
    def test_golden_pool_id(self):
        """keccak256(abi.encode(key)) for the TOKEN/WETH launch pool."""
        assert make_pool_key().pool_id_hex() == POOL_ID

    def test_launch_token_key(self):
        """for_launch_token pairs with WETH using the deployment's pool settings."""
        key = PoolKey.for_launch_token(TOKEN, BASE)
        assert key == make_pool_key()
        assert key.pool_id().hex() == POOL_ID[2:]

    def test_pool_id_depends_on_every_field(self):
        base_id = make_pool_key().pool_id()
        assert make_pool_key(fee=3000).pool_id() != base_id
        assert make_pool_key(tick_spacing=60).pool_id() != base_id
        assert make_pool_key(hooks="0x" + "00" * 20).pool_id() != base_id


class TestDirection:
    def test_zero_for_one(self):
        """Paying currency0 is zeroForOne; paying WETH (currency1) is not."""
        key = make_pool_key()
        assert key.zero_for_one(TOKEN) is True
        assert key.zero_for_one(WETH) is False

    def test_currency_not_in_pool(self):
        key = make_pool_key()
        with pytest.raises(ValueError):
            key.zero_for_one("0x" + "11" * 20)
        assert not key.has_currency("0x" + "11" * 20)

    def test_other_currency(self):
        key = make_pool_key()
        assert key.other_currency(WETH) == TOKEN
        assert key.other_currency(TOKEN) == WETH
