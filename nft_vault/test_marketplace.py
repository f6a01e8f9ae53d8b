"""
Test fixed-price listings, purchases and fee routing.
"""
import unittest
from nft_vault.config import Config, ProtocolConfig
from nft_vault.errors import ErrorCode, PrimitiveError
from nft_vault.ledger import Ledger
from nft_vault.primitives import OwnershipLedger
from nft_vault.records import Listing

DEPLOYER = b'\xd0' * 20
ALICE = b'\xa1' * 20
BOB = b'\xb0' * 20
CAROL = b'\xc0' * 20


class BrokenOwnership(OwnershipLedger):
    """Ownership ledger that refuses every transfer."""

    def transfer(self, asset_id, sender, recipient):
        raise PrimitiveError("ownership ledger unavailable")


def make_ledger(**kwargs) -> Ledger:
    config = Config.default()
    config.protocol = ProtocolConfig(deployer=DEPLOYER.hex())
    return Ledger(config=config, **kwargs)


class TestMarketplace(unittest.TestCase):
    def setUp(self):
        self.ledger = make_ledger()
        self.ledger.fund(ALICE, 1000)
        self.ledger.fund(BOB, 1000)
        self.asset_id = self.ledger.mint(ALICE, "ipfs://art", 100).value
        self.alice_start = self.ledger.balance_of(ALICE)

    def tearDown(self):
        self.ledger.close()

    def test_list_creates_active_listing(self):
        result = self.ledger.list(ALICE, self.asset_id, 500)

        self.assertTrue(result.ok)
        listing = self.ledger.get_listing(self.asset_id)
        self.assertEqual(listing, Listing({'price': 500, 'seller': ALICE, 'is_active': True}))

    def test_end_to_end_sale(self):
        """Test that the seller gets the price and the buyer pays the fee on top."""
        self.ledger.list(ALICE, self.asset_id, 500)
        result = self.ledger.purchase(BOB, self.asset_id)

        self.assertTrue(result.ok)
        self.assertEqual(self.ledger.balance_of(ALICE), self.alice_start + 500)
        self.assertEqual(self.ledger.balance_of(DEPLOYER), 12)
        self.assertEqual(self.ledger.balance_of(BOB), 488)
        self.assertEqual(self.ledger.owner_of(self.asset_id), BOB)
        self.assertEqual(
            self.ledger.get_listing(self.asset_id),
            Listing({'price': 0, 'seller': ALICE, 'is_active': False})
        )

    def test_sale_conserves_currency(self):
        total = sum(self.ledger.balance_of(a) for a in (ALICE, BOB, DEPLOYER)) + self.ledger.custody_balance()
        self.ledger.list(ALICE, self.asset_id, 500)
        self.ledger.purchase(BOB, self.asset_id)
        after = sum(self.ledger.balance_of(a) for a in (ALICE, BOB, DEPLOYER)) + self.ledger.custody_balance()
        self.assertEqual(total, after)

    def test_second_purchase_fails(self):
        self.ledger.list(ALICE, self.asset_id, 500)
        self.ledger.purchase(BOB, self.asset_id)
        self.ledger.fund(CAROL, 1000)

        result = self.ledger.purchase(CAROL, self.asset_id)
        self.assertEqual(result.error, ErrorCode.LISTING_NOT_FOUND)
        self.assertEqual(self.ledger.balance_of(CAROL), 1000)

    def test_listing_exists(self):
        self.ledger.list(ALICE, self.asset_id, 500)
        result = self.ledger.list(ALICE, self.asset_id, 600)

        self.assertEqual(result.error, ErrorCode.LISTING_EXISTS)
        self.assertEqual(self.ledger.get_listing(self.asset_id).price, 500)

    def test_relisting_after_sale_is_blocked(self):
        """Test that an inactive listing record still blocks a new listing."""
        self.ledger.list(ALICE, self.asset_id, 500)
        self.ledger.purchase(BOB, self.asset_id)

        result = self.ledger.list(BOB, self.asset_id, 800)
        self.assertEqual(result.error, ErrorCode.LISTING_EXISTS)

    def test_list_requires_authorization(self):
        self.assertEqual(self.ledger.list(BOB, self.asset_id, 500).error, ErrorCode.UNAUTHORIZED)

    def test_list_unknown_asset_is_unauthorized(self):
        self.assertEqual(self.ledger.list(DEPLOYER, 42, 500).error, ErrorCode.UNAUTHORIZED)

    def test_list_zero_price(self):
        self.assertEqual(self.ledger.list(ALICE, self.asset_id, 0).error, ErrorCode.INVALID_PARAMETERS)
        self.assertIsNone(self.ledger.get_listing(self.asset_id))

    def test_price_beyond_64_bits(self):
        """Test that an unencodable price is rejected with a result code."""
        result = self.ledger.list(ALICE, self.asset_id, 2 ** 64)

        self.assertEqual(result.error, ErrorCode.INVALID_PARAMETERS)
        self.assertIsNone(self.ledger.get_listing(self.asset_id))
        self.assertTrue(self.ledger.list(ALICE, self.asset_id, 2 ** 64 - 1).ok)

    def test_purchase_without_listing(self):
        self.assertEqual(self.ledger.purchase(BOB, self.asset_id).error, ErrorCode.LISTING_NOT_FOUND)
        self.assertEqual(self.ledger.purchase(BOB, 99).error, ErrorCode.LISTING_NOT_FOUND)

    def test_insufficient_funds(self):
        self.ledger.list(ALICE, self.asset_id, 5000)
        result = self.ledger.purchase(BOB, self.asset_id)

        self.assertEqual(result.error, ErrorCode.INSUFFICIENT_FUNDS)
        self.assertEqual(self.ledger.balance_of(BOB), 1000)
        self.assertTrue(self.ledger.get_listing(self.asset_id).is_active)

    def test_balance_covers_price_but_not_fee(self):
        """Test that a failed fee payment rolls back the seller payment too."""
        self.ledger.list(ALICE, self.asset_id, 1000)
        result = self.ledger.purchase(BOB, self.asset_id)

        self.assertEqual(result.error, ErrorCode.TRANSFER_FAILED)
        self.assertEqual(self.ledger.balance_of(BOB), 1000)
        self.assertEqual(self.ledger.balance_of(ALICE), self.alice_start)
        self.assertEqual(self.ledger.balance_of(DEPLOYER), 0)
        self.assertEqual(self.ledger.owner_of(self.asset_id), ALICE)
        self.assertTrue(self.ledger.get_listing(self.asset_id).is_active)

    def test_seller_no_longer_holds_asset(self):
        """Test that a stale listing fails at the ownership step with nothing paid."""
        self.ledger.list(ALICE, self.asset_id, 500)
        self.ledger.transfer(ALICE, self.asset_id, CAROL)

        result = self.ledger.purchase(BOB, self.asset_id)

        self.assertEqual(result.error, ErrorCode.TRANSFER_FAILED)
        self.assertEqual(self.ledger.balance_of(BOB), 1000)
        self.assertEqual(self.ledger.balance_of(ALICE), self.alice_start)
        self.assertEqual(self.ledger.owner_of(self.asset_id), CAROL)

    def test_listing_by_deployer_cannot_settle(self):
        """Test that a deployer-created listing names the deployer as seller."""
        self.ledger.list(DEPLOYER, self.asset_id, 500)
        self.assertEqual(self.ledger.get_listing(self.asset_id).seller, DEPLOYER)

        result = self.ledger.purchase(BOB, self.asset_id)
        self.assertEqual(result.error, ErrorCode.TRANSFER_FAILED)
        self.assertEqual(self.ledger.balance_of(DEPLOYER), 0)

    def test_quote(self):
        self.assertIsNone(self.ledger.quote(self.asset_id))
        self.ledger.list(ALICE, self.asset_id, 500)
        self.assertEqual(self.ledger.quote(self.asset_id), (500, 12))

    def test_small_price_has_no_fee(self):
        self.ledger.list(ALICE, self.asset_id, 39)
        self.assertEqual(self.ledger.quote(self.asset_id), (39, 0))

        self.assertTrue(self.ledger.purchase(BOB, self.asset_id).ok)
        self.assertEqual(self.ledger.balance_of(BOB), 961)
        self.assertEqual(self.ledger.balance_of(DEPLOYER), 0)


class TestPurchaseRollback(unittest.TestCase):
    def setUp(self):
        self.ledger = make_ledger(ownership_factory=BrokenOwnership)
        self.ledger.fund(ALICE, 1000)
        self.ledger.fund(BOB, 1000)
        self.ledger.mint(ALICE, "ipfs://art", 100)
        self.ledger.list(ALICE, 1, 500)

    def tearDown(self):
        self.ledger.close()

    def test_ownership_failure_reverts_payments(self):
        alice_before = self.ledger.balance_of(ALICE)
        result = self.ledger.purchase(BOB, 1)

        self.assertEqual(result.error, ErrorCode.TRANSFER_FAILED)
        self.assertEqual(self.ledger.balance_of(BOB), 1000)
        self.assertEqual(self.ledger.balance_of(ALICE), alice_before)
        self.assertEqual(self.ledger.balance_of(DEPLOYER), 0)
        self.assertEqual(self.ledger.owner_of(1), ALICE)
        self.assertTrue(self.ledger.get_listing(1).is_active)


if __name__ == '__main__':
    unittest.main()
