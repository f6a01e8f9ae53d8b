"""
Test staking, lazy yield accrual and claims on unstake.
"""
import unittest
from nft_vault.config import Config, ProtocolConfig
from nft_vault.errors import ErrorCode, InvariantViolation
from nft_vault.ledger import Ledger
from nft_vault.records import RewardAccount
from nft_vault.staking import BLOCKS_PER_YEAR
from nft_vault.state import owner_key

DEPLOYER = b'\xd0' * 20
ALICE = b'\xa1' * 20
BOB = b'\xb0' * 20


def make_ledger(yield_rate_basis_points=50) -> Ledger:
    config = Config.default()
    config.protocol = ProtocolConfig(
        deployer=DEPLOYER.hex(),
        yield_rate_basis_points=yield_rate_basis_points,
    )
    return Ledger(config=config)


class TestStake(unittest.TestCase):
    def setUp(self):
        self.ledger = make_ledger()
        self.ledger.fund(ALICE, 1000)
        self.ledger.mint(ALICE, "ipfs://x", 100)
        self.ledger.advance(7)

    def tearDown(self):
        self.ledger.close()

    def test_stake_sets_fields(self):
        result = self.ledger.stake(ALICE, 1)

        self.assertTrue(result.ok)
        asset = self.ledger.get_metadata(1)
        self.assertTrue(asset.is_staked)
        self.assertEqual(asset.stake_start_height, 7)
        self.assertEqual(
            self.ledger.get_reward_account(1),
            RewardAccount({'accumulated_yield': 0, 'last_claim_height': 7})
        )

    def test_already_staked(self):
        self.ledger.stake(ALICE, 1)
        self.assertEqual(self.ledger.stake(ALICE, 1).error, ErrorCode.ALREADY_STAKED)

    def test_deployer_can_stake(self):
        self.assertTrue(self.ledger.stake(DEPLOYER, 1).ok)

    def test_stake_failure_order(self):
        self.assertEqual(self.ledger.stake(ALICE, 5).error, ErrorCode.NOT_FOUND)
        self.assertEqual(self.ledger.stake(BOB, 1).error, ErrorCode.UNAUTHORIZED)

    def test_unstake_not_staked(self):
        self.assertEqual(self.ledger.unstake(ALICE, 1).error, ErrorCode.NOT_STAKED)

    def test_unstake_failure_order(self):
        self.ledger.stake(ALICE, 1)
        self.assertEqual(self.ledger.unstake(ALICE, 5).error, ErrorCode.NOT_FOUND)
        self.assertEqual(self.ledger.unstake(BOB, 1).error, ErrorCode.UNAUTHORIZED)
        self.assertTrue(self.ledger.get_metadata(1).is_staked)

    def test_default_rate_yields_nothing(self):
        """Test that 50 basis points over 52560 blocks floors to zero per block."""
        self.ledger.stake(ALICE, 1)
        self.ledger.advance(10_000)
        before = self.ledger.balance_of(ALICE)

        self.assertEqual(self.ledger.pending_reward(1), 0)
        self.assertTrue(self.ledger.unstake(ALICE, 1).ok)
        self.assertEqual(self.ledger.balance_of(ALICE), before)

    def test_unstake_resets_state(self):
        self.ledger.stake(ALICE, 1)
        self.ledger.advance(3)
        self.ledger.unstake(ALICE, 1)

        asset = self.ledger.get_metadata(1)
        self.assertFalse(asset.is_staked)
        self.assertEqual(asset.stake_start_height, 0)
        self.assertEqual(
            self.ledger.get_reward_account(1),
            RewardAccount({'accumulated_yield': 0, 'last_claim_height': 10})
        )

    def test_pending_reward_unknown(self):
        """Test that a never-staked or missing asset has no pending reward."""
        self.assertIsNone(self.ledger.pending_reward(1))
        self.assertIsNone(self.ledger.pending_reward(99))
        self.assertIsNone(self.ledger.get_reward_account(1))


class TestYield(unittest.TestCase):
    def setUp(self):
        # One unit per block
        self.ledger = make_ledger(yield_rate_basis_points=BLOCKS_PER_YEAR)
        self.ledger.fund(ALICE, 60_000)
        self.ledger.mint(ALICE, "ipfs://x", 40_000)

    def tearDown(self):
        self.ledger.close()

    def test_full_year_of_yield(self):
        self.assertEqual(self.ledger.custody_balance(), 60_000)
        self.ledger.stake(ALICE, 1)
        self.ledger.advance(BLOCKS_PER_YEAR)

        self.assertEqual(self.ledger.pending_reward(1), BLOCKS_PER_YEAR)
        self.assertTrue(self.ledger.unstake(ALICE, 1).ok)
        self.assertEqual(self.ledger.balance_of(ALICE), BLOCKS_PER_YEAR)
        self.assertEqual(self.ledger.custody_balance(), 60_000 - BLOCKS_PER_YEAR)

    def test_unstake_same_height_pays_nothing(self):
        self.ledger.stake(ALICE, 1)
        self.assertTrue(self.ledger.unstake(ALICE, 1).ok)
        self.assertEqual(self.ledger.balance_of(ALICE), 0)

    def test_claim_pays_current_owner(self):
        """Test that yield follows the asset, not the staker."""
        self.ledger.stake(ALICE, 1)
        self.ledger.advance(10)
        self.ledger.transfer(ALICE, 1, BOB)
        self.ledger.advance(5)

        self.assertTrue(self.ledger.unstake(BOB, 1).ok)
        self.assertEqual(self.ledger.balance_of(BOB), 15)
        self.assertEqual(self.ledger.balance_of(ALICE), 0)

    def test_deployer_unstake_pays_holder(self):
        self.ledger.stake(ALICE, 1)
        self.ledger.advance(4)

        self.assertTrue(self.ledger.unstake(DEPLOYER, 1).ok)
        self.assertEqual(self.ledger.balance_of(ALICE), 4)
        self.assertEqual(self.ledger.balance_of(DEPLOYER), 0)

    def test_restake_cycle(self):
        """Test that a second stake accrues only from its own start height."""
        self.ledger.stake(ALICE, 1)
        self.ledger.advance(5)
        self.ledger.unstake(ALICE, 1)
        self.ledger.advance(3)
        self.ledger.stake(ALICE, 1)
        self.ledger.advance(2)

        self.assertEqual(self.ledger.get_metadata(1).stake_start_height, 8)
        self.assertEqual(self.ledger.pending_reward(1), 2)
        self.ledger.unstake(ALICE, 1)
        self.assertEqual(self.ledger.balance_of(ALICE), 7)
        self.assertEqual(
            self.ledger.get_reward_account(1),
            RewardAccount({'accumulated_yield': 0, 'last_claim_height': 10})
        )


class TestClaimFailures(unittest.TestCase):
    def setUp(self):
        # 1000 units per block against 150 in custody
        self.ledger = make_ledger(yield_rate_basis_points=BLOCKS_PER_YEAR * 1000)
        self.ledger.fund(ALICE, 1000)
        self.ledger.mint(ALICE, "ipfs://x", 100)
        self.ledger.stake(ALICE, 1)

    def tearDown(self):
        self.ledger.close()

    def test_custody_shortfall(self):
        self.ledger.advance(1)
        balance = self.ledger.balance_of(ALICE)

        result = self.ledger.unstake(ALICE, 1)

        self.assertEqual(result.error, ErrorCode.TRANSFER_FAILED)
        self.assertTrue(self.ledger.get_metadata(1).is_staked)
        self.assertEqual(self.ledger.get_metadata(1).stake_start_height, 0)
        self.assertEqual(self.ledger.balance_of(ALICE), balance)
        self.assertEqual(self.ledger.custody_balance(), 150)
        self.assertEqual(
            self.ledger.get_reward_account(1),
            RewardAccount({'accumulated_yield': 0, 'last_claim_height': 0})
        )

    def test_missing_owner_is_fatal(self):
        """Test that a staked asset without an owner raises instead of returning a code."""
        self.ledger.db.delete(owner_key(1))

        with self.assertRaises(InvariantViolation):
            self.ledger.unstake(DEPLOYER, 1)

        self.assertTrue(self.ledger.get_metadata(1).is_staked)
        self.assertEqual(self.ledger.custody_balance(), 150)


if __name__ == '__main__':
    unittest.main()
