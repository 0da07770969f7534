import os
import unittest
from datetime import timedelta
from unittest.mock import patch

from fakes import make_config

from stakedraw.config import RaffleConfig


class RaffleConfigTests(unittest.TestCase):
    def test_defaults(self):
        config = RaffleConfig(
            entrance_fee=100,
            interval=timedelta(minutes=5),
            key_hash="0xabc",
            subscription_id=1,
        )
        self.assertEqual(config.request_confirmations, 3)
        self.assertEqual(config.callback_gas_limit, 500_000)
        self.assertEqual(config.num_words, 1)

    def test_is_immutable(self):
        config = make_config()
        with self.assertRaises(AttributeError):
            config.entrance_fee = 1  # type: ignore[misc]

    def test_validation(self):
        with self.assertRaises(ValueError):
            make_config(entrance_fee=-1)
        with self.assertRaises(TypeError):
            make_config(entrance_fee=1.5)
        with self.assertRaises(TypeError):
            make_config(interval=30)
        with self.assertRaises(ValueError):
            make_config(interval=timedelta(seconds=-1))
        with self.assertRaises(ValueError):
            make_config(key_hash="")
        with self.assertRaises(ValueError):
            make_config(callback_gas_limit=0)
        with self.assertRaises(ValueError):
            make_config(num_words=2)


@patch("stakedraw.config.load_dotenv")
class RaffleConfigFromEnvTests(unittest.TestCase):
    def test_reads_environment(self, mock_load_dotenv):
        env = {
            "RAFFLE_ENTRANCE_FEE": "10000000000000000",
            "RAFFLE_INTERVAL_SECONDS": "30",
            "VRF_KEY_HASH": "0x787d74caea",
            "VRF_SUBSCRIPTION_ID": "1234",
            "VRF_CALLBACK_GAS_LIMIT": "250000",
        }
        with patch.dict(os.environ, env, clear=True):
            config = RaffleConfig.from_env()

        mock_load_dotenv.assert_called_once_with(None)
        self.assertEqual(config.entrance_fee, 10_000_000_000_000_000)
        self.assertEqual(config.interval, timedelta(seconds=30))
        self.assertEqual(config.key_hash, "0x787d74caea")
        self.assertEqual(config.subscription_id, 1234)
        self.assertEqual(config.request_confirmations, 3)
        self.assertEqual(config.callback_gas_limit, 250_000)

    def test_missing_variable(self, mock_load_dotenv):
        with patch.dict(os.environ, {"RAFFLE_ENTRANCE_FEE": "1"}, clear=True):
            with self.assertRaises(ValueError) as ctx:
                RaffleConfig.from_env()
        self.assertIn("RAFFLE_INTERVAL_SECONDS", str(ctx.exception))

    def test_non_integer_variable(self, mock_load_dotenv):
        env = {
            "RAFFLE_ENTRANCE_FEE": "ten",
            "RAFFLE_INTERVAL_SECONDS": "30",
            "VRF_KEY_HASH": "0xabc",
            "VRF_SUBSCRIPTION_ID": "1",
        }
        with patch.dict(os.environ, env, clear=True):
            with self.assertRaises(ValueError) as ctx:
                RaffleConfig.from_env()
        self.assertIn("RAFFLE_ENTRANCE_FEE", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
