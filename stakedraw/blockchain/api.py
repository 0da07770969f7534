import os
import logging
from urllib.parse import urljoin
from dotenv import load_dotenv
from .utils import open_session, get_jwt_token
from typing import Any, Optional, Mapping

logger = logging.getLogger(__name__)


class ChainClient:
    def __init__(self, base_fqdn: Optional[str] = None, timeout: int = 45):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("CHAIN_BASE_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'CHAIN_BASE_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        session_info = open_session()
        if not session_info or len(session_info) != 2:
            raise ValueError("open_session() must return (session, csrf_token)")
        self.session, self.csrf = session_info
        self.jwt = get_jwt_token(self.session)
        self.timeout = timeout

    # -------- headers --------
    @property
    def auth_headers(self) -> Mapping[str, str]:
        return {"Accept": "application/json", "Authorization": f"Bearer {self.jwt}"}

    @property
    def auth_csrf_headers(self) -> Mapping[str, str]:
        return {**self.auth_headers, "X-CSRFTOKEN": self.csrf}

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=headers or self.auth_headers,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    @property
    def wallet_balance(self) -> dict:
        return self._request("GET", "/api/v1/raffle/wallet/balance")

    def request_random_words(
        self,
        key_hash: str,
        request_confirmations: int,
        callback_gas_limit: int,
        subscription_id: int,
        num_words: int = 1,
    ) -> dict:
        return self._request(
            "POST",
            "/api/v1/vrf/requests",
            headers=self.auth_csrf_headers,
            json={
                "key_hash": key_hash,
                "request_confirmations": request_confirmations,
                "callback_gas_limit": callback_gas_limit,
                "subscription_id": subscription_id,
                "num_words": num_words,
            },
        )

    def record_deposit(self, participant: str, amount: int) -> dict:
        return self._request(
            "POST",
            "/api/v1/raffle/wallet/deposits",
            headers=self.auth_csrf_headers,
            json={"participant": participant, "amount": amount},
        )

    def transfer(self, recipient: str, amount: int) -> dict:
        """Send ``amount`` from the raffle wallet to ``recipient``."""
        return self._request(
            "POST",
            "/api/v1/raffle/wallet/transfer",
            headers=self.auth_csrf_headers,
            json={"recipient": recipient, "amount": amount},
        )


class ChainRandomnessProvider:
    """Randomness provider backed by the gateway's VRF endpoint."""

    def __init__(self, client: Optional[ChainClient] = None):
        self.client = client or ChainClient()

    def request_randomness(
        self,
        key_hash: str,
        request_confirmations: int,
        callback_gas_limit: int,
        subscription_id: int,
        num_words: int = 1,
    ) -> int:
        response = self.client.request_random_words(
            key_hash=key_hash,
            request_confirmations=request_confirmations,
            callback_gas_limit=callback_gas_limit,
            subscription_id=subscription_id,
            num_words=num_words,
        )
        if not isinstance(response, dict) or response.get("request_id") is None:
            raise RuntimeError(f"Unexpected randomness request response: {response!r}")
        return int(response["request_id"])


class ChainFundsLedger:
    """Funds ledger backed by the gateway's raffle wallet."""

    def __init__(self, client: Optional[ChainClient] = None):
        self.client = client or ChainClient()

    def deposit(self, participant: str, amount: int) -> None:
        response = self.client.record_deposit(participant, amount)
        if not isinstance(response, dict) or response.get("status") != "success":
            raise RuntimeError(f"Deposit was not recorded: {response!r}")

    def balance(self) -> int:
        response = self.client.wallet_balance
        if not isinstance(response, dict) or "balance" not in response:
            raise RuntimeError(f"Unexpected wallet balance response: {response!r}")
        return int(response["balance"])

    def payout(self, recipient: str, amount: int) -> bool:
        response = self.client.transfer(recipient, amount)
        if not isinstance(response, dict):
            logger.error(f"Unexpected transfer response: {response!r}")
            return False
        status = response.get("status")
        if status != "success":
            message = response.get("message")
            logger.error(
                f"Transfer to {recipient} failed" + (f": {message}" if message else ".")
            )
            return False
        return True
