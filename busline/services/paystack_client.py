import logging
from dataclasses import dataclass
import secrets
import requests

from busline.core.errors import GatewayUnavailable

logger = logging.getLogger(__name__)


@dataclass
class PaystackConfig:
    base_url: str           # https://api.paystack.co
    secret_key: str         # sk_live_... / sk_test_...
    timeout: int = 25
    sandbox: bool = False   # canned success, no network (local dev only)


class PaystackError(GatewayUnavailable):
    pass


class PaystackClient:
    """Minimal Paystack transaction API: initialize and verify.

    Amounts cross this boundary in the minor unit (kobo). A timeout, a
    connection error or a 5xx raises GatewayUnavailable; the caller decides
    what a failed verification means.
    """

    def __init__(self, cfg: PaystackConfig):
        self.cfg = cfg
        self._sandbox_amounts: dict[str, int] = {}

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.cfg.secret_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.cfg.base_url.rstrip('/')}{path}"
        try:
            r = requests.request(method=method.upper(), url=url, json=payload, headers=self._headers(), timeout=self.cfg.timeout)
        except requests.Timeout:
            raise PaystackError(f"Paystack timed out after {self.cfg.timeout}s", path=path)
        except requests.RequestException as exc:
            raise PaystackError(f"Paystack unreachable: {exc}", path=path)
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 500:
            raise PaystackError(f"Paystack {r.status_code}", path=path, response=data)
        if r.status_code >= 400:
            logger.warning("paystack %s %s -> %s %s", method, path, r.status_code, data.get("message"))
        return data

    def initialize(self, email: str, amount: int, metadata: dict | None = None, reference: str | None = None) -> dict:
        """Start a transaction. Returns {authorizationUrl, reference}."""
        reference = reference or secrets.token_hex(8)
        if self.cfg.sandbox:
            self._sandbox_amounts[reference] = int(amount)
            return {"authorizationUrl": f"https://checkout.paystack.com/sandbox/{reference}", "reference": reference}
        data = self.request("POST", "/transaction/initialize", {
            "email": email,
            "amount": int(amount),
            "reference": reference,
            "metadata": metadata or {},
        })
        if not data.get("status"):
            raise PaystackError(f"Paystack initialize failed: {data.get('message')}", response=data)
        body = data.get("data") or {}
        return {"authorizationUrl": body.get("authorization_url"), "reference": body.get("reference", reference)}

    def verify(self, reference: str, expected_amount: int | None = None) -> dict:
        """Returns {success, amount (minor unit), paidAt, raw}."""
        if self.cfg.sandbox:
            amount = self._sandbox_amounts.get(reference, expected_amount or 0)
            return {"success": True, "amount": amount, "paidAt": None, "raw": {"sandbox": True}}
        data = self.request("GET", f"/transaction/verify/{reference}")
        body = data.get("data") or {}
        return {
            "success": bool(data.get("status")) and body.get("status") == "success",
            "amount": int(body.get("amount") or 0),
            "paidAt": body.get("paid_at"),
            "raw": data,
        }
