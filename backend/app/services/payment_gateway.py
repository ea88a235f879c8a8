"""
支付网关 - Razorpay 兼容接口
下单走 HTTP（httpx），验签在本地用 HMAC-SHA256 完成
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import hashlib
import hmac
import logging

import httpx

from app.config import Settings, settings as default_settings
from core.errors import DependencyError

logger = logging.getLogger(__name__)


class PaymentGateway(ABC):
    """支付网关接口"""

    @abstractmethod
    def create_order(self, amount: int, currency: str, receipt: str,
                     notes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        创建支付订单

        Args:
            amount: 金额（最小货币单位）
            currency: 币种
            receipt: 商户侧单据号
            notes: 附加信息

        Returns:
            至少包含 id / amount / currency 的订单字典
        """

    @abstractmethod
    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """校验支付回调签名"""


class RazorpayGateway(PaymentGateway):
    """Razorpay 网关"""

    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None,
                 base_url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = (base_url or default_settings.RAZORPAY_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else default_settings.PAYMENT_GATEWAY_TIMEOUT
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Settings) -> "RazorpayGateway":
        return cls(
            key_id=config.RAZORPAY_KEY_ID,
            key_secret=config.RAZORPAY_KEY_SECRET,
            base_url=config.RAZORPAY_BASE_URL,
            timeout=config.PAYMENT_GATEWAY_TIMEOUT,
        )

    def _require_keys(self) -> None:
        if not self.key_id or not self.key_secret:
            logger.error("Razorpay keys are not configured")
            raise DependencyError("Razorpay keys are not configured")

    def create_order(self, amount: int, currency: str, receipt: str,
                     notes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._require_keys()
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        url = f"{self.base_url}/v1/orders"

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(url, json=payload, auth=(self.key_id, self.key_secret))
                resp.raise_for_status()
                order = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to create Razorpay order {receipt}: {e}")
            raise DependencyError("Payment gateway request failed",
                                  context={"receipt": receipt}) from e

        logger.info(f"Razorpay order {order.get('id')} created for {receipt}")
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        self._require_keys()
        expected = hmac.new(
            self.key_secret.encode(),
            f"{order_id}|{payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)


def get_payment_gateway() -> PaymentGateway:
    """FastAPI 依赖：按当前配置构建网关"""
    return RazorpayGateway.from_settings(default_settings)
