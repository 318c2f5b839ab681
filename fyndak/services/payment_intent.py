"""
Swish payment intent

Builds the deep link a winning bidder pays with. There is no gateway
behind it: the payment is verified by an administrator looking at the
merchant's Swish app.
"""
from decimal import Decimal
from urllib.parse import quote


class SwishPaymentIntent:
    """Deep-link generator for the static merchant number"""

    def __init__(self, merchant_phone: str, reference_prefix: str = "FYNDAK"):
        self.merchant_phone = merchant_phone
        self.reference_prefix = reference_prefix

    def reference(self, bid_id: str) -> str:
        return f"{self.reference_prefix}-{bid_id}"

    def build(self, bid_id: str, amount: Decimal) -> dict:
        """
        Build the payment intent for a bid

        Format: swish://payment?phone=XXXXXXXXXX&amount=XXX&message=XXX
        """
        message = self.reference(bid_id)
        amount_text = format(Decimal(amount).normalize(), "f")
        url = (
            f"swish://payment?phone={self.merchant_phone}"
            f"&amount={amount_text}&message={quote(message, safe='')}"
        )
        return {
            "bid_id": bid_id,
            "merchant_phone": self.merchant_phone,
            "amount": float(amount),
            "message": message,
            "url": url,
        }
