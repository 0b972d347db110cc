import json

import stripe

from utils.pricing import ROOM_LABELS, SLOT_LABELS


class StripeGateway:
    """Thin wrapper over the Stripe SDK so the app can swap it out in tests."""

    def __init__(self, api_key: str = None):
        self.api_key = api_key

    def create_checkout_session(self, line_items, success_url, cancel_url, customer_email, metadata) -> dict:
        session = stripe.checkout.Session.create(
            api_key=self.api_key,
            mode="payment",
            payment_method_types=["card"],
            line_items=line_items,
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=customer_email,
            metadata=metadata,
        )
        return {"id": session["id"], "url": session["url"]}

    def construct_event(self, payload: bytes, sig_header: str, secret: str) -> dict:
        """
        Verifies the Stripe-Signature header and returns the event as a plain dict.
        Raises stripe.SignatureVerificationError or ValueError on bad input.
        """
        stripe.WebhookSignature.verify_header(
            payload, sig_header, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
        )
        if hasattr(payload, "decode"):
            payload = payload.decode("utf-8")
        return json.loads(payload)


def build_line_items(bookings, currency: str) -> list:
    items = []
    for b in bookings:
        items.append({
            "price_data": {
                "currency": currency,
                "product_data": {
                    "name": f"Réservation {ROOM_LABELS.get(b.room, b.room)}",
                    "description": f"{b.date.isoformat()} - {SLOT_LABELS.get(b.slot, b.slot)}",
                },
                "unit_amount": int(b.price) * 100,  # Stripe expects cents
            },
            "quantity": 1,
        })
    return items
