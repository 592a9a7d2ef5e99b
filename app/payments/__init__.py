"""
Payments app for Paystack-backed escrow.

This app handles:
- Booking checkout and escrow of client funds
- Settlement of escrow (release, refund, split) into user wallets
- Vendor subscription plans and the commission rate they set
- Vendor withdrawals paid out through Paystack transfers
- Webhook event handling

Related apps:
    - bookings: Booking lifecycle drives release and refund
    - disputes: Resolutions settle escrow
    - notifications: Payment and payout notifications

Usage:
    from payments.services import escrow_ledger

    # Start checkout for an accepted booking
    payment = escrow_ledger.initialize_payment(client, booking.id)

    # Release escrow to the vendor once the booking completes
    escrow_ledger.release_payment(booking.id)
"""
