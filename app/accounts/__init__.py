"""
Accounts application.

This app owns the marketplace principal: the email-based User with a role
(client, vendor, admin), a wallet balance, a referral code and a hashed
withdrawal PIN, plus the VendorProfile that booking pricing reads.

Key components:
    - User model: Custom email-based user with marketplace role and wallet
    - VendorProfile model: Vendor type, verification flag and location
    - UserManager: Creates users with a unique referral code

Usage:
    from accounts.models import User, VendorProfile

Note:
    wallet_balance is only ever changed by payments.ledger.WalletLedger.
"""
