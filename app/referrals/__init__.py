"""
Referrals app.

Referral codes, the first-booking reward trigger and referral expiry.
"""
