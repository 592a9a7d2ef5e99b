"""
Bookings app.

Standard and offer-based bookings between clients and vendors, their state
machine, pricing and status history.
"""
