"""Reservation lifecycle: cart, conflicts, commit, approval and waitlist."""
