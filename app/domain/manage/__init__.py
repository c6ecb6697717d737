"""Manage domain - token-gated view and cancellation of bookings"""
