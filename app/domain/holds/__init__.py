"""Holds domain - short-lived slot reservations and their promotion to bookings"""
