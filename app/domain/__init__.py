"""Booking-flow domains: slot holds, OTP verification and manage links"""
