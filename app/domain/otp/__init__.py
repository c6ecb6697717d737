"""OTP domain - phone verification codes for the booking flow"""
