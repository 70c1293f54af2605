"""
Security Module: CORS policy enforcement and webhook signature verification.
"""
