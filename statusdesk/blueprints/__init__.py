"""
statusdesk
Blueprint registry. Every API blueprint is mounted under /api/v1.
"""
