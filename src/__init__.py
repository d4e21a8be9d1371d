"""
Retail Intelligence API
"""
