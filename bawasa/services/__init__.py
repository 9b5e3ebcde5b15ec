"""
Services Package
Business logic behind the API routes
"""
