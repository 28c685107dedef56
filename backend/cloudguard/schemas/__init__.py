"""
CloudGuard API Schemas
"""
