"""
CloudGuard API Routes Package
"""
