"""
Celery tasks for scheduled automation
"""
