"""
CloudGuard Services Package

Business logic operating on a SQLAlchemy session. Routes and Celery tasks
call into these services; services never raise HTTPException.
"""
