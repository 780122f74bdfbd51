# knowledge_lifecycle/services/__init__.py
"""
Business logic services.
"""
