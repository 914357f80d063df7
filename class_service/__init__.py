"""
Class Service
CRUD service for school classes with cache-aside reads and RabbitMQ change notifications
"""

__version__ = "1.0.0"
