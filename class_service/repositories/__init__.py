from .class_repository import IClassRepository, MongoClassRepository

__all__ = ["IClassRepository", "MongoClassRepository"]
