from vidnet.connections.mongo import mongo_lifespan
from vidnet.connections.redis import redis_lifespan

__all__ = ["mongo_lifespan", "redis_lifespan"]
