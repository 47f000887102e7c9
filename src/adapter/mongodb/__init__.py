from adapter.mongodb.connection import (
    ACCOUNTS_COLLECTION_NAME,
    DATABASE_NAME,
)

__all__ = ['ACCOUNTS_COLLECTION_NAME', 'DATABASE_NAME']
