from .storage import Account, BaseSession, BaseStorage

__all__ = ["Account", "BaseSession", "BaseStorage"]
