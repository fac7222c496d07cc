from .firebase import FirebaseDB

__all__ = ["FirebaseDB"]
