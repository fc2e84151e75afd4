"""
Domain errors

Raised by the service functions and turned into JSON responses by the
handlers registered in main.py.
"""

from typing import Optional


class BookstoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BookstoreError):
    status_code = 404


class InsufficientStockError(BookstoreError):
    status_code = 400

    def __init__(self, title: str, book_id: Optional[str] = None):
        super().__init__(f"Insufficient stock for {title}")
        self.title = title
        self.book_id = book_id


class ConflictError(BookstoreError):
    status_code = 409


class InvalidRequestError(BookstoreError):
    status_code = 400


class InvalidTransitionError(InvalidRequestError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change order status from {current} to {target}")
        self.current = current
        self.target = target


class AuthenticationError(BookstoreError):
    status_code = 401


class PermissionDeniedError(BookstoreError):
    status_code = 403


class DatabaseUnavailableError(BookstoreError):
    status_code = 500

    def __init__(self):
        super().__init__("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
