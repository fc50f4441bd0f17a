"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidInputError(DomainException):
    """Monetary or date input is malformed (negative total or payment amount)"""

    pass


class PersistenceError(DomainException):
    """Record store failed a read or write"""

    pass


class IdentifierConflictError(DomainException):
    """No free document identifier after one retry"""

    def __init__(self, identifier: str, alternative: str):
        super().__init__(f"Identifiers {identifier} and {alternative} are both taken")
        self.identifier = identifier
        self.alternative = alternative


class RecordNotFoundError(DomainException):
    """Requested invoice does not exist"""

    pass
