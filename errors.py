from typing import Iterable


class PotionsError(Exception):
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidParameter(PotionsError):
    status_code = 400

    def __init__(self, name: str, value: str, accepted: Iterable[str]):
        self.name = name
        self.value = value
        self.accepted = list(accepted)
        super().__init__(
            f"Invalid {name} '{value}'; accepted values: {', '.join(self.accepted)}"
        )


class InvalidInput(PotionsError):
    status_code = 400


class DuplicateUser(PotionsError):
    status_code = 409

    def __init__(self, name: str):
        self.name = name
        super().__init__("User name already exists")


class InvalidCredentials(PotionsError):
    status_code = 401

    def __init__(self):
        super().__init__("Invalid credentials")


class Unauthorized(PotionsError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class NotFound(PotionsError):
    status_code = 404


class StoreFailure(PotionsError):
    status_code = 500
