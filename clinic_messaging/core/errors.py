"""
Caller-facing failures of the messaging engine.

Each error carries a stable machine code; the app maps them to 4xx responses.
Persistence errors are not wrapped and surface through the global handler.
"""

class ChatError(Exception):
    status_code: int = 400

    def __init__(self, code: str, message: str | None = None):
        super().__init__(code)
        self.code = code
        self.message = message or code.replace("_", " ").capitalize()

class NotFoundError(ChatError):
    status_code = 404

class AccessDeniedError(ChatError):
    status_code = 403

    def __init__(self, message: str | None = None):
        super().__init__("ACCESS_DENIED", message)

class ChatValidationError(ChatError):
    status_code = 400
