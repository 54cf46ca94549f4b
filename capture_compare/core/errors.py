class CompareError(Exception):
    """Domain error with a stable code; the API maps it to status_code."""

    def __init__(self, code: str, message: str, status_code: int = 400, details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def __str__(self) -> str:
        return f'{self.code}: {self.message}'

    def __repr__(self) -> str:
        return f'CompareError(code={self.code!r}, message={self.message!r}, status_code={self.status_code})'
