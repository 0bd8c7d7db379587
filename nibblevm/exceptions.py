class ProgramParseError(Exception):
    def __init__(self, line: int, text: str, reason: str) -> None:
        super().__init__(line, text, reason)
        self.line = line
        self.text = text
        self.reason = reason

    def __str__(self) -> str:
        return f'[ERROR] line {self.line}: {self.reason}: {self.text!r}'


class CapacityExceededError(Exception):
    def __init__(self, length: int, available: int) -> None:
        super().__init__(length, available)
        self.length = length
        self.available = available

    def __str__(self) -> str:
        return f'[ERROR] program has {self.length} nibbles but only {self.available} fit after the origin!'


class UnknownVariantException(Exception):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f'[ERROR] NibbleVM doesnt know the {self.name!r} variant!'
