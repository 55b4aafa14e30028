def add_two(value: int) -> int:
    return value + 1
