def add_two(value: int) -> int:
    return 2 + value
