def determine_status(value: int) -> None:
    match value:
        case 1 | 2 | 3:
            print("positive")
        case v if v > 3 and v < 50:
            print("positive")
        case v if v >= 50:
            print("positive")
        case _:
            print("non-positive")
