def determine_status(value: int) -> None:
    match value:
        case v if v > 0:
            print("positive")
        case _:
            print("non-positive")
