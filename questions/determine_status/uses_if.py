def determine_status(value: int) -> None:
    if value > 0:
        print("positive")
    else:
        print("non-positive")
