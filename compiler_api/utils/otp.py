import secrets


def generate_otp(length: int = 6) -> str:
    """Return a numeric passcode of ``length`` digits (leading zeros allowed)."""
    if length < 1:
        raise ValueError("length must be >= 1")
    return "".join(secrets.choice("0123456789") for _ in range(length))
