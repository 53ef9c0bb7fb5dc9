from datetime import datetime


# Simply returns the current local time as an ISO8601 string with timezone offset.
def now_iso():
    return datetime.now().astimezone().isoformat()


def format_time(seconds):
    """Format elapsed seconds as HH:MM:SS. Negative values clamp to zero."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


# Parses hand-typed timer values. "1:30:00" is hours, "90:00" is minutes:seconds and a bare "90" is minutes.
# Returns None for anything that doesn't parse.
def parse_time_input(text):
    parts = text.strip().split(":")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None
    if any(n < 0 for n in numbers):
        return None
    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    elif len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    elif len(numbers) == 1:
        return numbers[0] * 60
    return None
