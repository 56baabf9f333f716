"""Floor preemption rule."""

from ..protocol.call_type import FloorIndicator, priority_class_of


def is_preemptive(
    request_indicator: FloorIndicator,
    request_priority: int,
    call_indicator: FloorIndicator,
    stored_priority: int,
) -> bool:
    """
    Decide whether a floor request preempts the current holder.

    Call-type class dominates: EMERGENCY > IMMINENT > NORMAL (broadcast and
    system calls rank as NORMAL). Within the same class the request must
    carry a strictly greater priority; equal priority never preempts.

    Args:
        request_indicator: Indicator carried by the request
        request_priority: Priority carried by the request
        call_indicator: Current indicator of the call
        stored_priority: Priority of the current holder

    Returns:
        True if the request preempts the holder

    Raises:
        ValueError: If either indicator carries no call type
    """
    request_class = priority_class_of(request_indicator)
    call_class = priority_class_of(call_indicator)

    if request_class != call_class:
        return request_class > call_class

    return request_priority > stored_priority
