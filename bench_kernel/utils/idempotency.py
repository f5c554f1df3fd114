"""
Idempotency key generation utilities.

Idempotency keys ensure that retrying a call to an external collaborator
(opening a checkout session, for example) never creates a second side
effect on the collaborator's end.  Anything that changes what the call
would do (the offer it pays for, the amount) belongs in the key, so a
changed call never collides with an earlier one.
"""

from uuid import UUID


def generate_idempotency_key(
    producer: str,
    action: str,
    subject_id: UUID | str,
    *qualifiers: object,
) -> str:
    """
    Format: producer:action:subject_id[:qualifier...]

    Example:
        >>> generate_idempotency_key("finalization", "checkout", request_id, 50000)
        "finalization:checkout:550e8400-e29b-41d4-a716-446655440000:50000"
    """
    return ":".join(str(part) for part in (producer, action, subject_id, *qualifiers))
