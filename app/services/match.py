"""
Match Resolver.

Strict equality of option indices: no fuzzy matching, no partial credit.
Valid because a question's option list never changes once a session
references it.
"""


def resolve_match(answer_a: int, answer_b: int) -> bool:
    return answer_a == answer_b
