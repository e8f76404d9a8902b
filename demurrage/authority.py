"""
authority.py - Rate-setting authorization
"""


class OwnerAuthority:
    """Authorizes exactly one principal: the owner."""

    def __init__(self, owner: str):
        if not owner or not owner.strip():
            raise ValueError("Owner cannot be empty")
        self.owner = owner

    def is_authorized(self, caller: str) -> bool:
        return caller == self.owner

    def __repr__(self):
        return f"OwnerAuthority({self.owner})"
