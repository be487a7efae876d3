"""
Two-state view of a deck share.

A link share starts ``Unbound`` (it carries a token and no grantee). The first
user to redeem the token moves it to ``Bound`` and the token is destroyed.
A direct share is created ``Bound``. Nothing ever moves a share back.

The transition itself is performed by a conditional UPDATE in
``app.sharing.registry``; this module only names the states so callers stop
poking at the nullable columns directly.
"""
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Unbound:
    token: str


@dataclass(frozen=True)
class Bound:
    user_id: int


ShareState = Union[Unbound, Bound]


class InvalidShareState(ValueError):
    pass


def share_state(grantee_user_id: Optional[int], share_token: Optional[str]) -> ShareState:
    """Classify the (grantee, token) column pair of a share row."""
    if grantee_user_id is not None and share_token is None:
        return Bound(grantee_user_id)
    if grantee_user_id is None and share_token:
        return Unbound(share_token)
    raise InvalidShareState(
        f"share must have exactly one of grantee/token (grantee={grantee_user_id!r}, token set={bool(share_token)})"
    )
