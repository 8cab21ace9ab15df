### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Request Context -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Request Context

Per-request caller identity and request metadata. Built once per HTTP
request (see portal.middleware.auth.get_request_context) and passed
explicitly into aggregation and workflow calls; nothing user-specific is
kept at module level.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CallerIdentity:
    """
    Who is acting.

    ERP approval levels name the approver either by login identifier or by
    display name, and portal users log in with an e-mail whose local part is
    usually the ERP login. All three are matched.
    """

    user_id: str
    email: str | None = None
    display_name: str | None = None

    @property
    def login(self) -> str | None:
        """E-mail local part (e.g. 'jsilva' for 'jsilva@acme.com')"""
        if not self.email:
            return None
        return self.email.split("@", 1)[0]

    def tokens(self) -> set[str]:
        """Normalized identifiers this caller may appear under"""
        candidates = [self.user_id, self.login, self.display_name]
        return {c.strip().casefold() for c in candidates if c and c.strip()}

    def matches(self, *names: str | None) -> bool:
        """True if any of the given names refers to this caller"""
        mine = self.tokens()
        return any(n and n.strip().casefold() in mine for n in names)

    def __str__(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped state handed to the core services"""

    identity: CallerIdentity
    request_id: str = "-"
