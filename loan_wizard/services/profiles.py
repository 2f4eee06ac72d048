from __future__ import annotations

from typing import Protocol

from loan_wizard.core.identity import IdentityContext
from loan_wizard.schemas.loan import ApplicantType, MemberDetails


class MemberDetailsApi(Protocol):
    async def get_member_details(
        self, member_id: int, *, identity: IdentityContext | None = None
    ) -> MemberDetails: ...


class ApplicantProfileSource(Protocol):
    async def load(self, identity: IdentityContext) -> MemberDetails | None: ...


class MemberProfileSource:
    """Looks up the registered member behind the identity."""

    def __init__(self, api: MemberDetailsApi) -> None:
        self.api = api

    async def load(self, identity: IdentityContext) -> MemberDetails | None:
        return await self.api.get_member_details(identity.user_id, identity=identity)


class EnteredProfileSource:
    """Non-members type their own identity details."""

    async def load(self, identity: IdentityContext) -> MemberDetails | None:
        return None


def profile_source_for(applicant_type: ApplicantType, api: MemberDetailsApi) -> ApplicantProfileSource:
    if ApplicantType(applicant_type) is ApplicantType.MEMBER:
        return MemberProfileSource(api)
    return EnteredProfileSource()
