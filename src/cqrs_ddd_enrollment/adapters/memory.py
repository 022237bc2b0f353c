"""
In-Memory Adapter Implementations.

Development/testing backends for every port:
- InMemoryIdentityProvider: issues 8-digit codes with pyotp
- InMemoryProfileStore: profiles, enrollment counts, role tables
- InMemorySessionRecordStore: the published session record
- InMemoryContinuationStore: browser-local continuation secrets
- InMemoryEnrollmentRunRepository: enrollment runs

Not for production: state is lost on restart and not shared.
"""

import logging
import secrets
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Dict, Any

import pyotp

from cqrs_ddd_enrollment.domain.aggregates import EnrollmentRun
from cqrs_ddd_enrollment.domain.value_objects import (
    CodeTypeTag,
    ProfileRecord,
    RoleSource,
    VerifiedSession,
)
from cqrs_ddd_enrollment.ports.identity_provider import (
    AccountStatus,
    IdentityProviderPort,
    ProviderErrorKind,
    ProviderResult,
)
from cqrs_ddd_enrollment.ports.profile_store import ProfileStorePort
from cqrs_ddd_enrollment.ports.run_repository import EnrollmentRunRepository
from cqrs_ddd_enrollment.ports.session_store import (
    ContinuationStorePort,
    SessionRecord,
    SessionRecordStorePort,
)

logger = logging.getLogger("cqrs_ddd_enrollment.adapters.memory")


# ═══════════════════════════════════════════════════════════════
# IDENTITY PROVIDER
# ═══════════════════════════════════════════════════════════════


@dataclass
class _Account:
    user_id: str
    email: str
    password: Optional[str] = None
    uncommitted_sign_ins: int = 0


@dataclass
class _IssuedCode:
    code: str
    link_token: str
    tag: CodeTypeTag
    issued_at: float
    used: bool = False


class InMemoryIdentityProvider(IdentityProviderPort):
    """
    In-memory identity provider.

    Codes are issued under the signup tag for unknown emails and the
    magiclink tag for known ones, like a hosted provider does. Every
    send is recorded in `outbox` so tests can read the code back.

    Failures can be scripted per method:
        provider.fail_next("send_code_or_link", ProviderErrorKind.RATE_LIMITED)

    Usage:
        provider = InMemoryIdentityProvider()
        await provider.send_code_or_link("a@x.com")
        code = provider.last_code("a@x.com")
        result = await provider.verify_code("a@x.com", code, CodeTypeTag.SIGNUP)
    """

    def __init__(
        self,
        code_length: int = 8,
        code_ttl_seconds: int = 3600,
        session_ttl_seconds: int = 3600,
        commit_lag: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self.code_length = code_length
        self.code_ttl_seconds = code_ttl_seconds
        self.session_ttl_seconds = session_ttl_seconds
        self.commit_lag = commit_lag
        self.clock = clock
        self.outbox: list[Dict[str, Any]] = []
        self.calls: list[str] = []
        self._accounts: Dict[str, _Account] = {}
        self._issued: Dict[str, _IssuedCode] = {}
        self._failures: Dict[str, list] = defaultdict(list)
        self._current: Optional[VerifiedSession] = None

    # ═══════ test helpers ═══════

    def add_account(
        self, email: str, password: Optional[str] = None, user_id: Optional[str] = None
    ) -> str:
        account = _Account(user_id=user_id or str(uuid.uuid4()), email=email, password=password)
        self._accounts[email] = account
        return account.user_id

    def user_id_for(self, email: str) -> Optional[str]:
        account = self._accounts.get(email)
        return account.user_id if account else None

    def fail_next(self, method: str, kind: ProviderErrorKind, times: int = 1) -> None:
        self._failures[method].extend([kind] * times)

    def last_code(self, email: str) -> Optional[str]:
        issued = self._issued.get(email)
        return issued.code if issued else None

    def last_link_token(self, email: str) -> Optional[str]:
        issued = self._issued.get(email)
        return issued.link_token if issued else None

    def sign_out(self) -> None:
        self._current = None

    def clear(self) -> None:
        self.outbox.clear()
        self.calls.clear()
        self._accounts.clear()
        self._issued.clear()
        self._failures.clear()
        self._current = None

    def _scripted_failure(self, method: str) -> Optional[ProviderResult]:
        self.calls.append(method)
        if self._failures[method]:
            kind = self._failures[method].pop(0)
            logger.debug(f"Scripted {method} failure: {kind.value}")
            return ProviderResult.failed(kind, f"scripted {kind.value}")
        return None

    def _issue_session(self, account: _Account) -> VerifiedSession:
        session = VerifiedSession(
            access_token=secrets.token_urlsafe(24),
            refresh_token=secrets.token_urlsafe(24),
            user_id=account.user_id,
            email=account.email,
            expires_at=int(self.clock()) + self.session_ttl_seconds,
            user={"id": account.user_id, "email": account.email},
        )
        self._current = session
        return session

    # ═══════ port ═══════

    async def send_code_or_link(
        self, email: str, redirect_target: Optional[str] = None
    ) -> ProviderResult:
        failure = self._scripted_failure("send_code_or_link")
        if failure:
            return failure

        totp = pyotp.TOTP(
            pyotp.random_base32(), digits=self.code_length, interval=self.code_ttl_seconds
        )
        tag = CodeTypeTag.MAGICLINK if email in self._accounts else CodeTypeTag.SIGNUP
        issued = _IssuedCode(
            code=totp.now(),
            link_token=secrets.token_urlsafe(16),
            tag=tag,
            issued_at=self.clock(),
        )
        self._issued[email] = issued
        self.outbox.append(
            {"email": email, "code": issued.code, "tag": tag.value, "redirect_to": redirect_target}
        )
        logger.debug(f"Issued {tag.value} code for {email}")
        return ProviderResult.ok()

    async def verify_code(
        self, email: str, code: str, type_tag: CodeTypeTag
    ) -> ProviderResult:
        failure = self._scripted_failure("verify_code")
        if failure:
            return failure

        issued = self._issued.get(email)
        if issued is None:
            if email not in self._accounts:
                return ProviderResult.failed(ProviderErrorKind.NOT_FOUND, "User not found")
            return ProviderResult.failed(ProviderErrorKind.INVALID, "Token has expired or is invalid")

        by_code = code == issued.code and type_tag == issued.tag
        by_link = type_tag == CodeTypeTag.MAGICLINK and code == issued.link_token
        if not (by_code or by_link):
            return ProviderResult.failed(ProviderErrorKind.INVALID, "Token is invalid")
        if issued.used:
            return ProviderResult.failed(ProviderErrorKind.EXPIRED, "Token has already been used")
        if self.clock() - issued.issued_at > self.code_ttl_seconds:
            return ProviderResult.failed(ProviderErrorKind.EXPIRED, "Token has expired")

        issued.used = True
        account = self._accounts.get(email)
        if account is None:
            account = self._accounts[email] = _Account(user_id=str(uuid.uuid4()), email=email)
        return ProviderResult.ok(session=self._issue_session(account))

    async def sign_in_password(self, email: str, password: str) -> ProviderResult:
        failure = self._scripted_failure("sign_in_password")
        if failure:
            return failure

        account = self._accounts.get(email)
        if account and account.uncommitted_sign_ins > 0:
            account.uncommitted_sign_ins -= 1
            return ProviderResult.failed(
                ProviderErrorKind.INVALID_CREDENTIALS, "Invalid login credentials"
            )
        if account is None or account.password is None or account.password != password:
            return ProviderResult.failed(
                ProviderErrorKind.INVALID_CREDENTIALS, "Invalid login credentials"
            )
        return ProviderResult.ok(session=self._issue_session(account))

    async def create_account_password(self, email: str, password: str) -> ProviderResult:
        failure = self._scripted_failure("create_account_password")
        if failure:
            return failure

        account = self._accounts.get(email)
        if account and account.password is not None:
            return ProviderResult.ok(account_status=AccountStatus.ALREADY_EXISTS)
        if account is None:
            account = self._accounts[email] = _Account(user_id=str(uuid.uuid4()), email=email)
        account.password = password
        account.uncommitted_sign_ins = self.commit_lag
        return ProviderResult.ok(account_status=AccountStatus.CREATED)

    async def get_session(self) -> Optional[VerifiedSession]:
        return self._current


# ═══════════════════════════════════════════════════════════════
# PROFILE STORE
# ═══════════════════════════════════════════════════════════════


class InMemoryProfileStore(ProfileStorePort):
    """
    In-memory profile, enrollment history and role tables.

    Usage:
        store = InMemoryProfileStore()
        store.set_registration_count("user-1", 2)
        store.add_role(RoleSource.VENUE_STAFF, "user-1")
    """

    def __init__(self):
        self._profiles: Dict[str, Dict[str, Optional[str]]] = {}
        self._enrollments: Dict[str, int] = {}
        self._roles: Dict[RoleSource, set[str]] = defaultdict(set)
        self.upserts: list[tuple[str, Dict[str, Optional[str]]]] = []

    def set_profile(self, user_id: str, profile: ProfileRecord) -> None:
        self._profiles[user_id] = profile.to_dict()

    def set_registration_count(self, user_id: str, count: int) -> None:
        self._enrollments[user_id] = count

    def add_role(self, source: RoleSource, user_id: str) -> None:
        self._roles[source].add(user_id)

    def clear(self) -> None:
        self._profiles.clear()
        self._enrollments.clear()
        self._roles.clear()
        self.upserts.clear()

    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        data = self._profiles.get(user_id)
        return ProfileRecord.from_dict(data) if data is not None else None

    async def upsert_profile(self, user_id: str, fields: dict[str, Optional[str]]) -> None:
        self._profiles.setdefault(user_id, {}).update(fields)
        self.upserts.append((user_id, dict(fields)))
        logger.debug(f"Upserted profile {user_id}: {sorted(fields)}")

    async def count_prior_enrollments(self, user_id: str) -> int:
        return self._enrollments.get(user_id, 0)

    async def exists_in(self, role_source: RoleSource, user_id: str) -> bool:
        return user_id in self._roles.get(role_source, set())


# ═══════════════════════════════════════════════════════════════
# SESSION RECORD & CONTINUATION STORES
# ═══════════════════════════════════════════════════════════════


class InMemorySessionRecordStore(SessionRecordStorePort):
    """Cookie-jar double; one slot per record name."""

    def __init__(self):
        self._records: Dict[str, SessionRecord] = {}
        self.writes = 0

    async def write(
        self, name: str, value: str, expires_at: Optional[datetime] = None
    ) -> None:
        self._records[name] = SessionRecord(name=name, value=value, expires_at=expires_at)
        self.writes += 1

    async def read(self, name: str) -> Optional[SessionRecord]:
        return self._records.get(name)

    async def delete(self, name: str) -> None:
        self._records.pop(name, None)

    def all(self) -> list[SessionRecord]:
        return list(self._records.values())

    def clear(self) -> None:
        self._records.clear()
        self.writes = 0


class InMemoryContinuationStore(ContinuationStorePort):
    """Browser-local storage double for one context."""

    def __init__(self):
        self._values: Dict[str, str] = {}

    async def put(self, key: str, value: str) -> None:
        self._values[key] = value

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    async def delete_namespace(self, prefix: str) -> int:
        keys = [k for k in self._values if k.startswith(prefix)]
        for key in keys:
            del self._values[key]
        return len(keys)

    def keys(self) -> list[str]:
        return list(self._values)

    def clear(self) -> None:
        self._values.clear()


# ═══════════════════════════════════════════════════════════════
# RUN REPOSITORY
# ═══════════════════════════════════════════════════════════════


class InMemoryEnrollmentRunRepository(EnrollmentRunRepository):
    """
    Stores serialized snapshots, so a run handed out is never the
    stored copy and unsaved changes do not leak.
    """

    def __init__(self):
        self._runs: Dict[str, Dict[str, Any]] = {}

    async def get(self, run_id: str) -> Optional[EnrollmentRun]:
        data = self._runs.get(run_id)
        return EnrollmentRun.from_dict(data) if data is not None else None

    async def save(self, run: EnrollmentRun) -> None:
        self._runs[run.id] = run.to_dict()
        logger.debug(f"Saved run {run.id} in {run.state.value}")

    async def delete(self, run_id: str) -> None:
        self._runs.pop(run_id, None)

    def clear(self) -> None:
        self._runs.clear()
