"""
PostgreSQL repository adapter - Implements the repository protocols.

This module provides the PostgreSQL implementation of the domain's
repository ports using psycopg3 with raw SQL.

Atomicity Design
----------------
Every operation the ports document as atomic runs in one transaction:

1. **InvitationRepository.consume**: the invitation row is read with
   SELECT ... FOR UPDATE, so concurrent redemptions of one code queue on
   the row lock; the first commits CONSUMED and the rest then see it.

2. **AccountRepository.create_with_invitation**: invitation lock, re-check,
   account INSERT and invitation UPDATE share one transaction. A unique
   index violation on the INSERT rolls the whole unit back, leaving the
   invitation PENDING.

3. **ResetTokenRepository.issue / redeem**: the owning account row is
   locked first, so concurrent resets of one account serialize instead of
   deadlocking on each other's token rows. Credential replacement, token
   consumption and session revocation commit together.

Any psycopg error that is not a domain outcome is translated into
StorageFailure so callers never see driver exceptions.
"""

import functools
import logging
from datetime import datetime
from pathlib import Path
from uuid import UUID

import psycopg
from psycopg import errors
from psycopg_pool import ConnectionPool

from burrow.domain.exceptions import StorageFailure
from burrow.domain.models import (
    Account,
    Credential,
    Invitation,
    InvitationStatus,
    ResetToken,
    ResetTokenStatus,
    Session,
)
from burrow.domain.ports import ConsumeResult, CreateResult, RedeemResult

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_ACCOUNT_COLUMNS = (
    "id, username, email, password_hash, about, invited_by_id, "
    "karma, banned_at, disabled_invites, created_at"
)
_INVITATION_COLUMNS = (
    "code, inviter_id, created_at, target_email, memo, status, "
    "expires_at, consumed_at, consumed_by_id"
)
_SESSION_COLUMNS = "token_hash, account_id, created_at, expires_at, remember_me, revoked_at"
_RESET_TOKEN_COLUMNS = "token_hash, account_id, created_at, expires_at, status, consumed_at"


def _storage_errors(method):
    """Translate driver and pool errors into StorageFailure."""

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except psycopg.Error as e:
            logger.exception("Storage operation %s failed", method.__name__)
            raise StorageFailure(f"{method.__name__} failed") from e

    return wrapper


def _account(row: tuple) -> Account:
    return Account(
        id=row[0],
        username=row[1],
        email=row[2],
        credential=Credential(row[3]),
        about=row[4],
        invited_by_id=row[5],
        karma=row[6],
        banned_at=row[7],
        disabled_invites=row[8],
        created_at=row[9],
    )


def _invitation(row: tuple) -> Invitation:
    return Invitation(
        code=row[0],
        inviter_id=row[1],
        created_at=row[2],
        target_email=row[3],
        memo=row[4],
        status=InvitationStatus(row[5]),
        expires_at=row[6],
        consumed_at=row[7],
        consumed_by_id=row[8],
    )


def _session(row: tuple) -> Session:
    return Session(
        token_hash=row[0],
        account_id=row[1],
        created_at=row[2],
        expires_at=row[3],
        remember_me=row[4],
        revoked_at=row[5],
    )


def _reset_token(row: tuple) -> ResetToken:
    return ResetToken(
        token_hash=row[0],
        account_id=row[1],
        created_at=row[2],
        expires_at=row[3],
        status=ResetTokenStatus(row[4]),
        consumed_at=row[5],
    )


def _conflict_for(e: errors.UniqueViolation) -> CreateResult:
    constraint = e.diag.constraint_name or ""
    if "username" in constraint:
        return CreateResult.USERNAME_TAKEN
    return CreateResult.EMAIL_TAKEN


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @_storage_errors
    def find_by_id(self, account_id: UUID) -> Account | None:
        return self._fetch_one(f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = %s", account_id)

    @_storage_errors
    def find_by_username(self, username: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE LOWER(username) = LOWER(%s)",
            username.strip(),
        )

    @_storage_errors
    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE LOWER(email) = %s",
            email.strip().lower(),
        )

    @_storage_errors
    def create(self, account: Account) -> CreateResult:
        try:
            with self._pool.connection() as conn, conn.transaction(), conn.cursor() as cursor:
                self._insert(cursor, account)
                return CreateResult.CREATED
        except errors.UniqueViolation as e:
            return _conflict_for(e)

    @_storage_errors
    def create_with_invitation(
        self, account: Account, invitation_code: str, now: datetime
    ) -> CreateResult:
        """
        Atomically consume an invitation and insert the account.

        The transaction block rolls back on the unique violation before it
        is translated, so a conflicting username or email never burns the
        invitation.
        """
        lock_sql = f"SELECT {_INVITATION_COLUMNS} FROM invitations WHERE code = %s FOR UPDATE"
        consume_sql = """
            UPDATE invitations
            SET status = %s, consumed_at = %s, consumed_by_id = %s
            WHERE code = %s AND status = %s
        """

        try:
            with self._pool.connection() as conn, conn.transaction(), conn.cursor() as cursor:
                cursor.execute(lock_sql, (invitation_code,))
                row = cursor.fetchone()
                if row is None or not _invitation(row).is_redeemable(now):
                    return CreateResult.INVALID_INVITATION
                if not _invitation(row).accepts_email(account.email):
                    return CreateResult.EMAIL_MISMATCH

                self._insert(cursor, account)
                cursor.execute(
                    consume_sql,
                    (
                        InvitationStatus.CONSUMED.value,
                        now,
                        account.id,
                        invitation_code,
                        InvitationStatus.PENDING.value,
                    ),
                )
                return CreateResult.CREATED
        except errors.UniqueViolation as e:
            return _conflict_for(e)

    @_storage_errors
    def update_credential(self, account_id: UUID, credential: Credential) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                "UPDATE accounts SET password_hash = %s WHERE id = %s",
                (credential.digest, account_id),
            )

    def _fetch_one(self, sql: str, param: object) -> Account | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (param,))
            row = cursor.fetchone()
        return _account(row) if row is not None else None

    def _insert(self, cursor: psycopg.Cursor, account: Account) -> None:
        cursor.execute(
            f"INSERT INTO accounts ({_ACCOUNT_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
            (
                account.id,
                account.username,
                account.email,
                account.credential.digest,
                account.about,
                account.invited_by_id,
                account.karma,
                account.banned_at,
                account.disabled_invites,
                account.created_at,
            ),
        )


class PostgresInvitationRepository:
    """Implements InvitationRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @_storage_errors
    def add(self, invitation: Invitation) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                f"INSERT INTO invitations ({_INVITATION_COLUMNS}) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)",
                (
                    invitation.code,
                    invitation.inviter_id,
                    invitation.created_at,
                    invitation.target_email,
                    invitation.memo,
                    invitation.status.value,
                    invitation.expires_at,
                    invitation.consumed_at,
                    invitation.consumed_by_id,
                ),
            )

    @_storage_errors
    def get(self, code: str) -> Invitation | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(f"SELECT {_INVITATION_COLUMNS} FROM invitations WHERE code = %s", (code,))
            row = cursor.fetchone()
        return _invitation(row) if row is not None else None

    @_storage_errors
    def consume(self, code: str, email: str, now: datetime) -> ConsumeResult:
        """
        Atomically transition PENDING to CONSUMED.

        Uses SELECT FOR UPDATE so concurrent callers serialize on the row;
        the state check happens after the lock is held.
        """
        with self._pool.connection() as conn, conn.transaction(), conn.cursor() as cursor:
            cursor.execute(
                f"SELECT {_INVITATION_COLUMNS} FROM invitations WHERE code = %s FOR UPDATE",
                (code,),
            )
            row = cursor.fetchone()
            if row is None or not _invitation(row).is_redeemable(now):
                return ConsumeResult.INVALID
            if not _invitation(row).accepts_email(email):
                return ConsumeResult.EMAIL_MISMATCH

            cursor.execute(
                "UPDATE invitations SET status = %s, consumed_at = %s WHERE code = %s",
                (InvitationStatus.CONSUMED.value, now, code),
            )
            return ConsumeResult.SUCCESS

    @_storage_errors
    def revoke(self, code: str, inviter_id: UUID) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                """
                UPDATE invitations SET status = %s
                WHERE code = %s AND inviter_id = %s AND status = %s
                """,
                (
                    InvitationStatus.REVOKED.value,
                    code,
                    inviter_id,
                    InvitationStatus.PENDING.value,
                ),
            )
            return cursor.rowcount == 1

    @_storage_errors
    def list_by_inviter(self, inviter_id: UUID) -> list[Invitation]:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                f"SELECT {_INVITATION_COLUMNS} FROM invitations "
                "WHERE inviter_id = %s ORDER BY created_at DESC",
                (inviter_id,),
            )
            return [_invitation(row) for row in cursor.fetchall()]

    @_storage_errors
    def count_issued_since(self, inviter_id: UUID, since: datetime) -> int:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) FROM invitations WHERE inviter_id = %s AND created_at >= %s",
                (inviter_id, since),
            )
            return cursor.fetchone()[0]

    @_storage_errors
    def has_pending_for_email(self, email: str, now: datetime) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                """
                SELECT 1 FROM invitations
                WHERE target_email = %s
                  AND status = %s
                  AND (expires_at IS NULL OR expires_at > %s)
                LIMIT 1
                """,
                (email, InvitationStatus.PENDING.value, now),
            )
            return cursor.fetchone() is not None


class PostgresSessionRepository:
    """Implements SessionRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @_storage_errors
    def add(self, session: Session) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                f"INSERT INTO sessions ({_SESSION_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s)",
                (
                    session.token_hash,
                    session.account_id,
                    session.created_at,
                    session.expires_at,
                    session.remember_me,
                    session.revoked_at,
                ),
            )

    @_storage_errors
    def get(self, token_hash: str) -> Session | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE token_hash = %s", (token_hash,)
            )
            row = cursor.fetchone()
        return _session(row) if row is not None else None

    @_storage_errors
    def revoke(self, token_hash: str, now: datetime) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "UPDATE sessions SET revoked_at = %s WHERE token_hash = %s AND revoked_at IS NULL",
                (now, token_hash),
            )
            return cursor.rowcount == 1

    @_storage_errors
    def revoke_all_for_account(self, account_id: UUID, now: datetime) -> int:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "UPDATE sessions SET revoked_at = %s WHERE account_id = %s AND revoked_at IS NULL",
                (now, account_id),
            )
            return cursor.rowcount

    @_storage_errors
    def extend(self, token_hash: str, expires_at: datetime) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                "UPDATE sessions SET expires_at = %s WHERE token_hash = %s AND revoked_at IS NULL",
                (expires_at, token_hash),
            )

    @_storage_errors
    def purge_expired(self, now: datetime) -> int:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "DELETE FROM sessions WHERE revoked_at IS NOT NULL OR expires_at <= %s", (now,)
            )
            return cursor.rowcount


class PostgresResetTokenRepository:
    """Implements ResetTokenRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @_storage_errors
    def issue(self, reset_token: ResetToken, now: datetime) -> None:
        with self._pool.connection() as conn, conn.transaction(), conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM accounts WHERE id = %s FOR UPDATE", (reset_token.account_id,))
            _consume_pending_tokens(cursor, reset_token.account_id, now)
            cursor.execute(
                f"INSERT INTO reset_tokens ({_RESET_TOKEN_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s)",
                (
                    reset_token.token_hash,
                    reset_token.account_id,
                    reset_token.created_at,
                    reset_token.expires_at,
                    reset_token.status.value,
                    reset_token.consumed_at,
                ),
            )

    @_storage_errors
    def get(self, token_hash: str) -> ResetToken | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                f"SELECT {_RESET_TOKEN_COLUMNS} FROM reset_tokens WHERE token_hash = %s",
                (token_hash,),
            )
            row = cursor.fetchone()
        return _reset_token(row) if row is not None else None

    @_storage_errors
    def redeem(
        self, token_hash: str, credential: Credential, now: datetime
    ) -> tuple[RedeemResult, UUID | None]:
        with self._pool.connection() as conn, conn.transaction(), conn.cursor() as cursor:
            cursor.execute("SELECT account_id FROM reset_tokens WHERE token_hash = %s", (token_hash,))
            owner = cursor.fetchone()
            if owner is None:
                return RedeemResult.INVALID, None
            account_id = owner[0]

            # Lock order: account row, then token row
            cursor.execute("SELECT 1 FROM accounts WHERE id = %s FOR UPDATE", (account_id,))
            if cursor.fetchone() is None:
                return RedeemResult.INVALID, None
            cursor.execute(
                f"SELECT {_RESET_TOKEN_COLUMNS} FROM reset_tokens WHERE token_hash = %s FOR UPDATE",
                (token_hash,),
            )
            row = cursor.fetchone()
            if row is None:
                return RedeemResult.INVALID, None
            reset_token = _reset_token(row)
            if reset_token.status != ResetTokenStatus.PENDING:
                return RedeemResult.INVALID, None
            if reset_token.is_expired(now):
                return RedeemResult.EXPIRED, None

            cursor.execute(
                "UPDATE accounts SET password_hash = %s WHERE id = %s",
                (credential.digest, account_id),
            )
            _consume_pending_tokens(cursor, account_id, now)
            cursor.execute(
                "UPDATE sessions SET revoked_at = %s WHERE account_id = %s AND revoked_at IS NULL",
                (now, account_id),
            )
            return RedeemResult.SUCCESS, account_id

    @_storage_errors
    def purge_expired(self, now: datetime) -> int:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "DELETE FROM reset_tokens WHERE status <> %s OR expires_at <= %s",
                (ResetTokenStatus.PENDING.value, now),
            )
            return cursor.rowcount


def _consume_pending_tokens(cursor: psycopg.Cursor, account_id: UUID, now: datetime) -> None:
    cursor.execute(
        """
        UPDATE reset_tokens SET status = %s, consumed_at = %s
        WHERE account_id = %s AND status = %s
        """,
        (
            ResetTokenStatus.CONSUMED.value,
            now,
            account_id,
            ResetTokenStatus.PENDING.value,
        ),
    )


class PostgresStore:
    """Implements Storage protocol over a shared connection pool."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool
        self.accounts = PostgresAccountRepository(pool)
        self.invitations = PostgresInvitationRepository(pool)
        self.sessions = PostgresSessionRepository(pool)
        self.reset_tokens = PostgresResetTokenRepository(pool)

    @_storage_errors
    def ping(self) -> None:
        with self._pool.connection() as conn:
            conn.execute("SELECT 1")


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    if not MIGRATIONS_DIR.exists():
        logger.warning(f"Migrations directory not found: {MIGRATIONS_DIR}")
        return

    sql_files = sorted(MIGRATIONS_DIR.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
