"""FastAPI mock of the Roble auth and database APIs used in integration tests."""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional

import httpx
from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, Field

from courseven.core.config import RobleConfig

DB_NAME = "courseven_test"


class InsertPayload(BaseModel):
    tableName: str
    records: List[Dict[str, Any]] = Field(default_factory=list)


class UpdatePayload(BaseModel):
    tableName: str
    idColumn: str = "_id"
    idValue: str
    updates: Dict[str, Any] = Field(default_factory=dict)


class LoginPayload(BaseModel):
    email: str
    password: str


class SignupPayload(BaseModel):
    email: str
    password: str
    name: str = ""


class VerifyPayload(BaseModel):
    email: str
    code: str


class RefreshPayload(BaseModel):
    refreshToken: str


def _as_query_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


class RobleAPIMock:
    """In-memory Roble backend: named tables plus a tiny account store.

    ``tables`` maps table names to row lists; rows get an ``_id`` on insert.
    ``fail_reads`` maps a table name to the status its reads should fail with.
    ``fail_updates`` does the same for updates.
    ``drop_on_insert`` lists columns the insert endpoint silently discards.
    """

    def __init__(
        self,
        *,
        base_url: str = "http://roble.test",
        database_name: str = DB_NAME,
    ) -> None:
        self.base_url = base_url
        self.database_name = database_name
        self.app = FastAPI()
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.requests: List[Dict[str, Any]] = []
        self.fail_reads: Dict[str, int] = {}
        self.fail_updates: Dict[str, int] = {}
        self.drop_on_insert: set[str] = set()
        self.fail_update_on_primary = False
        self.verification_codes: Dict[str, str] = {}
        self._ids = itertools.count(1)
        self._clients: List[httpx.AsyncClient] = []
        self._register_routes()

    # ------------------------------------------------------------------
    # helpers for tests

    def config(self, **overrides: Any) -> RobleConfig:
        values: Dict[str, Any] = {
            "auth_base_url": f"{self.base_url}/auth",
            "database_base_url": f"{self.base_url}/database",
            "database_name": self.database_name,
            "readonly_email": "readonly@example.com",
            "readonly_password": "readonly-pass",
        }
        values.update(overrides)
        return RobleConfig(**values)

    def add_account(self, email: str, password: str, *, user_id: str | None = None) -> str:
        user_id = user_id or f"auth-{next(self._ids)}"
        self.accounts[email] = {"password": password, "_id": user_id, "verified": True}
        return user_id

    def seed(self, table: str, *rows: Dict[str, Any]) -> List[Dict[str, Any]]:
        stored = []
        for row in rows:
            record = dict(row)
            record.setdefault("_id", f"{table}-{next(self._ids)}")
            self.tables.setdefault(table, []).append(record)
            stored.append(record)
        return stored

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])

    def build_async_client(self) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=self.app), timeout=5.0)
        self._clients.append(client)
        return client

    async def aclose(self) -> None:
        for client in self._clients:
            await client.aclose()
        self._clients.clear()

    def _issue_tokens(self, email: str) -> Dict[str, str]:
        index = next(self._ids)
        access = f"access-{index}"
        refresh = f"refresh-{index}"
        self.tokens[access] = email
        self.refresh_tokens[refresh] = email
        return {"accessToken": access, "refreshToken": refresh}

    def _require_token(self, authorization: Optional[str]) -> str:
        token = (authorization or "").removeprefix("Bearer ").strip()
        if token not in self.tokens:
            raise HTTPException(status_code=401, detail="invalid token")
        return self.tokens[token]

    # ------------------------------------------------------------------

    def _register_routes(self) -> None:
        app = self.app
        db = self.database_name

        @app.get(f"/database/{db}/read")
        def read(request: Request, authorization: Optional[str] = Header(default=None)) -> List[Dict[str, Any]]:
            self._require_token(authorization)
            params = dict(request.query_params)
            table = params.pop("tableName", "")
            self.requests.append({"op": "read", "table": table, "params": params})
            if table in self.fail_reads:
                raise HTTPException(status_code=self.fail_reads[table], detail="read failed")
            return [
                row
                for row in self.tables.get(table, [])
                if all(_as_query_text(row.get(key)) == value for key, value in params.items())
            ]

        @app.post(f"/database/{db}/insert", status_code=201)
        def insert(payload: InsertPayload, authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._require_token(authorization)
            self.requests.append({"op": "insert", "table": payload.tableName, "records": payload.records})
            inserted = []
            for record in payload.records:
                row = {key: value for key, value in record.items() if key not in self.drop_on_insert}
                row["_id"] = f"{payload.tableName}-{next(self._ids)}"
                self.tables.setdefault(payload.tableName, []).append(row)
                inserted.append(dict(row))
            return {"inserted": inserted, "skipped": []}

        def update(payload: UpdatePayload, authorization: Optional[str]) -> Dict[str, Any]:
            self._require_token(authorization)
            self.requests.append(
                {"op": "update", "table": payload.tableName, "id": payload.idValue, "updates": payload.updates}
            )
            if payload.tableName in self.fail_updates:
                raise HTTPException(status_code=self.fail_updates[payload.tableName], detail="update failed")
            for row in self.tables.get(payload.tableName, []):
                if str(row.get(payload.idColumn)) == payload.idValue:
                    row.update(payload.updates)
                    return {"updated": [dict(row)]}
            raise HTTPException(status_code=404, detail="row not found")

        @app.put(f"/database/{db}/update")
        def update_primary(payload: UpdatePayload, authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            if self.fail_update_on_primary:
                raise HTTPException(status_code=404, detail="Not Found")
            return update(payload, authorization)

        @app.put(f"/{db}/update")
        def update_fallback(payload: UpdatePayload, authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            return update(payload, authorization)

        @app.post(f"/auth/{db}/login", status_code=201)
        def login(payload: LoginPayload) -> Dict[str, Any]:
            account = self.accounts.get(payload.email)
            if account is None or account["password"] != payload.password or not account["verified"]:
                raise HTTPException(status_code=401, detail="Invalid credentials")
            return {**self._issue_tokens(payload.email), "user": {"_id": account["_id"], "email": payload.email}}

        @app.post(f"/auth/{db}/signup", status_code=201)
        def signup(payload: SignupPayload) -> Dict[str, Any]:
            if payload.email in self.accounts:
                raise HTTPException(status_code=409, detail="Email already registered")
            self.accounts[payload.email] = {
                "password": payload.password,
                "_id": f"auth-{next(self._ids)}",
                "verified": False,
            }
            self.verification_codes[payload.email] = "123456"
            return {"message": "Verification code sent"}

        @app.post(f"/auth/{db}/verify-email", status_code=201)
        def verify_email(payload: VerifyPayload) -> Dict[str, Any]:
            if self.verification_codes.get(payload.email) != payload.code:
                raise HTTPException(status_code=400, detail="Invalid verification code")
            self.accounts[payload.email]["verified"] = True
            return {"success": True, "message": "Email verified"}

        @app.get(f"/auth/{db}/verify-token")
        def verify_token(authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            self._require_token(authorization)
            return {"valid": True}

        @app.post(f"/auth/{db}/logout", status_code=201)
        def logout(authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
            token = (authorization or "").removeprefix("Bearer ").strip()
            self.tokens.pop(token, None)
            return {"message": "Logged out"}

        @app.post("/auth/refresh-token")
        def refresh(payload: RefreshPayload) -> Dict[str, Any]:
            email = self.refresh_tokens.pop(payload.refreshToken, None)
            if email is None:
                raise HTTPException(status_code=401, detail="invalid refresh token")
            return self._issue_tokens(email)


__all__ = ["DB_NAME", "RobleAPIMock"]
