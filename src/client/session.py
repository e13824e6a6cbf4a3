from typing import Any, Dict, Optional

import httpx
import jwt
from loguru import logger


class AuthSession:
    """
    클라이언트 쪽 로그인 상태입니다.

    토큰 클레임은 서명 검증 없이 읽습니다. 화면 라우팅용일 뿐이고, 서버는 모든 요청에서 서명을 검증합니다.
    generation은 로그인/로그아웃 때마다 증가하며, 진행 중이던 조회 결과가 오래된 것인지 판별하는 데 씁니다.
    """

    def __init__(self, http: httpx.AsyncClient):
        self.http = http
        self.token: Optional[str] = None
        self.generation = 0

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def uid(self) -> Optional[str]:
        return self.claims().get("uid") if self.token else None

    def claims(self) -> Dict[str, Any]:
        if not self.token:
            return {}
        return jwt.decode(self.token, options={"verify_signature": False})

    async def sign_in(self, email: str, password: str) -> None:
        response = await self.http.post("/v1/auth/tokens", json={"email": email, "password": password})
        response.raise_for_status()
        self.token = response.json()["token"]
        self.generation += 1
        logger.info(f"[SESSION] Signed in as {self.uid}")

    async def sign_out(self) -> None:
        self.token = None
        self.generation += 1
        logger.info("[SESSION] Signed out")

    async def refresh(self) -> None:
        """역할이 바뀐 뒤 새 클레임을 받기 위해 토큰을 재발급받습니다."""
        response = await self.http.post("/v1/auth/tokens/refresh", headers=self._auth_headers())
        response.raise_for_status()
        self.token = response.json()["token"]

    async def get_claims_role(self) -> Optional[str]:
        return self.claims().get("role") or None

    async def fetch_profile(self, uid: str) -> Dict[str, Any]:
        response = await self.http.get(f"/v1/users/{uid}", headers=self._auth_headers())
        response.raise_for_status()
        return response.json()["user"]

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}
