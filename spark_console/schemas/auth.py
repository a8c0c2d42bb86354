from pydantic import BaseModel


class LoginRequest(BaseModel):
    token: str


class LoginResponse(BaseModel):
    ok: bool = True
