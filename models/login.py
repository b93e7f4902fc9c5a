from pydantic import BaseModel


class LoginRequest(BaseModel):
    number: str
    password: str


class LoginResponse(BaseModel):
    number: str
    token: str
