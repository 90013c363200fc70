from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case names work too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class LoginIn(CamelModel):
    email: str = Field(min_length=3, max_length=160)
    password: str = Field(min_length=1)

class ProfileIn(CamelModel):
    name: str = Field(min_length=2, max_length=160)

class PasswordChangeIn(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128)

class ChannelAuthIn(CamelModel):
    channel_name: str = Field(min_length=1, max_length=200)
    socket_id: Optional[str] = Field(default=None, max_length=100)
