from pydantic import BaseModel
from typing import Any, Optional


class ResponseEnvelope(BaseModel):
    result: bool
    data: Any = None
    note: Optional[str] = None
    code: Optional[int] = None

    def to_body(self) -> dict:
        return self.model_dump(exclude_unset=True)


def ok(data: Any) -> dict:
    return ResponseEnvelope(result=True, data=data).to_body()


def fail(note: str, code: int) -> dict:
    return ResponseEnvelope(result=False, note=note, code=code).to_body()
