from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class CheckResult(BaseModel):
    name: str
    ok: bool
    required: bool = True
    detail: str = ""


class HealthReport(BaseModel):
    checks: List[CheckResult] = Field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(c.ok for c in self.checks if c.required)

    @property
    def failures(self) -> List[CheckResult]:
        return [c for c in self.checks if c.required and not c.ok]

    @property
    def warnings(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.required and not c.ok]

    def add(self, result: CheckResult) -> CheckResult:
        self.checks.append(result)
        return result
